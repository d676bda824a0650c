#!/usr/bin/env python3
# -*- coding: utf-8 -*-
import unittest
import numpy
import pandas

from demand.energy import ENERGY_COLUMNS, calc_energy_demand


LEAF_SHARES = pandas.DataFrame({
    "region": "EUR",
    "year": 2020,
    "sector": "passenger",
    "vehicle_type": ["Car", "Car", "Bus"],
    "technology": ["Liquids", "BEV", "Liquids"],
    "total_share": [0.4, 0.2, 0.4],
    "energy_intensity": [2.0, 0.5, 1.0],
})
STOCK_SHARES = pandas.DataFrame({
    "region": "EUR",
    "vehicle_type": "Car",
    "technology": ["Liquids", "BEV"],
    "year": 2020,
    "stock_share": [0.9, 0.1],
})
STOCK_INTENSITY = STOCK_SHARES.drop(columns="stock_share").assign(
    energy_intensity=[2.2, 0.6])
DEMAND = pandas.DataFrame({
    "region": ["EUR"],
    "year": [2020],
    "sector": ["passenger"],
    "demand": [100.0],
})


class EnergyDemandTest(unittest.TestCase):

    def test_shares_only(self):
        energy = calc_energy_demand(LEAF_SHARES)
        self.assertEqual(list(energy.columns), ENERGY_COLUMNS)
        energy = energy.set_index(["vehicle_type", "technology"])
        self.assertAlmostEqual(energy.loc[("Car", "Liquids"), "vehicle_type_share"], 0.6)
        self.assertAlmostEqual(energy.loc[("Car", "BEV"), "technology_share"], 1 / 3)
        numpy.testing.assert_allclose(
            energy["service_demand"].sort_index().values,
            [0.4, 0.2, 0.4])
        self.assertAlmostEqual(energy.loc[("Car", "BEV"), "final_energy"], 0.1)

    def test_stock(self):
        energy = calc_energy_demand(
            LEAF_SHARES, STOCK_SHARES, STOCK_INTENSITY, DEMAND)
        energy = energy.set_index(["vehicle_type", "technology"])
        self.assertAlmostEqual(energy.loc[("Car", "Liquids"), "service_demand"], 54.0)
        self.assertAlmostEqual(energy.loc[("Car", "Liquids"), "final_energy"], 118.8)
        self.assertAlmostEqual(energy.loc[("Car", "BEV"), "service_demand"], 6.0)
        self.assertAlmostEqual(energy.loc[("Car", "BEV"), "energy_intensity"], 0.6)
        # Bus has no fleet, new sales decide
        self.assertAlmostEqual(energy.loc[("Bus", "Liquids"), "service_demand"], 40.0)
        self.assertAlmostEqual(energy.loc[("Bus", "Liquids"), "final_energy"], 40.0)
        self.assertAlmostEqual(energy["service_demand"].sum(), 100.0)

    def test_stock_without_new_sales(self):
        stock_shares = pandas.DataFrame({
            "region": "EUR",
            "vehicle_type": "Car",
            "technology": ["Liquids", "FCEV"],
            "year": 2020,
            "stock_share": [0.8, 0.2],
        })
        stock_intensity = stock_shares.drop(columns="stock_share").assign(
            energy_intensity=[2.2, 1.4])
        energy = calc_energy_demand(
            LEAF_SHARES, stock_shares, stock_intensity, DEMAND)
        energy = energy.set_index(["vehicle_type", "technology"])
        self.assertEqual(energy.loc[("Car", "FCEV"), "sector"], "passenger")
        self.assertAlmostEqual(energy.loc[("Car", "FCEV"), "service_demand"], 12.0)
        self.assertEqual(energy.loc[("Car", "BEV"), "service_demand"], 0.0)
        self.assertEqual(energy.loc[("Car", "BEV"), "final_energy"], 0.0)
        self.assertAlmostEqual(energy["service_demand"].sum(), 100.0)

    def test_missing_demand(self):
        demand = DEMAND.assign(sector="freight")
        energy = calc_energy_demand(LEAF_SHARES, demand=demand)
        self.assertTrue(energy["service_demand"].isna().all())
