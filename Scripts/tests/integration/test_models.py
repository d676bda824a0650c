import unittest
import numpy
import pandas

import utils.log as log
from modelsystem import ModelResults, ModelSystem
from datahandling.inputdata import read_input_data
from datahandling.resultdata import ResultsData
from datatypes.scenario import new_scenario_switches
from tests.integration.test_data_handling import (
    TEST_DATA_PATH,
    INPUT_DATA_PATH,
    RESULTS_PATH,
    REGIONS,
)


class Config():
    log_format = None
    log_level = "DEBUG"
    scenario_name = "TEST"
    results_path = TEST_DATA_PATH / "Results"


class ModelTest(unittest.TestCase):

    @classmethod
    def setUpClass(cls):
        log.initialize(Config())
        cls.data = read_input_data(INPUT_DATA_PATH)
        cls.switches = new_scenario_switches("ConvCase")

    def _model(self, data=None, **kwargs) -> ModelSystem:
        return ModelSystem(
            self.data if data is None else data, self.switches, **kwargs)

    def test_models(self):
        print("Testing model system...")
        model = self._model(workers=2)
        self.assertEqual(model.years, [2010, 2020, 2030, 2050])
        results = model.run()
        self.assertIsInstance(results, ModelResults)
        self.assertEqual(results.failed_regions, [])
        self.assertEqual(sorted(results.shares["region"].unique()), REGIONS)

        clusters = results.clusters.set_index("region")["cluster"]
        self.assertEqual(clusters["USA"], "low_density")
        self.assertEqual(clusters["EUR"], clusters["CHA"])
        self.assertEqual(clusters["IND"], "high_density")

        print("Validating shares")
        shares = results.shares.dropna(subset=["parent"])
        sums = shares.groupby(["region", "year", "parent"])["share"].sum()
        numpy.testing.assert_allclose(sums.values, 1.0, atol=1e-9)
        self.assertTrue(((shares["share"] >= 0) & (shares["share"] <= 1)).all())
        ind = results.new_sales[(results.new_sales["region"] == "IND")
                                & (results.new_sales["node"] == "Car_FCEV")]
        self.assertEqual(
            ind.set_index("year").at[2020, "total_share"], 0.0)

        print("Validating fleet")
        stock = results.stock_shares
        self.assertEqual(
            sorted(stock["year"].unique()), list(range(2010, 2051)))
        sums = stock.groupby(
            ["region", "vehicle_type", "year"])["stock_share"].sum()
        numpy.testing.assert_allclose(sums.values, 1.0, atol=1e-9)
        self.assertTrue((stock["quantity"] >= 0).all())
        balance = results.balance
        numpy.testing.assert_allclose(
            balance["stock"],
            balance["prior_stock"] - balance["retirements"]
            + balance["new_sales"])
        self.assertTrue((results.stock_price["price"] > 0).all())

        print("Validating energy demand")
        energy = results.energy
        self.assertTrue(energy["final_energy"].notna().all())
        self.assertTrue((energy["final_energy"] >= 0).all())
        service = energy.groupby(
            ["region", "year", "sector"], as_index=False)[
                "service_demand"].sum()
        demand = service.merge(
            self.data.demand, on=["region", "year", "sector"])
        self.assertFalse(demand.empty)
        numpy.testing.assert_allclose(
            demand["service_demand"], demand["demand"], rtol=1e-9)
        print("Model system test done")

    def test_deterministic(self):
        first = self._model(workers=1).run()
        second = self._model(workers=4).run()
        pandas.testing.assert_frame_equal(first.shares, second.shares)
        pandas.testing.assert_frame_equal(first.energy, second.energy)
        pandas.testing.assert_frame_equal(
            first.stock_shares, second.stock_shares)

    def test_degenerate_region(self):
        prices = self.data.prices
        dropped = ((prices["region"] == "IND")
                   & (prices["year"] == 2030)
                   & prices["vehicle_type"].isin(["Truck", "Freight Rail"]))
        data = self.data._replace(prices=prices[~dropped])
        results = self._model(data).run()
        self.assertEqual(results.failed_regions, ["IND"])
        self.assertNotIn("IND", set(results.shares["region"]))
        self.assertNotIn("IND", set(results.energy["region"]))
        self.assertIn("IND", set(results.preferences["region"]))

    def test_partial_demand(self):
        demand = self.data.demand
        data = self.data._replace(
            demand=demand[demand["sector"] == "passenger"])
        results = self._model(data).run()
        self.assertEqual(results.failed_regions, [])
        stock = results.stock_shares
        self.assertTrue(stock["quantity"].notna().all())
        sums = stock.groupby(
            ["region", "vehicle_type", "year"])["stock_share"].sum()
        numpy.testing.assert_allclose(sums.values, 1.0, atol=1e-9)
        # Freight fleets without demand keep their size
        freight = stock[stock["vehicle_type"].isin(["Truck", "Freight Rail"])]
        self.assertFalse(freight.empty)
        totals = freight.groupby(
            ["region", "vehicle_type", "year"])["quantity"].sum()
        numpy.testing.assert_allclose(totals.values, 1.0, rtol=1e-9)
        energy = results.energy
        passenger = energy[energy["sector"] == "passenger"]
        self.assertTrue(passenger["final_energy"].notna().all())

    def test_results(self):
        path = RESULTS_PATH / "model"
        results = self._model(
            resultdata=ResultsData(path), years=[2010, 2030]).run()
        self.assertEqual(sorted(results.balance["year"].unique()),
                         list(range(2011, 2031)))
        for filename in ("preferences.txt", "clusters.txt", "shares.txt",
                         "composite_costs.txt", "new_sales.txt",
                         "fleet_stock.txt", "fleet_balance.txt",
                         "energy_demand.txt", "summary.txt"):
            self.assertTrue((path / filename).exists(), filename)
        energy = pandas.read_csv(path / "energy_demand.txt", sep="\t")
        self.assertEqual(len(energy), len(results.energy))
        with open(path / "summary.txt", encoding="utf-8") as file:
            summary = file.read()
        self.assertIn("failed: none", summary)
        self.assertIn("merge_traccs=True", summary)
        self.assertIn("enhancedtech=False", summary)
