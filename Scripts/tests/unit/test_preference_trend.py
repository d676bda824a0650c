#!/usr/bin/env python3
# -*- coding: utf-8 -*-
import unittest
import numpy
import pandas

import parameters.preference_trend as param
from datatypes.errors import ClusteringIndicatorMissingError
from datatypes.nest import NestTopology
from datatypes.scenario import ScenarioSwitches
from models.clustering import RegionClusters
from models.preference_trend import (
    PreferenceTrendProjector, TrendTarget, build_trend_targets,
    convergence_weight, new_projector, project)


DENSITY = {"CHA": 125.0, "EUR": 120.0, "IND": 450.0, "USA": 35.0}
YEARS = [2010, 2020, 2030, 2040, 2050, 2100]
TARGETS = pandas.DataFrame({
    "cluster": ["all", "high_density"],
    "node": ["Car_BEV", "Car_Liquids"],
    "target": [1.0, 0.5],
    "convergence_year": [2050, 2050],
    "rate": [0.2, 0.2],
})


def calibrated(regions=DENSITY, nodes=None):
    if nodes is None:
        nodes = {"Car_Liquids": 1.0, "Car_BEV": 0.1, "Bus": 0.5}
    return pandas.DataFrame(
        [(region, node, 2010, pref) for region in regions
         for node, pref in nodes.items()],
        columns=["region", "node", "year", "preference"])


def trajectory(preferences, region, node):
    pref = preferences[(preferences["region"] == region)
                       & (preferences["node"] == node)]
    return pref.set_index("year")["preference"]


class ConvergenceWeightTest(unittest.TestCase):

    def test_weight(self):
        years = numpy.arange(2000, 2071)
        w = convergence_weight(years, 2010, 2050, 0.2)
        self.assertEqual(w[years == 2005][0], 0.0)
        self.assertEqual(w[years == 2010][0], 0.0)
        self.assertAlmostEqual(w[years == 2030][0], 0.5)
        self.assertAlmostEqual(w[years == 2050][0], 1.0)
        self.assertEqual(w[years == 2070][0], 1.0)
        self.assertTrue((numpy.diff(w) >= 0).all())

    def test_immediate_convergence(self):
        w = convergence_weight([2005, 2010, 2015], 2010, 2010, 0.2)
        numpy.testing.assert_array_equal(w, [0.0, 0.0, 1.0])

    def test_invalid_rate(self):
        with self.assertRaises(ValueError):
            convergence_weight([2020], 2010, 2050, 0.0)


class PreferenceTrendProjectorTest(unittest.TestCase):

    def setUp(self):
        self.clusters = RegionClusters(DENSITY, DENSITY)

    def test_trajectory(self):
        projector = PreferenceTrendProjector(self.clusters)
        years = numpy.array(YEARS)
        values = projector.trajectory(
            years, numpy.array([2010.0]), numpy.array([1.0]),
            TrendTarget(4.0, 2050, 0.2))
        self.assertEqual(values[0], 1.0)
        self.assertAlmostEqual(values[YEARS.index(2030)], 2.0)
        self.assertAlmostEqual(values[YEARS.index(2050)], 4.0)
        self.assertAlmostEqual(values[YEARS.index(2100)], 4.0)
        self.assertTrue((numpy.diff(values) >= 0).all())

    def test_interpolation(self):
        projector = PreferenceTrendProjector(self.clusters)
        values = projector.trajectory(
            numpy.array([1990, 2005, 2010, 2015, 2030]),
            numpy.array([2005.0, 2015.0]), numpy.array([1.0, 4.0]), None)
        numpy.testing.assert_allclose(values, [1.0, 1.0, 2.0, 4.0, 4.0])

    def test_project(self):
        projector = PreferenceTrendProjector(self.clusters, TARGETS)
        preferences, inconvenience = projector.project(calibrated(), YEARS)
        self.assertIsNone(inconvenience)
        self.assertEqual(
            list(preferences.columns), ["region", "node", "year", "preference"])
        self.assertEqual(len(preferences), 4 * 3 * len(YEARS))
        for region in DENSITY:
            bev = trajectory(preferences, region, "Car_BEV")
            self.assertAlmostEqual(bev[2010], 0.1)
            self.assertAlmostEqual(bev[2050], 1.0)
            self.assertTrue((numpy.diff(bev.values) > 0).any())
            bus = trajectory(preferences, region, "Bus")
            numpy.testing.assert_allclose(bus.values, 0.5)
        self.assertAlmostEqual(
            trajectory(preferences, "IND", "Car_Liquids")[2100], 0.5)
        self.assertTrue(
            (trajectory(preferences, "USA", "Car_Liquids") == 1.0).all())

    def test_cluster_homogeneity(self):
        self.assertEqual(self.clusters["EUR"], self.clusters["CHA"])
        projector = PreferenceTrendProjector(self.clusters, TARGETS, True)
        preferences, _ = projector.project(calibrated(), YEARS)
        for node in ("Car_Liquids", "Car_BEV", "Bus"):
            numpy.testing.assert_array_equal(
                trajectory(preferences, "EUR", node).values,
                trajectory(preferences, "CHA", node).values)

    def test_floor(self):
        targets = TARGETS.assign(target=0.0)
        projector = PreferenceTrendProjector(self.clusters, targets)
        preferences, _ = projector.project(
            calibrated(nodes={"Car_BEV": 0.0}), YEARS)
        self.assertTrue((preferences["preference"] >= param.share_floor).all())
        self.assertAlmostEqual(
            trajectory(preferences, "EUR", "Car_BEV")[2100],
            param.share_floor, delta=1e-15)

    def test_positive_preference_below_floor(self):
        projector = PreferenceTrendProjector(self.clusters, TARGETS)
        preferences, _ = projector.project(
            calibrated(nodes={"Car_Liquids": 1.0, "Bus": 1e-12}), YEARS)
        numpy.testing.assert_allclose(
            trajectory(preferences, "EUR", "Bus").values, 1e-12, rtol=1e-9)

    def test_lifestyle(self):
        projector = PreferenceTrendProjector(
            self.clusters, TARGETS, lifestyle=True)
        preferences, _ = projector.project(calibrated(), YEARS)
        bus = trajectory(preferences, "EUR", "Bus")
        self.assertAlmostEqual(bus[2010], 0.5)
        self.assertAlmostEqual(bus[2100], 0.5 * param.lifestyle_factor)
        self.assertAlmostEqual(
            trajectory(preferences, "EUR", "Car_BEV")[2050], 1.0)
        target = projector.target("low_density", "Bus", 0.5)
        self.assertEqual(target.target, 0.5 * param.lifestyle_factor)

    def test_region_not_clustered(self):
        projector = PreferenceTrendProjector(self.clusters, TARGETS)
        with self.assertRaises(ClusteringIndicatorMissingError):
            projector.project(calibrated(["EUR", "AFR"]), YEARS)

    def test_inconvenience(self):
        inconvenience = pandas.DataFrame({
            "region": "EUR",
            "vehicle_type": "Car",
            "technology": ["BEV", "BEV", "FCEV", "FCEV"],
            "year": [2005, 2010, 2010, 2050],
            "cost_adjustment": [0.4, 0.2, 0.3, 0.05],
        })
        projector = PreferenceTrendProjector(
            self.clusters, TARGETS, techswitch="BEV")
        _, projected = projector.project(
            calibrated(["EUR"]), YEARS, inconvenience)
        projected = projected.set_index(["technology", "year"])[
            "cost_adjustment"]
        self.assertEqual(len(projected), 2 * len(YEARS))
        self.assertAlmostEqual(projected["BEV", 2010], 0.2)
        self.assertAlmostEqual(
            projected["BEV", 2020],
            0.2 * numpy.exp(-param.techswitch_decay_rate * 10))
        self.assertAlmostEqual(
            projected["FCEV", 2020],
            0.3 * numpy.exp(-param.inconvenience_decay_rate * 10))
        self.assertEqual(projected["FCEV", 2050], 0.05)
        self.assertLess(projected["BEV", 2100], projected["BEV", 2050])

    def test_module_function(self):
        preferences, _ = project(calibrated(), self.clusters, YEARS, TARGETS)
        self.assertEqual(sorted(preferences["year"].unique()), YEARS)
        inconvenience = pandas.DataFrame({
            "region": "EUR",
            "vehicle_type": "Car",
            "technology": ["BEV", "FCEV"],
            "year": 2010,
            "cost_adjustment": [0.2, 0.3],
        })
        _, projected = project(
            calibrated(["EUR"]), self.clusters, YEARS, TARGETS,
            inconvenience, techswitch="BEV")
        projected = projected.set_index(["technology", "year"])[
            "cost_adjustment"]
        self.assertAlmostEqual(
            projected["BEV", 2020],
            0.2 * numpy.exp(-param.techswitch_decay_rate * 10))
        self.assertAlmostEqual(
            projected["FCEV", 2020],
            0.3 * numpy.exp(-param.inconvenience_decay_rate * 10))


class ScenarioTargetTest(unittest.TestCase):

    def test_default_targets(self):
        nodes = pandas.DataFrame({
            "level": ["vehicle_type", "technology", "technology",
                      "technology"],
            "node": ["Car", "Car_Liquids", "Car_BEV", "Car_FCEV"],
            "parent": [None, "Car", "Car", "Car"],
            "exponent": [0.3, None, None, None],
            "vehicle_type": [None, "Car", "Car", "Car"],
            "technology": [None, "Liquids", "BEV", "FCEV"],
        })
        nest = NestTopology(nodes)
        clusters = RegionClusters(DENSITY, DENSITY)
        switches = ScenarioSwitches("ElecEra", "BEV", True)
        targets = build_trend_targets(nest, clusters, switches)
        self.assertEqual(
            list(targets.columns),
            ["cluster", "node", "target", "convergence_year", "rate"])
        self.assertNotIn("Car_Liquids", set(targets["node"]))
        bev = targets[targets["node"] == "Car_BEV"]
        self.assertEqual(sorted(bev["cluster"]), sorted(clusters.names))
        self.assertTrue((bev["target"] == 1.0).all())
        fcev = targets[targets["node"] == "Car_FCEV"].set_index("cluster")
        self.assertEqual(fcev.at["high_density", "target"],
                         param.alternative_target["high_density"])
        projector = new_projector(nest, clusters, switches)
        self.assertEqual(projector.techswitch, "BEV")
        self.assertFalse(projector.lifestyle)
        self.assertEqual(
            projector.target("low_density", "Car_BEV", 0.1).target, 1.0)
