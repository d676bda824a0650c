#!/usr/bin/env python3
# -*- coding: utf-8 -*-
import unittest
import json

import utils.config


class ConfigTest(unittest.TestCase):

    def test_dev_config(self):
        config = utils.config.read_from_file()
        self.assertEqual(config["EDGE_SCENARIO"], "ConvCase")
        self.assertEqual(config["REFERENCE_YEARS"], [2010])
        self.assertFalse(config["SMARTLIFESTYLE"])
        self.assertIsNotNone(config.VERSION)

    def test_optional_flags(self):
        config = utils.config.create_config({
            "EDGE_SCENARIO": "ElecEra",
            "REFERENCE_YEARS": 2015,
            "OPTIONAL_FLAGS": ["SMARTLIFESTYLE"],
        })
        self.assertTrue(config["SMARTLIFESTYLE"])
        self.assertFalse(config["NO_INCONVENIENCE"])
        self.assertEqual(config["REFERENCE_YEARS"], [2015])

    def test_invalid(self):
        with self.assertRaises(ValueError):
            utils.config.create_config({"EDGE_SCENARIO": "Mitigation"})
        with self.assertRaises(ValueError):
            utils.config.create_config({"NR_CLUSTERS": 0})

    def test_dump(self):
        args = {
            "edge_scenario": "HydrHype",
            "nr_clusters": 2,
            "smartlifestyle": True,
            "no_inconvenience": False,
            "json": None,
        }
        config = utils.config.create_config(
            json.loads(utils.config.dump(args)))
        self.assertEqual(config["EDGE_SCENARIO"], "HydrHype")
        self.assertEqual(config["NR_CLUSTERS"], 2)
        self.assertTrue(config["SMARTLIFESTYLE"])
        self.assertFalse(config["NO_INCONVENIENCE"])
        self.assertIsNone(config["JSON"])
