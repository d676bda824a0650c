from __future__ import annotations
from pathlib import Path
from typing import NamedTuple, Optional
import numpy # type: ignore
import pandas

import utils.log as log
from utils.read_csv_file import read_csv_file, read_optional_csv_file
from datatypes.nest import NEST_COLUMNS, NestTopology
from models.logit import PRICE_COLUMNS


SHARE_COLUMNS = ["region", "vehicle_type", "technology",
                 "reference_year", "observed_share"]
VOT_COLUMNS = ["region", "vehicle_type", "year", "time_cost_per_distance"]
INCONVENIENCE_COLUMNS = ["region", "vehicle_type", "technology", "year",
                         "cost_adjustment"]
INDICATOR_COLUMNS = ["region", "structural_indicator_value"]
SURVIVAL_COLUMNS = ["technology", "age", "surviving_fraction"]
DEMAND_COLUMNS = ["region", "year", "sector", "demand"]
TREND_TARGET_COLUMNS = ["cluster", "node", "target",
                        "convergence_year", "rate"]


class InputData(NamedTuple):
    """Clean, unit-consistent input tables of one model run.

    Optional tables are None when not given.
    """
    prices: pandas.DataFrame
    historical_shares: pandas.DataFrame
    nest_topology: pandas.DataFrame
    cluster_indicator: pandas.DataFrame
    value_of_time: Optional[pandas.DataFrame] = None
    inconvenience_costs: Optional[pandas.DataFrame] = None
    survival_schedule: Optional[pandas.DataFrame] = None
    demand: Optional[pandas.DataFrame] = None
    trend_targets: Optional[pandas.DataFrame] = None

    @property
    def regions(self):
        return sorted(self.historical_shares["region"].unique())

    def topology(self) -> NestTopology:
        return NestTopology(self.nest_topology)

    def structural_indicator(self, region: str) -> float:
        """Return structural indicator (e.g. urban density) of region.

        Raises
        ------
        KeyError
            If region is not in cluster indicator table
        """
        values = self.cluster_indicator.set_index("region")[
            "structural_indicator_value"]
        return float(values[region])


def read_input_data(data_path: Path) -> InputData:
    """Read input tables from directory of .csv files.

    Parameters
    ----------
    data_path : Path
        Directory with files prices.csv, historical_shares.csv,
        nest_topology.csv, cluster_indicator.csv and optionally
        value_of_time.csv, inconvenience_costs.csv,
        survival_schedule.csv, demand.csv and trend_targets.csv

    Returns
    -------
    InputData
    """
    if not data_path.is_dir():
        raise NameError(
            "Input data directory '{}' does not exist.".format(data_path))
    prices = read_csv_file(
        data_path / "prices.csv", PRICE_COLUMNS, PRICE_COLUMNS[:4])
    shares = read_csv_file(
        data_path / "historical_shares.csv", SHARE_COLUMNS, SHARE_COLUMNS[:4])
    nests = read_csv_file(
        data_path / "nest_topology.csv", NEST_COLUMNS, ["level", "node"])
    indicator = read_csv_file(
        data_path / "cluster_indicator.csv", INDICATOR_COLUMNS, ["region"])
    data = InputData(
        prices, shares, nests, indicator,
        value_of_time=read_optional_csv_file(
            data_path / "value_of_time.csv", VOT_COLUMNS, VOT_COLUMNS[:3]),
        inconvenience_costs=read_optional_csv_file(
            data_path / "inconvenience_costs.csv", INCONVENIENCE_COLUMNS,
            INCONVENIENCE_COLUMNS[:4]),
        survival_schedule=read_optional_csv_file(
            data_path / "survival_schedule.csv", SURVIVAL_COLUMNS,
            SURVIVAL_COLUMNS[:2]),
        demand=read_optional_csv_file(
            data_path / "demand.csv", DEMAND_COLUMNS, DEMAND_COLUMNS[:3]),
        trend_targets=read_optional_csv_file(
            data_path / "trend_targets.csv", TREND_TARGET_COLUMNS,
            TREND_TARGET_COLUMNS[:2]))
    log.info("Input data read from {}: {} regions, years {}-{}".format(
        data_path, len(data.regions),
        int(numpy.min(prices["year"])), int(numpy.max(prices["year"]))))
    return data
