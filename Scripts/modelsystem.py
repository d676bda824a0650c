from __future__ import annotations
from concurrent.futures import ThreadPoolExecutor
from typing import Iterable, List, NamedTuple, Optional, Tuple
import numpy # type: ignore
import pandas

import utils.log as log
import parameters.years as param
import parameters.preference_trend as trend_param
from datahandling.inputdata import InputData
from datahandling.resultdata import ResultsData
from datatypes.errors import DegenerateNestError
from datatypes.fleet import FleetState
from datatypes.scenario import ScenarioSwitches
from demand.energy import calc_energy_demand
from models.calibration import new_calibrator
from models.clustering import RegionClusters
from models.logit import NestedShareEvaluator, calc_leaf_costs
from models.preference_trend import PreferenceProjection, new_projector
from models.vintages import (
    BALANCE_COLUMNS, SurvivalSchedule, VintageStep, VintageStockTracker,
    fold_vintages)


ALTERNATIVE_KEYS = ["region", "vehicle_type", "technology"]
NEW_SALES_COLUMNS = ["region", "year", "sector", "vehicle_type", "technology",
                     "node", "total_share", "share", "price",
                     "energy_intensity"]


class RegionResults(NamedTuple):
    shares: pandas.DataFrame
    costs: pandas.DataFrame
    new_sales: pandas.DataFrame
    stock_shares: pandas.DataFrame
    stock_price: pandas.DataFrame
    stock_intensity: pandas.DataFrame
    balance: pandas.DataFrame


class ModelResults(NamedTuple):
    preferences: pandas.DataFrame
    clusters: pandas.DataFrame
    shares: pandas.DataFrame
    costs: pandas.DataFrame
    new_sales: pandas.DataFrame
    stock_shares: pandas.DataFrame
    stock_price: pandas.DataFrame
    stock_intensity: pandas.DataFrame
    balance: pandas.DataFrame
    energy: pandas.DataFrame
    failed_regions: List[str]


class ModelSystem:
    """Object keeping track of all sub-models and tasks in model system.

    Parameters
    ----------
    input_data : InputData
        Clean input tables
    switches : ScenarioSwitches
        Scenario configuration
    reference_years : iterable of int (optional)
        Historical years to calibrate preferences on
    years : iterable of int (optional)
        Simulation years, restricted to years with prices
    nr_clusters : int (optional)
        Number of region clusters for preference trends
    workers : int (optional)
        Number of threads for region calculations
    resultdata : ResultsData (optional)
        Writer for result files, if results are to be saved
    """

    def __init__(self,
                 input_data: InputData,
                 switches: ScenarioSwitches,
                 reference_years: Iterable[int] = param.reference_years,
                 years: Iterable[int] = param.years,
                 nr_clusters: int = trend_param.nr_clusters,
                 workers: Optional[int] = None,
                 resultdata: Optional[ResultsData] = None):
        self.data = input_data
        self.topology = input_data.topology()
        if switches.inconvenience and input_data.inconvenience_costs is None:
            log.warn("No inconvenience costs given, "
                     + "calibrating on preferences only")
            switches = switches._replace(inconvenience=False)
        self.switches = switches
        self.evaluator = NestedShareEvaluator(self.topology)
        self.calibrator = new_calibrator(self.topology, switches)
        if input_data.survival_schedule is None:
            survival = SurvivalSchedule.weibull()
        else:
            survival = SurvivalSchedule(input_data.survival_schedule)
        self.tracker = VintageStockTracker(survival)
        price_years = set(input_data.prices["year"])
        self.years = sorted(year for year in set(years) if year in price_years)
        if not self.years:
            msg = "No prices for any simulation year"
            log.error(msg)
            raise ValueError(msg)
        self.reference_years = sorted(reference_years)
        self.nr_clusters = nr_clusters
        self.workers = workers
        self.resultdata = resultdata

    @property
    def inconvenience(self) -> Optional[pandas.DataFrame]:
        return (self.data.inconvenience_costs if self.switches.inconvenience
                else None)

    def calibrate(self) -> pandas.DataFrame:
        """Calibrate preferences for all reference years."""
        return self.calibrator.calibrate_years(
            self.data.historical_shares, self.data.prices,
            self.data.value_of_time, self.reference_years,
            self.inconvenience)

    def cluster(self, regions: Iterable[str]) -> RegionClusters:
        return RegionClusters(
            regions, self.data.structural_indicator, self.nr_clusters)

    def project(self, calibrated: pandas.DataFrame,
                clusters: RegionClusters) -> PreferenceProjection:
        projector = new_projector(
            self.topology, clusters, self.switches, self.data.trend_targets)
        return projector.project(calibrated, self.years, self.inconvenience)

    def run(self) -> ModelResults:
        """Run the whole model chain.

        Calibration, clustering and preference projection are done
        for all regions together. Share evaluation and fleet turnover
        are done region by region in parallel, and merged in sorted
        region order.

        Returns
        -------
        ModelResults
        """
        calibrated = self.calibrate()
        regions = sorted(calibrated["region"].unique())
        clusters = self.cluster(regions)
        projection = self.project(calibrated, clusters)
        preferences = {region: df for region, df
                       in projection.preferences.groupby("region")}
        inconvenience = {}
        if projection.inconvenience is not None:
            inconvenience = {region: df for region, df
                             in projection.inconvenience.groupby("region")}
        priced_regions = set(self.data.prices["region"])
        for region in regions:
            if region not in priced_regions:
                log.warn(f"No prices for region {region}, not simulated")
        regions = [region for region in regions if region in priced_regions]
        log.info("Simulating {} regions in {} years with scenario {}".format(
            len(regions), len(self.years), self.switches.name))
        with ThreadPoolExecutor(max_workers=self.workers) as executor:
            futures = {
                region: executor.submit(
                    self.run_region, region, preferences[region],
                    inconvenience.get(region))
                for region in regions
            }
            region_results = {region: future.result()
                              for region, future in futures.items()}
        failed = [region for region in regions
                  if region_results[region] is None]
        succeeded = [region_results[region] for region in regions
                     if region_results[region] is not None]
        if not succeeded:
            msg = "Simulation failed in all regions"
            log.error(msg)
            raise ValueError(msg)

        def concat(field: str) -> pandas.DataFrame:
            return pandas.concat(
                [getattr(res, field) for res in succeeded], ignore_index=True)
        new_sales = concat("new_sales")
        stock_shares = concat("stock_shares")
        stock_intensity = concat("stock_intensity")
        energy = calc_energy_demand(
            new_sales, stock_shares, stock_intensity, self.data.demand)
        results = ModelResults(
            projection.preferences, clusters.to_frame(), concat("shares"),
            concat("costs"), new_sales, stock_shares, concat("stock_price"),
            stock_intensity, concat("balance"), energy, failed)
        if self.resultdata is not None:
            self.write_results(results)
        log.info("Simulation finished, {} regions failed".format(len(failed)))
        return results

    def run_region(self, region: str,
                   preferences: pandas.DataFrame,
                   inconvenience: Optional[pandas.DataFrame] = None,
                   ) -> Optional[RegionResults]:
        """Evaluate shares and fleet turnover for one region.

        Returns
        -------
        RegionResults or None
            None if region has a sector without available alternatives
        """
        prices = self.data.prices
        prices = prices[(prices["region"] == region)
                        & prices["year"].isin(self.years)]
        vot = self.data.value_of_time
        if vot is not None:
            vot = vot[vot["region"] == region]
        try:
            outcome = self.evaluator.evaluate(
                prices, preferences, vot, inconvenience=inconvenience)
        except DegenerateNestError as error:
            log.error(f"Region {region} excluded from results", error)
            return None
        new_sales = self.new_sales(outcome.shares, prices)
        initial, steps = self.vintage_steps(new_sales)
        outcomes = fold_vintages(self.tracker, initial, steps)
        stock = [self.tracker.stock(initial)] + [
            (out.stock_shares, out.stock_price, out.stock_intensity)
            for out in outcomes]
        balance = [out.balance for out in outcomes]
        log.debug(f"Region {region} simulated")
        return RegionResults(
            outcome.shares, outcome.costs, new_sales,
            *(pandas.concat(frames, ignore_index=True)
              for frames in zip(*stock)),
            pandas.concat(balance, ignore_index=True) if balance
            else pandas.DataFrame(columns=BALANCE_COLUMNS))

    def new_sales(self, shares: pandas.DataFrame,
                  prices: pandas.DataFrame) -> pandas.DataFrame:
        """Collect new-sales technology shares, prices and intensities.

        Parameters
        ----------
        shares : pandas.DataFrame
            Share records from evaluator
        prices : pandas.DataFrame
            Price/intensity records

        Returns
        -------
        pandas.DataFrame
            Leaf records with technology share within vehicle type
        """
        leaves = shares[shares["node"].isin(self.topology.leaves)]
        costs = calc_leaf_costs(prices)[
            ALTERNATIVE_KEYS + ["year", "price", "energy_intensity"]].copy()
        costs.loc[~(costs["price"] > 0), "price"] = numpy.nan
        new_sales = leaves.merge(
            costs, "left", on=ALTERNATIVE_KEYS + ["year"])
        vt_share = new_sales.groupby(
            ["region", "year", "vehicle_type"])["total_share"].transform("sum")
        new_sales["share"] = (new_sales["total_share"] / vt_share).fillna(0.0)
        return new_sales[NEW_SALES_COLUMNS]

    def vintage_steps(self, new_sales: pandas.DataFrame,
                      ) -> Tuple[FleetState, List[VintageStep]]:
        """Create initial fleet and annual new-sales steps.

        New-sales shares, prices and intensities are interpolated
        linearly between simulation years.

        Returns
        -------
        FleetState
            Steady-state fleet in first simulation year
        list of VintageStep
            Inputs for all following years
        """
        years = pandas.RangeIndex(self.years[0], self.years[-1] + 1, name="year")

        def annual(frame: pandas.DataFrame, keys: List[str],
                   column: str) -> pandas.DataFrame:
            table = frame.pivot(index="year", columns=keys, values=column)
            return table.reindex(years).interpolate(method="index").bfill().ffill()
        shares = annual(new_sales, ALTERNATIVE_KEYS, "share")
        prices = annual(new_sales, ALTERNATIVE_KEYS, "price")
        intensity = annual(new_sales, ALTERNATIVE_KEYS, "energy_intensity")
        fleet = self._fleet_demand(new_sales)
        if fleet is not None:
            fleet = annual(fleet, ["region", "vehicle_type"], "fleet")

        def step(year: int) -> VintageStep:
            return VintageStep(
                year, shares.loc[year], prices.loc[year], intensity.loc[year],
                None if fleet is None else fleet.loc[year])
        first = step(years[0])
        initial = self.tracker.initial_state(
            first.shares, first.prices, first.intensity, first.year,
            first.fleet_demand)
        return initial, [step(year) for year in years[1:]]

    def _fleet_demand(self, new_sales: pandas.DataFrame,
                      ) -> Optional[pandas.DataFrame]:
        # Fleet is proportional to service demand of vehicle type
        demand = self.data.demand
        if demand is None:
            return None
        region = new_sales["region"].iloc[0]
        demand = demand[demand["region"] == region]
        if demand.empty:
            log.warn(f"No demand for region {region}, fleet kept constant")
            return None
        fleet = new_sales.groupby(
            ["region", "year", "sector", "vehicle_type"],
            as_index=False)["total_share"].sum()
        fleet = fleet.merge(
            demand[["region", "year", "sector", "demand"]], "left",
            on=["region", "year", "sector"])
        fleet["fleet"] = fleet["demand"] * fleet["total_share"]
        covered = fleet.groupby("vehicle_type")["fleet"].transform("count") > 0
        missing = sorted(fleet.loc[~covered, "vehicle_type"].unique())
        if missing:
            log.warn("No demand for {} in region {}, fleet kept constant".format(
                ", ".join(missing), region))
        fleet = fleet[covered]
        if fleet.empty:
            return None
        return fleet

    def write_results(self, results: ModelResults):
        """Save results to tab-separated files."""
        resultdata = self.resultdata
        resultdata.print_data(
            results.preferences, ["region", "node", "year"], "preferences.txt")
        resultdata.print_data(results.clusters, ["region"], "clusters.txt")
        resultdata.print_data(
            results.shares, ["region", "year", "node"], "shares.txt")
        resultdata.print_data(
            results.costs, ["region", "year", "node"], "composite_costs.txt")
        stock_keys = ALTERNATIVE_KEYS + ["year"]
        resultdata.print_data(results.new_sales, stock_keys, "new_sales.txt")
        for table in (results.stock_shares, results.stock_price,
                      results.stock_intensity):
            resultdata.print_data(table, stock_keys, "fleet_stock.txt")
        if not results.balance.empty:
            resultdata.print_data(
                results.balance, ["region", "vehicle_type", "year"],
                "fleet_balance.txt")
        resultdata.print_data(
            results.energy,
            ["region", "year", "sector", "vehicle_type", "technology"],
            "energy_demand.txt")
        resultdata.print_line(
            "Scenario {}: {} regions simulated, failed: {}".format(
                self.switches.name, results.shares["region"].nunique(),
                ", ".join(results.failed_regions) or "none"),
            "summary")
        resultdata.print_line(
            "Switches: " + ", ".join(
                f"{key}={val}" for key, val in self.switches._asdict().items()
                if key != "name"),
            "summary")
        resultdata.flush()
