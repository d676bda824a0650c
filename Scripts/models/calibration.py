from __future__ import annotations
from typing import TYPE_CHECKING, Dict, Iterable, List, Optional
import numpy # type: ignore
import pandas

import utils.log as log
import parameters.preference_trend as param
from datatypes.errors import CalibrationDataGapError, MissingPriceError
from models.logit import NestedShareEvaluator, calc_leaf_costs, nest_logsum
if TYPE_CHECKING:
    from datatypes.nest import NestTopology
    from datatypes.scenario import ScenarioSwitches


PREFERENCE_COLUMNS = ["region", "node", "year", "preference"]


class Calibrator:
    """Calibrate preferences (share weights) on observed shares.

    Inverts the nested logit node by node, bottom-up.
    Within each nest, the preference of child i solves

        s_i = p_i * c_i^(-1/lambda) / sum_j p_j * c_j^(-1/lambda)

    in closed form: p_i = s_i / (c_i^(-1/lambda) * k), where k is fixed
    so that the child with the largest observed share gets preference 1.
    The composite cost of the calibrated nest is then used as cost
    of the nest at the next level up.

    Parameters
    ----------
    topology : NestTopology
        Decision tree with logit exponents
    share_floor : float (optional)
        Share given to available alternatives with zero observed share,
        and preference of alternatives without price
    """
    mode = "preference"

    def __init__(self,
                 topology: NestTopology,
                 share_floor: float = param.share_floor):
        self.topology = topology
        self.evaluator = NestedShareEvaluator(topology)
        self.share_floor = share_floor

    def leaf_costs(self,
                   prices: pandas.DataFrame,
                   vot: Optional[pandas.DataFrame] = None,
                   inconvenience: Optional[pandas.DataFrame] = None,
                   ) -> pandas.DataFrame:
        """Effective leaf costs on which preferences are calibrated."""
        return calc_leaf_costs(prices, vot)

    def calibrate(self,
                  observed_shares: pandas.DataFrame,
                  prices: pandas.DataFrame,
                  vot: Optional[pandas.DataFrame],
                  reference_year: int,
                  inconvenience: Optional[pandas.DataFrame] = None,
                  ) -> pandas.DataFrame:
        """Calibrate preferences for all regions in a reference year.

        Parameters
        ----------
        observed_shares : pandas.DataFrame
            Columns region, vehicle_type, technology, reference_year,
            observed_share (share of sector total)
        prices : pandas.DataFrame
            Price/intensity records
        vot : pandas.DataFrame
            Value-of-time records (can be None)
        reference_year : int
            Historical year to calibrate
        inconvenience : pandas.DataFrame (optional)
            Inconvenience cost records

        Returns
        -------
        pandas.DataFrame
            Columns region, node, year, preference

        Raises
        ------
        CalibrationDataGapError
            If an alternative with observed demand has no price
        """
        observed = observed_shares[
            observed_shares["reference_year"] == reference_year]
        observed = observed.assign(node=self.evaluator.leaf_nodes(observed))
        unknown = observed[observed["node"].isna()]
        for vt, tech in zip(unknown["vehicle_type"], unknown["technology"]):
            log.warn(f"Observed alternative {vt} {tech} not in nest topology")
        observed = observed.dropna(subset=["node"])
        costs = self.leaf_costs(
            prices[prices["year"] == reference_year], vot, inconvenience)
        costs = costs.assign(node=self.evaluator.leaf_nodes(costs))
        records: List[dict] = []
        for region in sorted(observed["region"].unique()):
            region_obs = observed[observed["region"] == region]
            region_costs = costs[costs["region"] == region].dropna(
                subset=["node"])
            preference = self.calibrate_region(
                region, reference_year,
                region_obs.groupby("node")["observed_share"].sum().to_dict(),
                dict(zip(region_costs["node"], region_costs["cost"])))
            for node in self.topology.top_down():
                records.append({
                    "region": region,
                    "node": node,
                    "year": reference_year,
                    "preference": preference[node],
                })
        log.info("Calibrated {} preferences for {} regions in {}".format(
            self.mode, observed["region"].nunique(), reference_year))
        return pandas.DataFrame(records, columns=PREFERENCE_COLUMNS)

    def calibrate_years(self,
                        observed_shares: pandas.DataFrame,
                        prices: pandas.DataFrame,
                        vot: Optional[pandas.DataFrame],
                        reference_years: Iterable[int],
                        inconvenience: Optional[pandas.DataFrame] = None,
                        ) -> pandas.DataFrame:
        """Calibrate preferences for several reference years."""
        return pandas.concat(
            [self.calibrate(observed_shares, prices, vot, year, inconvenience)
             for year in sorted(reference_years)],
            ignore_index=True)

    def calibrate_region(self,
                         region: str,
                         year: int,
                         observed: Dict[str, float],
                         leaf_cost: Dict[str, float],
                         ) -> Dict[str, float]:
        """Calibrate preferences of all nodes in one region.

        Parameters
        ----------
        region : str
            Region name
        year : int
            Reference year
        observed : dict
            key : str
                Leaf node
            value : float
                Observed share (or demand) of alternative
        leaf_cost : dict
            key : str
                Leaf node
            value : float
                Effective cost, NaN if no price

        Returns
        -------
        dict
            key : str
                Node
            value : float
                Calibrated preference
        """
        topology = self.topology
        demand: Dict[str, float] = {}
        for node in topology.bottom_up():
            if topology.is_leaf(node):
                val = observed.get(node, 0.0)
                if val < 0:
                    msg = f"Negative observed share for {node} in {region}"
                    log.error(msg)
                    raise ValueError(msg)
                demand[node] = val if val == val else 0.0
            else:
                demand[node] = sum(
                    demand[child] for child in topology.children(node))
        try:
            self.evaluator.check_prices(
                region, year, leaf_cost,
                [leaf for leaf in topology.leaves if demand[leaf] > 0])
        except MissingPriceError as error:
            log.error(str(error))
            raise CalibrationDataGapError(
                "No price for observed alternative",
                error.region, error.node, error.year) from error
        cost: Dict[str, float] = {}
        preference: Dict[str, float] = {}
        for node in topology.bottom_up():
            if topology.is_leaf(node):
                c = leaf_cost.get(node, numpy.nan)
                if c > 0:
                    cost[node] = float(c)
                continue
            children = topology.children(node)
            available = [child for child in children if child in cost]
            for child in children:
                if child not in cost:
                    preference[child] = self.share_floor
            if not available:
                log.warn(f"Nest {node} unavailable in {region} {year}")
                continue
            exponent = topology.exponent(node)
            c = numpy.array([cost[child] for child in available])
            total = sum(demand[child] for child in available)
            if total > 0:
                s = numpy.array([demand[child] for child in available]) / total
                # Zero observed share is reproduced as share_floor
                s = numpy.where(s > 0, s, self.share_floor)
                ref = int(numpy.argmax(s))
                pref = numpy.exp(numpy.log(s) - numpy.log(s[ref])
                                 + (numpy.log(c) - numpy.log(c[ref])) / exponent)
            else:
                # Nest without observed demand, keep neutral preferences
                pref = numpy.ones(len(available))
            preference.update(zip(available, pref.tolist()))
            cost[node], _ = nest_logsum(pref, c, exponent)
        for root in topology.roots:
            preference[root] = 1.0
        return preference


class InconvenienceCalibrator(Calibrator):
    """Calibrate preferences after accounting for inconvenience costs.

    Exogenous non-price costs (e.g., limited model availability,
    range anxiety) are added to leaf costs before the same inversion,
    so the calibrated preferences capture only residual taste.
    """
    mode = "inconvenience"

    def leaf_costs(self,
                   prices: pandas.DataFrame,
                   vot: Optional[pandas.DataFrame] = None,
                   inconvenience: Optional[pandas.DataFrame] = None,
                   ) -> pandas.DataFrame:
        if inconvenience is None:
            msg = "Inconvenience cost calibration requires inconvenience costs"
            log.error(msg)
            raise ValueError(msg)
        return calc_leaf_costs(prices, vot, inconvenience)


def new_calibrator(topology: NestTopology,
                   switches: ScenarioSwitches,
                   share_floor: float = param.share_floor) -> Calibrator:
    """Create calibrator for the calibration mode of the scenario."""
    if switches.inconvenience:
        return InconvenienceCalibrator(topology, share_floor)
    return Calibrator(topology, share_floor)


def calibrate(nest_topology: NestTopology,
              observed_shares: pandas.DataFrame,
              price_records: pandas.DataFrame,
              vot_data: Optional[pandas.DataFrame],
              reference_year: int,
              mode: str = "preference",
              inconvenience: Optional[pandas.DataFrame] = None,
              ) -> pandas.DataFrame:
    """Calibrate preferences with calibrator of given mode.

    See `Calibrator.calibrate()`.
    """
    calibrators = {
        Calibrator.mode: Calibrator,
        InconvenienceCalibrator.mode: InconvenienceCalibrator,
    }
    try:
        calibrator = calibrators[mode](nest_topology)
    except KeyError:
        msg = f"Calibration mode {mode} not in {list(calibrators)}"
        log.error(msg)
        raise ValueError(msg)
    return calibrator.calibrate(
        observed_shares, price_records, vot_data, reference_year,
        inconvenience)
