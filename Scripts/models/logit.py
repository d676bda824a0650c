from __future__ import annotations
from typing import TYPE_CHECKING, Dict, Iterable, List, NamedTuple, Optional, Tuple
import numpy # type: ignore
import pandas

from datatypes.errors import DegenerateNestError, MissingPriceError
if TYPE_CHECKING:
    from datatypes.nest import NestTopology

import utils.log


KEY_COLUMNS = ["region", "vehicle_type", "technology", "year"]
PRICE_COLUMNS = KEY_COLUMNS + ["non_fuel_cost", "fuel_cost", "energy_intensity"]
SHARE_COLUMNS = ["region", "year", "sector", "level", "parent", "node",
                 "vehicle_type", "technology", "share", "total_share"]
COST_COLUMNS = ["region", "year", "sector", "level", "node",
                "vehicle_type", "technology", "cost", "energy_intensity"]


def log(a):
    with numpy.errstate(divide="ignore"):
        return numpy.log(a)

def logsumexp(a: numpy.ndarray) -> float:
    m = a.max()
    if not numpy.isfinite(m):
        return m
    return m + numpy.log(numpy.exp(a - m).sum())


def nest_logsum(preference: numpy.ndarray, cost: numpy.ndarray,
                exponent: float) -> Tuple[float, numpy.ndarray]:
    """Calculate composite cost and shares of the children of one node.

    composite = (sum_i p_i * c_i^(-1/lambda))^(-lambda)
    share_i = p_i * c_i^(-1/lambda) / sum_j p_j * c_j^(-1/lambda)

    Calculated in log space, to keep steep nests (small exponent)
    within floating point range.

    Parameters
    ----------
    preference : numpy.ndarray
        Positive preferences (share weights) of children
    cost : numpy.ndarray
        Positive (composite) costs of children
    exponent : float
        Logit exponent (lambda > 0) of the parent node

    Returns
    -------
    float
        Composite cost (inclusive value) of the node
    numpy.ndarray
        Shares of children, summing to 1
    """
    utility = log(preference) - log(cost) / exponent
    expsum = logsumexp(utility)
    shares = numpy.exp(utility - expsum)
    return float(numpy.exp(-exponent * expsum)), shares


def calc_leaf_costs(prices: pandas.DataFrame,
                    vot: Optional[pandas.DataFrame] = None,
                    inconvenience: Optional[pandas.DataFrame] = None,
                    ) -> pandas.DataFrame:
    """Calculate effective cost of each (vehicle type, technology) alternative.

    cost = non_fuel_cost + fuel_cost * energy_intensity
           + value of time surcharge + inconvenience cost

    Alternatives with missing or zero price are unavailable (NaN cost).

    Parameters
    ----------
    prices : pandas.DataFrame
        Columns region, vehicle_type, technology, year,
        non_fuel_cost, fuel_cost, energy_intensity
    vot : pandas.DataFrame (optional)
        Columns region, vehicle_type, year, time_cost_per_distance
        (passenger vehicle types only)
    inconvenience : pandas.DataFrame (optional)
        Columns region, vehicle_type, year, cost_adjustment and
        optionally technology

    Returns
    -------
    pandas.DataFrame
        Columns region, vehicle_type, technology, year, price,
        cost, energy_intensity
    """
    costs = prices[PRICE_COLUMNS].copy()
    costs["price"] = (costs["non_fuel_cost"]
                      + costs["fuel_cost"] * costs["energy_intensity"])
    costs["cost"] = costs["price"]
    if vot is not None and not vot.empty:
        vot_keys = ["region", "vehicle_type", "year"]
        costs = costs.merge(
            vot[vot_keys + ["time_cost_per_distance"]], "left", on=vot_keys)
        costs["cost"] += costs.pop("time_cost_per_distance").fillna(0.0)
    if inconvenience is not None and not inconvenience.empty:
        inco_keys = [col for col in KEY_COLUMNS if col in inconvenience]
        costs = costs.merge(
            inconvenience[inco_keys + ["cost_adjustment"]], "left",
            on=inco_keys)
        costs["cost"] += costs.pop("cost_adjustment").fillna(0.0)
    unavailable = ~(costs["price"] > 0) | ~(costs["cost"] > 0)
    costs.loc[unavailable, "cost"] = numpy.nan
    return costs[KEY_COLUMNS + ["price", "cost", "energy_intensity"]]


class NestOutcome(NamedTuple):
    shares: pandas.DataFrame
    costs: pandas.DataFrame


class RegionOutcome(NamedTuple):
    share: Dict[str, float]
    total_share: Dict[str, float]
    cost: Dict[str, float]
    energy_intensity: Dict[str, float]


class NestedShareEvaluator:
    """Nested logit model for vehicle and technology choice.

    Composite costs are aggregated bottom-up from leaf costs,
    shares are calculated top-down from the roots (sectors).

    Parameters
    ----------
    topology : NestTopology
        Decision tree with logit exponents
    """

    def __init__(self, topology: NestTopology):
        self.topology = topology

    def leaf_nodes(self, data: pandas.DataFrame) -> pandas.Series:
        """Map (vehicle_type, technology) rows to leaf node keys.

        Rows for alternatives not in topology get NaN.
        """
        return pandas.Series(
            [self.topology.find_leaf(vt, tech) for vt, tech
             in zip(data["vehicle_type"], data["technology"])],
            data.index, dtype=object)

    def evaluate(self,
                 prices: pandas.DataFrame,
                 preferences: Optional[pandas.DataFrame] = None,
                 vot: Optional[pandas.DataFrame] = None,
                 year: Optional[int] = None,
                 inconvenience: Optional[pandas.DataFrame] = None,
                 required: Optional[Dict[str, Iterable[str]]] = None,
                 ) -> NestOutcome:
        """Calculate shares and composite costs for all regions.

        Parameters
        ----------
        prices : pandas.DataFrame
            Price/intensity records, see `calc_leaf_costs()`
        preferences : pandas.DataFrame (optional)
            Columns region, node, preference and optionally year.
            Missing preferences are 1.
        vot : pandas.DataFrame (optional)
            Value-of-time records
        year : int (optional)
            Evaluate only this year, otherwise all years in `prices`
        inconvenience : pandas.DataFrame (optional)
            Inconvenience cost records
        required : dict (optional)
            key : str
                Region
            value : iterable of str
                Leaf nodes which must have a price

        Returns
        -------
        NestOutcome
            shares : pandas.DataFrame
                Within-parent and total shares of all nodes
            costs : pandas.DataFrame
                Composite costs and intensities of all nodes
        """
        costs = calc_leaf_costs(prices, vot, inconvenience)
        if year is not None:
            costs = costs[costs["year"] == year]
        costs = costs.assign(node=self.leaf_nodes(costs)).dropna(
            subset=["node"])
        prefs = self._preference_lookup(preferences)
        share_records: List[dict] = []
        cost_records: List[dict] = []
        for (region, yr), group in costs.groupby(["region", "year"], sort=True):
            outcome = self.evaluate_region(
                region, yr,
                dict(zip(group["node"], group["cost"])),
                dict(zip(group["node"], group["energy_intensity"])),
                prefs(region, yr),
                () if required is None else required.get(region, ()))
            self._add_records(region, yr, outcome, share_records, cost_records)
        return NestOutcome(
            pandas.DataFrame(share_records, columns=SHARE_COLUMNS),
            pandas.DataFrame(cost_records, columns=COST_COLUMNS))

    def _preference_lookup(self, preferences: Optional[pandas.DataFrame]):
        if preferences is None or preferences.empty:
            return lambda region, year: {}
        if "year" in preferences:
            grouped = {key: dict(zip(df["node"], df["preference"]))
                       for key, df in preferences.groupby(["region", "year"])}
            return lambda region, year: grouped.get((region, year), {})
        grouped = {key: dict(zip(df["node"], df["preference"]))
                   for key, df in preferences.groupby("region")}
        return lambda region, year: grouped.get(region, {})

    def check_prices(self, region: str, year: int,
                     leaf_cost: Dict[str, float], required: Iterable[str]):
        """Raise `MissingPriceError` if a required leaf has no price."""
        for leaf in required:
            c = leaf_cost.get(leaf, numpy.nan)
            if not (c > 0):
                raise MissingPriceError(
                    "No price for required alternative", region, leaf, year)

    def evaluate_region(self,
                        region: str,
                        year: int,
                        leaf_cost: Dict[str, float],
                        leaf_intensity: Dict[str, float],
                        preference: Dict[str, float],
                        required: Iterable[str] = (),
                        ) -> RegionOutcome:
        """Calculate shares and composite costs for one region and year.

        Parameters
        ----------
        region : str
            Region name (used in messages)
        year : int
            Year (used in messages)
        leaf_cost : dict
            key : str
                Leaf node
            value : float
                Effective cost, NaN or non-positive if unavailable
        leaf_intensity : dict
            key : str
                Leaf node
            value : float
                Energy intensity
        preference : dict
            key : str
                Node
            value : float
                Preference (share weight), missing means 1
        required : iterable of str (optional)
            Leaf nodes which must have a price

        Returns
        -------
        RegionOutcome

        Raises
        ------
        MissingPriceError
            If a required leaf has no price
        DegenerateNestError
            If no alternative is available in a sector
        """
        topology = self.topology
        self.check_prices(region, year, leaf_cost, required)
        cost: Dict[str, float] = {}
        intensity: Dict[str, float] = {}
        share: Dict[str, float] = {}
        for node in topology.bottom_up():
            if topology.is_leaf(node):
                c = leaf_cost.get(node, numpy.nan)
                if c > 0:
                    cost[node] = float(c)
                    e = leaf_intensity.get(node, 0.0)
                    intensity[node] = float(e) if e == e else 0.0
                else:
                    utils.log.debug(
                        f"Alternative {node} unavailable in {region} {year}")
                continue
            children = [child for child in topology.children(node)
                        if child in cost and preference.get(child, 1.0) > 0]
            if not children:
                if topology[node].parent is None:
                    raise DegenerateNestError(
                        "No available alternatives in sector",
                        region, node, year)
                utils.log.warn(
                    f"Nest {node} has no available alternatives in "
                    + f"{region} {year}, excluded from choice set")
                continue
            composite, shares = nest_logsum(
                numpy.array([preference.get(child, 1.0) for child in children]),
                numpy.array([cost[child] for child in children]),
                topology.exponent(node))
            cost[node] = composite
            intensity[node] = float(numpy.dot(
                shares, [intensity[child] for child in children]))
            share.update(zip(children, shares.tolist()))
        total_share: Dict[str, float] = {}
        for node in topology.top_down():
            parent = topology[node].parent
            if parent is None:
                share[node] = 1.0
                total_share[node] = 1.0
            else:
                share.setdefault(node, 0.0)
                total_share[node] = total_share[parent] * share[node]
        return RegionOutcome(share, total_share, cost, intensity)

    def _add_records(self, region: str, year: int, outcome: RegionOutcome,
                     share_records: List[dict], cost_records: List[dict]):
        for node in self.topology.top_down():
            n = self.topology[node]
            share_records.append({
                "region": region,
                "year": year,
                "sector": n.sector,
                "level": n.level,
                "parent": n.parent,
                "node": node,
                "vehicle_type": n.vehicle_type,
                "technology": n.technology,
                "share": outcome.share[node],
                "total_share": outcome.total_share[node],
            })
            cost_records.append({
                "region": region,
                "year": year,
                "sector": n.sector,
                "level": n.level,
                "node": node,
                "vehicle_type": n.vehicle_type,
                "technology": n.technology,
                "cost": outcome.cost.get(node, numpy.nan),
                "energy_intensity": outcome.energy_intensity.get(
                    node, numpy.nan),
            })


def evaluate(nest_topology: NestTopology,
             price_records: pandas.DataFrame,
             preference_params: Optional[pandas.DataFrame],
             vot_data: Optional[pandas.DataFrame],
             year: Optional[int] = None,
             inconvenience: Optional[pandas.DataFrame] = None,
             ) -> NestOutcome:
    """Evaluate nested logit shares and composite costs.

    See `NestedShareEvaluator.evaluate()`.
    """
    return NestedShareEvaluator(nest_topology).evaluate(
        price_records, preference_params, vot_data, year, inconvenience)
