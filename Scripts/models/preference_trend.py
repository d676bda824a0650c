from __future__ import annotations
from typing import TYPE_CHECKING, Dict, Iterable, List, NamedTuple, Optional, Tuple
import numpy # type: ignore
import pandas

import utils.log as log
import parameters.preference_trend as param
from datatypes.errors import ClusteringIndicatorMissingError
if TYPE_CHECKING:
    from datatypes.nest import NestTopology
    from datatypes.scenario import ScenarioSwitches
    from models.clustering import RegionClusters


TREND_COLUMNS = ["cluster", "node", "target", "convergence_year", "rate"]
ALL_CLUSTERS = "all"


class TrendTarget(NamedTuple):
    target: float
    convergence_year: int
    rate: float


class PreferenceProjection(NamedTuple):
    preferences: pandas.DataFrame
    inconvenience: Optional[pandas.DataFrame]


def convergence_weight(years: Iterable[float], start_year: float,
                       convergence_year: float, rate: float) -> numpy.ndarray:
    """Logistic weight of long-run target in preference trend.

    Rises monotonically from 0 at `start_year` to 1 at `convergence_year`,
    steepest halfway between.

    Parameters
    ----------
    years : iterable of int
        Years to calculate weight for
    start_year : int
        Last calibration year
    convergence_year : int
        Year when target is reached
    rate : float
        Steepness of the S-curve (1/yr)

    Returns
    -------
    numpy.ndarray
        Weights between 0 and 1
    """
    years = numpy.asarray(years, dtype=float)
    if convergence_year <= start_year:
        return (years > start_year).astype(float)
    if rate <= 0:
        msg = f"Convergence rate must be positive, got {rate}"
        log.error(msg)
        raise ValueError(msg)
    mid = 0.5 * (start_year + convergence_year)
    def sigmoid(y):
        return 1 / (1 + numpy.exp(-rate * (y - mid)))
    low = sigmoid(start_year)
    high = sigmoid(convergence_year)
    return numpy.clip((sigmoid(years) - low) / (high - low), 0.0, 1.0)


def inconvenience_decay(years: Iterable[float], start_year: float,
                        rate: float) -> numpy.ndarray:
    """Exponential decay factor of inconvenience costs after `start_year`."""
    years = numpy.asarray(years, dtype=float)
    return numpy.exp(-rate * numpy.maximum(years - start_year, 0.0))


def build_trend_targets(topology: NestTopology,
                        clusters: RegionClusters,
                        switches: ScenarioSwitches) -> pandas.DataFrame:
    """Create default long-run preference targets for scenario.

    The technology favoured by the scenario converges to parity
    with the reference alternative of its nest, other alternative
    technologies to cluster-specific targets.

    Returns
    -------
    pandas.DataFrame
        Columns cluster, node, target, convergence_year, rate
    """
    rows = []
    for leaf in topology.leaves:
        technology = topology[leaf].technology
        if technology == switches.techswitch:
            targets = param.techswitch_target
        elif technology in param.alternative_technologies:
            targets = param.alternative_target
        else:
            continue
        for cluster in clusters.names:
            if cluster in targets:
                rows.append({
                    "cluster": cluster,
                    "node": leaf,
                    "target": targets[cluster],
                    "convergence_year": param.convergence_year,
                    "rate": param.convergence_rate,
                })
    return pandas.DataFrame(rows, columns=TREND_COLUMNS)


class PreferenceTrendProjector:
    """Extrapolate calibrated preferences to all simulation years.

    Between calibration years preferences are interpolated log-linearly.
    After the last calibration year, each node converges from its
    calibrated value towards the long-run target of its region cluster.

    Parameters
    ----------
    clusters : RegionClusters
        Cluster assignment of regions
    trend_targets : pandas.DataFrame
        Columns cluster, node, target, convergence_year, rate.
        Cluster "all" applies to all clusters.
        Nodes without target keep their calibrated value.
    lifestyle : bool (optional)
        Whether lifestyle changes increase long-run preferences
        of active modes and public transport
    techswitch : str (optional)
        Technology favoured by scenario, its inconvenience costs
        decay faster
    share_floor : float (optional)
        Lower bound for preferences
    """

    def __init__(self,
                 clusters: RegionClusters,
                 trend_targets: Optional[pandas.DataFrame] = None,
                 lifestyle: bool = False,
                 techswitch: Optional[str] = None,
                 share_floor: float = param.share_floor):
        self.clusters = clusters
        self.lifestyle = lifestyle
        self.techswitch = techswitch
        self.share_floor = share_floor
        self._targets: Dict[Tuple[str, str], TrendTarget] = {}
        if trend_targets is not None:
            for row in trend_targets.to_dict("records"):
                self._targets[(row["cluster"], row["node"])] = TrendTarget(
                    float(row["target"]), int(row["convergence_year"]),
                    float(row["rate"]))

    def target(self, cluster: str, node: str,
               last_value: float) -> Optional[TrendTarget]:
        """Return long-run target of node in cluster, or None."""
        target = self._targets.get(
            (cluster, node), self._targets.get((ALL_CLUSTERS, node)))
        if self.lifestyle and node in param.lifestyle_nodes:
            if target is None:
                target = TrendTarget(
                    last_value, param.convergence_year, param.convergence_rate)
            target = target._replace(
                target=target.target * param.lifestyle_factor)
        return target

    def trajectory(self, years: numpy.ndarray,
                   calibration_years: numpy.ndarray,
                   calibrated: numpy.ndarray,
                   target: Optional[TrendTarget]) -> numpy.ndarray:
        """Calculate preference of one node for all years.

        Parameters
        ----------
        years : numpy.ndarray
            Simulation years (ascending)
        calibration_years : numpy.ndarray
            Calibration years (ascending)
        calibrated : numpy.ndarray
            Calibrated preferences for calibration years
        target : TrendTarget or None
            Long-run target

        Returns
        -------
        numpy.ndarray
            Preferences for simulation years
        """
        floor = self.share_floor
        # Non-positive preferences are floored, positive ones kept as calibrated
        calibrated = numpy.where(calibrated > 0, calibrated, floor)
        lower = min(floor, calibrated.min())
        log_pref = numpy.interp(years, calibration_years, numpy.log(calibrated))
        if target is not None:
            w = convergence_weight(
                years, calibration_years[-1], target.convergence_year,
                target.rate)
            log_target = numpy.log(max(target.target, floor))
            log_pref = (1 - w) * log_pref + w * log_target
        return numpy.maximum(numpy.exp(log_pref), lower)

    def project(self,
                calibrated: pandas.DataFrame,
                years: Iterable[int],
                inconvenience: Optional[pandas.DataFrame] = None,
                ) -> PreferenceProjection:
        """Project calibrated preferences over simulation years.

        Parameters
        ----------
        calibrated : pandas.DataFrame
            Columns region, node, year, preference
        years : iterable of int
            Simulation years
        inconvenience : pandas.DataFrame (optional)
            Inconvenience cost records (inconvenience cost mode)

        Returns
        -------
        PreferenceProjection
            preferences : pandas.DataFrame
                Columns region, node, year, preference
            inconvenience : pandas.DataFrame or None
                Projected inconvenience costs
        """
        years = numpy.array(sorted(set(years)))
        records: List[pandas.DataFrame] = []
        for (region, node), group in calibrated.groupby(
                ["region", "node"], sort=True):
            if region not in self.clusters:
                raise ClusteringIndicatorMissingError(
                    "Calibrated region not clustered", region)
            group = group.sort_values("year")
            cal_years = group["year"].to_numpy(dtype=float)
            cal_values = group["preference"].to_numpy(dtype=float)
            target = self.target(self.clusters[region], node, cal_values[-1])
            records.append(pandas.DataFrame({
                "region": region,
                "node": node,
                "year": years,
                "preference": self.trajectory(
                    years, cal_years, cal_values, target),
            }))
        preferences = pandas.concat(records, ignore_index=True)
        log.info("Projected preferences for {} nodes to years {}-{}".format(
            len(records), years[0], years[-1]))
        projected_inconvenience = None
        if inconvenience is not None:
            projected_inconvenience = self.project_inconvenience(
                inconvenience, years, int(calibrated["year"].max()))
        return PreferenceProjection(preferences, projected_inconvenience)

    def project_inconvenience(self,
                              inconvenience: pandas.DataFrame,
                              years: Iterable[int],
                              start_year: int) -> pandas.DataFrame:
        """Project inconvenience costs with exponential decay.

        Decay starts from the last value at or before `start_year`
        (or the first value, if none). Supplied values for a year
        are kept as they are.

        Parameters
        ----------
        inconvenience : pandas.DataFrame
            Columns region, vehicle_type, year, cost_adjustment and
            optionally technology
        years : iterable of int
            Simulation years
        start_year : int
            Last calibration year

        Returns
        -------
        pandas.DataFrame
            Same columns as `inconvenience`, for all simulation years
        """
        years = numpy.array(sorted(set(years)))
        keys = [col for col in ("region", "vehicle_type", "technology")
                if col in inconvenience]
        records: List[pandas.DataFrame] = []
        for key, group in inconvenience.groupby(keys, sort=True):
            group = group.sort_values("year")
            supplied = dict(zip(group["year"], group["cost_adjustment"]))
            before = group[group["year"] <= start_year]
            base = group.iloc[0] if before.empty else before.iloc[-1]
            technology = dict(zip(keys, key)).get("technology")
            rate = (param.techswitch_decay_rate
                    if technology is not None and technology == self.techswitch
                    else param.inconvenience_decay_rate)
            decay = inconvenience_decay(years, start_year, rate)
            values = [supplied.get(year, base["cost_adjustment"] * d)
                      for year, d in zip(years, decay)]
            frame = pandas.DataFrame(
                {col: val for col, val in zip(keys, key)}, index=range(len(years)))
            frame["year"] = years
            frame["cost_adjustment"] = values
            records.append(frame)
        return pandas.concat(records, ignore_index=True)


def new_projector(topology: NestTopology,
                  clusters: RegionClusters,
                  switches: ScenarioSwitches,
                  trend_targets: Optional[pandas.DataFrame] = None,
                  ) -> PreferenceTrendProjector:
    """Create projector with scenario defaults for missing trend targets."""
    if trend_targets is None:
        trend_targets = build_trend_targets(topology, clusters, switches)
    return PreferenceTrendProjector(
        clusters, trend_targets, switches.smartlifestyle, switches.techswitch)


def project(calibrated_params: pandas.DataFrame,
            clusters: RegionClusters,
            target_year_grid: Iterable[int],
            trend_targets: Optional[pandas.DataFrame],
            inconvenience_paths: Optional[pandas.DataFrame] = None,
            lifestyle_flag: bool = False,
            techswitch: Optional[str] = None,
            ) -> PreferenceProjection:
    """Project preferences, see `PreferenceTrendProjector.project()`."""
    projector = PreferenceTrendProjector(
        clusters, trend_targets, lifestyle_flag, techswitch)
    return projector.project(
        calibrated_params, target_year_grid, inconvenience_paths)
