from __future__ import annotations
from typing import Callable, Dict, Iterable, List, Mapping, Tuple, Union
import numpy # type: ignore
import pandas

import utils.log as log
import parameters.preference_trend as param
from datatypes.errors import ClusteringIndicatorMissingError


def kmeans_1d(values: numpy.ndarray, nr_clusters: int,
              max_iterations: int = 100) -> Tuple[numpy.ndarray, numpy.ndarray]:
    """Deterministic k-means clustering of one-dimensional data.

    Centers are initialized at evenly spaced quantiles,
    ties are broken towards the lower cluster. An empty cluster
    takes over the value farthest from its current center.

    Parameters
    ----------
    values : numpy.ndarray
        Indicator values
    nr_clusters : int
        Maximum number of clusters

    Returns
    -------
    numpy.ndarray
        Cluster index of each value, numbered by increasing center
    numpy.ndarray
        Cluster centers (ascending)
    """
    k = min(nr_clusters, len(numpy.unique(values)))
    centers = numpy.quantile(values, (numpy.arange(k) + 0.5) / k)
    labels = numpy.full(len(values), -1)
    for _ in range(max_iterations):
        new_labels = numpy.argmin(
            numpy.abs(values[:, numpy.newaxis] - centers), axis=1)
        for i in range(k):
            if not (new_labels == i).any():
                distance = numpy.abs(values - centers[new_labels])
                new_labels[numpy.argmax(distance)] = i
        if (new_labels == labels).all():
            break
        labels = new_labels
        for i in range(k):
            if (labels == i).any():
                centers[i] = values[labels == i].mean()
    used = numpy.unique(labels)
    order = used[numpy.argsort(centers[used], kind="stable")]
    renumber = {old: new for new, old in enumerate(order)}
    return numpy.array([renumber[i] for i in labels]), centers[order]


class RegionClusters:
    """Partition of regions into preference-trend archetypes.

    Regions are clustered on a structural indicator (land-area
    normalized, e.g. urban population density). Assignment is
    computed once and is independent of scenario.

    Parameters
    ----------
    regions : iterable of str
        Regions to cluster
    indicator : callable or mapping
        Lookup region -> indicator value
    nr_clusters : int (optional)
        Number of clusters
    """

    def __init__(self,
                 regions: Iterable[str],
                 indicator: Union[Callable[[str], float], Mapping[str, float]],
                 nr_clusters: int = param.nr_clusters):
        lookup = indicator.get if isinstance(indicator, Mapping) else indicator
        self.regions: List[str] = sorted(set(regions))
        if not self.regions:
            raise ValueError("No regions to cluster")
        values = []
        for region in self.regions:
            try:
                val = lookup(region)
            except KeyError:
                val = None
            if val is None or not numpy.isfinite(val):
                raise ClusteringIndicatorMissingError(
                    "No structural indicator for clustering", region)
            values.append(float(val))
        self.indicator = pandas.Series(values, self.regions, name="indicator")
        labels, centers = kmeans_1d(numpy.array(values), nr_clusters)
        names = param.cluster_names.get(
            len(centers),
            tuple(f"cluster_{i+1}" for i in range(len(centers))))
        self.names: Tuple[str, ...] = tuple(names)
        self.centers = pandas.Series(centers, self.names, name="center")
        self._assignment: Dict[str, str] = {
            region: self.names[i] for region, i in zip(self.regions, labels)}
        for name in self.names:
            log.debug("Cluster {}: {}".format(
                name, ", ".join(self.members(name))))

    def __getitem__(self, region: str) -> str:
        return self._assignment[region]

    def __contains__(self, region: str) -> bool:
        return region in self._assignment

    def members(self, cluster: str) -> List[str]:
        return [region for region in self.regions
                if self._assignment[region] == cluster]

    def to_frame(self) -> pandas.DataFrame:
        return pandas.DataFrame({
            "region": self.regions,
            "cluster": [self._assignment[r] for r in self.regions],
            "indicator": self.indicator.values,
        })
