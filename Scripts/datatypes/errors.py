from typing import Optional


class EdgeTransportError(Exception):
    """Base class for errors carrying the (region, node, year) key.

    Parameters
    ----------
    msg : str
        Description of the problem
    region : str (optional)
        Region where the problem occurred
    node : str (optional)
        Nest node (or vehicle type/technology) concerned
    year : int (optional)
        Simulation year concerned
    """

    def __init__(self, msg: str,
                 region: Optional[str] = None,
                 node: Optional[str] = None,
                 year: Optional[int] = None):
        self.region = region
        self.node = node
        self.year = year
        key = ", ".join(
            f"{name}={val}" for name, val
            in (("region", region), ("node", node), ("year", year))
            if val is not None)
        super().__init__(f"{msg} ({key})" if key else msg)


class MissingPriceError(EdgeTransportError):
    """A leaf required downstream has no price for a region/year."""


class DegenerateNestError(EdgeTransportError):
    """All children under a node are unavailable.

    Halts processing for the region concerned only.
    """


class CalibrationDataGapError(EdgeTransportError):
    """Price data for an observed node is missing at the reference year.

    Always fatal.
    """


class FleetIntegrityError(EdgeTransportError):
    """A vintage cohort got a negative or NaN quantity.

    Always fatal.
    """


class ClusteringIndicatorMissingError(EdgeTransportError):
    """A region lacks the structural indicator used for clustering."""
