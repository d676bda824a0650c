from __future__ import annotations
from typing import Dict, NamedTuple, Tuple
from collections import defaultdict
import pandas


class VintageCohort(NamedTuple):
    """Vehicles of one technology purchased in the same year.

    Price and energy intensity are frozen at purchase time.
    """
    region: str
    vehicle_type: str
    technology: str
    purchase_year: int
    initial_quantity: float
    quantity: float
    price: float
    energy_intensity: float

    def age(self, year: int) -> int:
        return year - self.purchase_year


class FleetState(NamedTuple):
    """Immutable snapshot of all active cohorts at the end of a year."""
    year: int
    cohorts: Tuple[VintageCohort, ...]

    def quantities(self) -> Dict[Tuple[str, str], float]:
        """Total fleet quantity per (region, vehicle type)."""
        totals: Dict[Tuple[str, str], float] = defaultdict(float)
        for cohort in self.cohorts:
            totals[(cohort.region, cohort.vehicle_type)] += cohort.quantity
        return dict(totals)

    def total(self) -> float:
        return sum(cohort.quantity for cohort in self.cohorts)

    def to_frame(self) -> pandas.DataFrame:
        frame = pandas.DataFrame(
            list(self.cohorts), columns=VintageCohort._fields)
        frame.insert(0, "year", self.year)
        return frame
