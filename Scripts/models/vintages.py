from __future__ import annotations
from typing import Dict, Iterable, List, NamedTuple, Optional, Tuple
from collections import defaultdict
import numpy # type: ignore
import pandas

import utils.log as log
import parameters.vintages as param
from datatypes.errors import FleetIntegrityError
from datatypes.fleet import FleetState, VintageCohort


DEFAULT_TECHNOLOGY = "default"
STOCK_KEYS = ["region", "vehicle_type", "technology", "year"]
BALANCE_COLUMNS = ["region", "vehicle_type", "year", "prior_stock",
                   "retirements", "new_sales", "stock"]


class SurvivalSchedule:
    """Share of vehicles still in service as function of age.

    Parameters
    ----------
    table : pandas.DataFrame
        Columns technology, age, surviving_fraction.
        Technology "default" applies to technologies without own curve.
        Ages between listed ages keep the previous fraction, ages before
        the first listed age survive fully.

    Raises
    ------
    ValueError
        If a curve is not non-increasing within [0, 1] or does not
        reach 0 (maximum service life)
    """

    def __init__(self, table: pandas.DataFrame):
        self._curves: Dict[str, numpy.ndarray] = {}
        for technology, group in table.groupby("technology", sort=True):
            ages = group["age"].to_numpy(dtype=int)
            fractions = group["surviving_fraction"].to_numpy(dtype=float)
            order = numpy.argsort(ages, kind="stable")
            ages, fractions = ages[order], fractions[order]
            if (ages < 0).any():
                msg = f"Negative age in survival schedule of {technology}"
                log.error(msg)
                raise ValueError(msg)
            curve = numpy.ones(ages[-1] + 1)
            for age, fraction in zip(ages, fractions):
                curve[age:] = fraction
            if not ((curve >= 0) & (curve <= 1)).all():
                msg = f"Survival of {technology} not within [0, 1]"
                log.error(msg)
                raise ValueError(msg)
            if (numpy.diff(curve) > 0).any():
                msg = f"Survival of {technology} increases with age"
                log.error(msg)
                raise ValueError(msg)
            if curve[-1] != 0:
                msg = f"Survival of {technology} never reaches zero"
                log.error(msg)
                raise ValueError(msg)
            self._curves[str(technology)] = curve

    @classmethod
    def weibull(cls,
                service_life: int = param.service_life,
                shape: float = param.weibull_shape,
                scale: float = param.weibull_scale) -> SurvivalSchedule:
        """Create default schedule from Weibull curve truncated at service life."""
        ages = numpy.arange(service_life + 1)
        fractions = numpy.exp(-(ages / scale) ** shape)
        fractions[service_life:] = 0.0
        return cls(pandas.DataFrame({
            "technology": DEFAULT_TECHNOLOGY,
            "age": ages,
            "surviving_fraction": fractions,
        }))

    def curve(self, technology: str) -> numpy.ndarray:
        try:
            return self._curves[technology]
        except KeyError:
            try:
                return self._curves[DEFAULT_TECHNOLOGY]
            except KeyError:
                msg = f"No survival schedule for {technology} and no default"
                log.error(msg)
                raise ValueError(msg)

    def fraction(self, technology: str, age: int) -> float:
        curve = self.curve(technology)
        if age < 0:
            return 1.0
        if age >= len(curve):
            return 0.0
        return float(curve[age])

    def max_age(self, technology: str) -> int:
        """First age with zero survival (maximum service life)."""
        return int(numpy.argmax(self.curve(technology) == 0))


class VintageOutcome(NamedTuple):
    fleet: FleetState
    stock_shares: pandas.DataFrame
    stock_price: pandas.DataFrame
    stock_intensity: pandas.DataFrame
    balance: pandas.DataFrame


class VintageStep(NamedTuple):
    """New-sales input for one year of the vintage fold.

    Series are indexed by (region, vehicle_type, technology),
    `fleet_demand` by (region, vehicle_type).
    """
    year: int
    shares: pandas.Series
    prices: pandas.Series
    intensity: pandas.Series
    fleet_demand: Optional[pandas.Series] = None


def _fleet_size(fleet_demand: Optional[pandas.Series],
                key: Tuple[str, str]) -> Optional[float]:
    # None when fleet of (region, vehicle_type) is kept constant
    if fleet_demand is None:
        return None
    size = float(fleet_demand.get(key, numpy.nan))
    return None if numpy.isnan(size) else size


def _check_quantity(quantity: float, region: str, vehicle_type: str,
                    technology: str, year: int):
    if not (quantity >= 0):
        raise FleetIntegrityError(
            f"Invalid cohort quantity {quantity}",
            region, f"{vehicle_type}/{technology}", year)


class VintageStockTracker:
    """Age-structured vehicle fleet blending new sales with old stock.

    Fleets are tracked per (region, vehicle type), cohorts per
    technology and purchase year.

    Parameters
    ----------
    survival : SurvivalSchedule
        Retirement schedule of vehicles
    """

    def __init__(self, survival: SurvivalSchedule):
        self.survival = survival

    def _group_shares(self, shares: pandas.Series,
                      year: int) -> Dict[Tuple[str, str], List[Tuple[str, float]]]:
        grouped: Dict[Tuple[str, str], List[Tuple[str, float]]] = defaultdict(list)
        for (region, vehicle_type, technology), share in sorted(shares.items()):
            _check_quantity(share, region, vehicle_type, technology, year)
            grouped[(region, vehicle_type)].append((technology, float(share)))
        for key, techs in grouped.items():
            total = sum(share for _, share in techs)
            if total > 0:
                grouped[key] = [(tech, share / total) for tech, share in techs]
            else:
                log.warn(f"No new sales shares for {key} in {year}")
        return grouped

    def _new_cohort(self, key: Tuple[str, str], technology: str,
                    year: int, quantity: float, age: int,
                    prices: pandas.Series,
                    intensity: pandas.Series) -> VintageCohort:
        region, vehicle_type = key
        price = float(prices.get((region, vehicle_type, technology), numpy.nan))
        energy_intensity = float(
            intensity.get((region, vehicle_type, technology), numpy.nan))
        if not (numpy.isfinite(price) and numpy.isfinite(energy_intensity)):
            raise FleetIntegrityError(
                "New cohort without price or intensity",
                region, f"{vehicle_type}/{technology}", year)
        survival = self.survival.fraction(technology, age)
        return VintageCohort(
            region, vehicle_type, technology, year - age,
            quantity / survival if survival > 0 else quantity, quantity,
            price, energy_intensity)

    def initial_state(self,
                      new_sales_shares: pandas.Series,
                      new_sales_prices: pandas.Series,
                      new_sales_intensity: pandas.Series,
                      year: int,
                      fleet_demand: Optional[pandas.Series] = None,
                      ) -> FleetState:
        """Create steady-state fleet with base year composition.

        Each technology gets cohorts for all ages in service,
        sized by the survival curve, with base year price and intensity.

        Parameters
        ----------
        new_sales_shares : pandas.Series
            Technology shares, index (region, vehicle_type, technology)
        new_sales_prices : pandas.Series
            Technology prices, same index
        new_sales_intensity : pandas.Series
            Technology energy intensities, same index
        year : int
            Base year
        fleet_demand : pandas.Series (optional)
            Fleet size, index (region, vehicle_type), default 1
            (also for missing keys)

        Returns
        -------
        FleetState
        """
        cohorts: List[VintageCohort] = []
        for key, techs in self._group_shares(new_sales_shares, year).items():
            size = _fleet_size(fleet_demand, key)
            total = 1.0 if size is None else size
            _check_quantity(total, *key, "all", year)
            for technology, share in techs:
                curve = self.survival.curve(technology)
                ages = numpy.flatnonzero(curve > 0)
                weights = curve[ages] / curve[ages].sum()
                for age, weight in zip(ages, weights):
                    quantity = total * share * weight
                    if quantity > 0:
                        cohorts.append(self._new_cohort(
                            key, technology, year, quantity, int(age),
                            new_sales_prices, new_sales_intensity))
        return FleetState(year, tuple(cohorts))

    def advance(self,
                prior: FleetState,
                new_sales_shares: pandas.Series,
                new_sales_prices: pandas.Series,
                new_sales_intensity: pandas.Series,
                year: int,
                fleet_demand: Optional[pandas.Series] = None,
                ) -> VintageOutcome:
        """Age fleet to `year` and add the cohort purchased in `year`.

        Total new sales fill the gap between `fleet_demand` and the
        surviving fleet (never negative). Without fleet demand for
        a (region, vehicle type), its retired vehicles are replaced.

        Parameters
        ----------
        prior : FleetState
            Fleet at the end of the previous simulation step
        new_sales_shares : pandas.Series
            Technology shares of new sales,
            index (region, vehicle_type, technology)
        new_sales_prices : pandas.Series
            Prices of new vehicles, same index
        new_sales_intensity : pandas.Series
            Energy intensities of new vehicles, same index
        year : int
            Year to advance to
        fleet_demand : pandas.Series (optional)
            Target fleet size, index (region, vehicle_type)

        Returns
        -------
        VintageOutcome

        Raises
        ------
        FleetIntegrityError
            If a cohort quantity gets negative or NaN
        """
        if year <= prior.year:
            msg = f"Cannot advance fleet from {prior.year} to {year}"
            log.error(msg)
            raise ValueError(msg)
        cohorts: List[VintageCohort] = []
        prior_stock: Dict[Tuple[str, str], float] = defaultdict(float)
        surviving: Dict[Tuple[str, str], float] = defaultdict(float)
        retired: Dict[Tuple[str, str], float] = defaultdict(float)
        for cohort in prior.cohorts:
            key = (cohort.region, cohort.vehicle_type)
            old = self.survival.fraction(
                cohort.technology, cohort.age(prior.year))
            new = self.survival.fraction(cohort.technology, cohort.age(year))
            quantity = cohort.quantity * new / old if old > 0 else 0.0
            _check_quantity(quantity, *key, cohort.technology, year)
            prior_stock[key] += cohort.quantity
            retired[key] += cohort.quantity - quantity
            if quantity > 0:
                surviving[key] += quantity
                cohorts.append(cohort._replace(quantity=quantity))
        new_sales: Dict[Tuple[str, str], float] = defaultdict(float)
        grouped = self._group_shares(new_sales_shares, year)
        for key, techs in grouped.items():
            size = _fleet_size(fleet_demand, key)
            if size is None:
                total = retired[key]
            else:
                total = max(size - surviving[key], 0.0)
            _check_quantity(total, *key, "all", year)
            for technology, share in techs:
                quantity = share * total
                if quantity > 0:
                    cohorts.append(self._new_cohort(
                        key, technology, year, quantity, 0,
                        new_sales_prices, new_sales_intensity))
                    new_sales[key] += quantity
        state = FleetState(year, tuple(cohorts))
        keys = sorted(set(prior_stock) | set(grouped))
        balance = pandas.DataFrame(
            [(*key, year, prior_stock[key], retired[key], new_sales[key],
              surviving[key] + new_sales[key]) for key in keys],
            columns=BALANCE_COLUMNS)
        return VintageOutcome(state, *self.stock(state), balance)

    def stock(self, state: FleetState) -> Tuple[pandas.DataFrame, ...]:
        """Aggregate cohorts to stock shares, prices and intensities.

        Returns
        -------
        pandas.DataFrame
            Stock shares (columns region, vehicle_type, technology,
            year, quantity, stock_share)
        pandas.DataFrame
            Quantity-weighted prices (column price)
        pandas.DataFrame
            Quantity-weighted energy intensities (column energy_intensity)
        """
        cohorts = state.to_frame()
        cohorts["price"] *= cohorts["quantity"]
        cohorts["energy_intensity"] *= cohorts["quantity"]
        stock = cohorts.groupby(STOCK_KEYS, sort=True)[
            ["quantity", "price", "energy_intensity"]].sum().reset_index()
        stock["price"] /= stock["quantity"]
        stock["energy_intensity"] /= stock["quantity"]
        stock["stock_share"] = stock["quantity"] / stock.groupby(
            ["region", "vehicle_type"])["quantity"].transform("sum")
        return (stock[STOCK_KEYS + ["quantity", "stock_share"]],
                stock[STOCK_KEYS + ["price"]],
                stock[STOCK_KEYS + ["energy_intensity"]])


def fold_vintages(tracker: VintageStockTracker,
                  initial: FleetState,
                  steps: Iterable[VintageStep]) -> List[VintageOutcome]:
    """Fold yearly new-sales inputs into the fleet, in increasing year order.

    Parameters
    ----------
    tracker : VintageStockTracker
        Fleet model
    initial : FleetState
        Fleet before the first step
    steps : iterable of VintageStep
        New-sales inputs, in increasing year order

    Returns
    -------
    list of VintageOutcome
        One outcome per step
    """
    outcomes: List[VintageOutcome] = []
    state = initial
    for step in steps:
        outcome = tracker.advance(
            state, step.shares, step.prices, step.intensity, step.year,
            step.fleet_demand)
        outcomes.append(outcome)
        state = outcome.fleet
    return outcomes
