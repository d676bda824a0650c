from __future__ import annotations
from typing import Optional
import pandas

import utils.log as log


ENERGY_COLUMNS = ["region", "year", "sector", "vehicle_type", "technology",
                  "vehicle_type_share", "technology_share", "service_demand",
                  "energy_intensity", "final_energy"]


def calc_energy_demand(leaf_shares: pandas.DataFrame,
                       stock_shares: Optional[pandas.DataFrame] = None,
                       stock_intensity: Optional[pandas.DataFrame] = None,
                       demand: Optional[pandas.DataFrame] = None,
                       ) -> pandas.DataFrame:
    """Calculate service demand and final energy per technology.

    Sector demand is split to vehicle types with the evaluated
    (new-sales) shares, and to technologies with fleet stock shares.
    Vehicle types without fleet use new-sales technology shares
    and intensities.

    Parameters
    ----------
    leaf_shares : pandas.DataFrame
        Columns region, year, sector, vehicle_type, technology,
        total_share (share of sector total) and energy_intensity
    stock_shares : pandas.DataFrame (optional)
        Columns region, vehicle_type, technology, year, stock_share
    stock_intensity : pandas.DataFrame (optional)
        Columns region, vehicle_type, technology, year, energy_intensity
    demand : pandas.DataFrame (optional)
        Columns region, year, sector, demand.
        If not given, sector demand is 1 (shares only).

    Returns
    -------
    pandas.DataFrame
        Columns region, year, sector, vehicle_type, technology,
        vehicle_type_share, technology_share, service_demand,
        energy_intensity, final_energy
    """
    keys = ["region", "year", "sector", "vehicle_type"]
    energy = leaf_shares[keys + ["technology", "total_share", "energy_intensity"]]
    energy = energy.assign(vehicle_type_share=energy.groupby(
        keys)["total_share"].transform("sum"))
    energy = energy.assign(technology_share=(
        energy["total_share"] / energy["vehicle_type_share"]).fillna(0.0))
    if stock_shares is not None and not stock_shares.empty:
        stock_keys = ["region", "vehicle_type", "technology", "year"]
        stock = stock_shares[stock_keys + ["stock_share"]].merge(
            stock_intensity[stock_keys + ["energy_intensity"]], on=stock_keys)
        stock = stock.rename(
            columns={"energy_intensity": "stock_intensity"})
        # Stock of vehicle type may include technologies without new sales
        energy = energy.merge(stock, "outer", on=stock_keys)
        energy["sector"] = energy.groupby(
            ["region", "year", "vehicle_type"])["sector"].transform("first")
        energy["vehicle_type_share"] = energy.groupby(
            ["region", "year", "vehicle_type"])["vehicle_type_share"].transform("max")
        energy = energy.dropna(subset=["vehicle_type_share"]).copy()
        group = [energy["region"], energy["year"], energy["vehicle_type"]]
        has_stock = energy["stock_share"].notna().groupby(group).transform("any")
        energy.loc[has_stock, "technology_share"] = (
            energy.loc[has_stock, "stock_share"].fillna(0.0))
        energy.loc[has_stock, "energy_intensity"] = (
            energy.loc[has_stock, "stock_intensity"])
    if demand is None:
        energy["demand"] = 1.0
    else:
        energy = energy.merge(
            demand[["region", "year", "sector", "demand"]], "left",
            on=["region", "year", "sector"])
        missing = energy["demand"].isna()
        if missing.any():
            log.warn("No demand for {} records, e.g., {}".format(
                missing.sum(),
                tuple(energy.loc[missing, ["region", "year", "sector"]].iloc[0])))
    energy["service_demand"] = (energy["demand"]
                                * energy["vehicle_type_share"]
                                * energy["technology_share"])
    energy["final_energy"] = (energy["service_demand"]
                              * energy["energy_intensity"].fillna(0.0))
    return energy[ENERGY_COLUMNS].sort_values(
        ["region", "year", "sector", "vehicle_type", "technology"],
        ignore_index=True)
