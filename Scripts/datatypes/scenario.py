from __future__ import annotations
from typing import NamedTuple, Optional

import utils.log as log
from parameters.scenario import scenarios


class ScenarioSwitches(NamedTuple):
    """Immutable scenario configuration, passed to every component.

    Attributes
    ----------
    name : str
        EDGE transport scenario name (e.g., ElecEra)
    techswitch : str
        Technology favoured in the long-run preference trends
    inconvenience : bool
        Whether to calibrate partly on inconvenience costs
    smartlifestyle : bool
        Whether lifestyle changes favour active modes and public transport
    merge_traccs : bool
        Whether input data includes bottom-up (TRACCS) data
    enhancedtech : bool
        Whether input data has optimistic alternative technology trends
    rebates_febates : bool
        Whether input prices include rebates and ICE markups
    selfmarket_taxes : bool
        Whether input prices include self-sustaining market taxes
    """
    name: str
    techswitch: str
    inconvenience: bool = False
    smartlifestyle: bool = False
    merge_traccs: bool = False
    enhancedtech: bool = False
    rebates_febates: bool = False
    selfmarket_taxes: bool = False


def new_scenario_switches(name: str,
                          inconvenience: Optional[bool] = None,
                          smartlifestyle: Optional[bool] = None,
                          ) -> ScenarioSwitches:
    """Create scenario switches from scenario name.

    Parameters
    ----------
    name : str
        One of the scenarios in `parameters.scenario.scenarios`
    inconvenience : bool (optional)
        Override the inconvenience option of the scenario
    smartlifestyle : bool (optional)
        Override the lifestyle option of the scenario

    Returns
    -------
    ScenarioSwitches
    """
    try:
        options = dict(scenarios[name])
    except KeyError:
        msg = "Scenario {} not allowed, choose from: {}".format(
            name, ", ".join(scenarios))
        log.error(msg)
        raise ValueError(msg)
    if inconvenience is not None:
        options["inconvenience"] = inconvenience
    if smartlifestyle is not None:
        options["smartlifestyle"] = smartlifestyle
    switches = ScenarioSwitches(name, **options)
    log.info(f"Scenario {name}: favoured technology {switches.techswitch}, "
             + f"inconvenience costs {switches.inconvenience}, "
             + f"lifestyle changes {switches.smartlifestyle}")
    log.debug(f"Scenario {name} input data options: "
              + f"TRACCS data {switches.merge_traccs}, "
              + f"enhanced technology {switches.enhancedtech}, "
              + f"rebates and febates {switches.rebates_febates}, "
              + f"self-sustaining market taxes {switches.selfmarket_taxes}")
    return switches
