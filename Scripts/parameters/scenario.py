### EDGE TRANSPORT SCENARIOS ###
from typing import Dict, Union


# Scenario options
# techswitch : str
#     Technology favoured in the long-run preference trends
# inconvenience : bool
#     Whether preferences for cars are partly expressed as
#     inconvenience costs (hybrid calibration)
# smartlifestyle : bool
#     Whether lifestyle changes favour active modes and public transport
# merge_traccs : bool
#     Whether input data includes bottom-up (TRACCS) data for Europe
# enhancedtech : bool
#     Whether input data has optimistic cost/performance trends
#     of alternative technologies
# rebates_febates : bool
#     Whether input prices include purchase rebates and ICE markups
# selfmarket_taxes : bool
#     Whether input prices include taxes of a self-sustaining market
scenarios: Dict[str, Dict[str, Union[str, bool]]] = {
    "ConvCase": {
        "techswitch": "Liquids",
        "inconvenience": True,
        "smartlifestyle": False,
        "merge_traccs": True,
        "enhancedtech": False,
        "rebates_febates": False,
        "selfmarket_taxes": False,
    },
    "ConvCaseWise": {
        "techswitch": "Liquids",
        "inconvenience": True,
        "smartlifestyle": True,
        "merge_traccs": True,
        "enhancedtech": False,
        "rebates_febates": False,
        "selfmarket_taxes": False,
    },
    "ElecEra": {
        "techswitch": "BEV",
        "inconvenience": True,
        "smartlifestyle": False,
        "merge_traccs": True,
        "enhancedtech": True,
        "rebates_febates": True,
        "selfmarket_taxes": True,
    },
    "ElecEraWise": {
        "techswitch": "BEV",
        "inconvenience": True,
        "smartlifestyle": True,
        "merge_traccs": True,
        "enhancedtech": True,
        "rebates_febates": True,
        "selfmarket_taxes": True,
    },
    "HydrHype": {
        "techswitch": "FCEV",
        "inconvenience": True,
        "smartlifestyle": False,
        "merge_traccs": True,
        "enhancedtech": True,
        "rebates_febates": False,
        "selfmarket_taxes": True,
    },
    "HydrHypeWise": {
        "techswitch": "FCEV",
        "inconvenience": True,
        "smartlifestyle": True,
        "merge_traccs": True,
        "enhancedtech": True,
        "rebates_febates": False,
        "selfmarket_taxes": True,
    },
}
