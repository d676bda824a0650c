### PREFERENCE TREND PARAMETERS ###
from typing import Dict, List, Tuple


# Lower bound for preferences, keeps unused alternatives available
# for future price/preference drift
share_floor = 1e-9

# Cluster names by number of clusters, ordered by increasing density
nr_clusters = 3
cluster_names: Dict[int, Tuple[str, ...]] = {
    2: ("low_density", "high_density"),
    3: ("low_density", "medium_density", "high_density"),
}

# Default convergence of preferences towards long-run targets
convergence_year = 2100
convergence_rate = 0.15

# Long-run preference of the technology favoured by the scenario,
# relative to the reference (largest share) sibling
techswitch_target: Dict[str, float] = {
    "low_density": 1.0,
    "medium_density": 1.0,
    "high_density": 1.0,
}

# Long-run preferences of other alternative technologies
alternative_technologies: List[str] = ["BEV", "FCEV", "Hybrid Electric"]
alternative_target: Dict[str, float] = {
    "low_density": 0.1,
    "medium_density": 0.2,
    "high_density": 0.3,
}

# Lifestyle scenario: nodes with increased long-run preference
lifestyle_nodes: List[str] = ["Walk", "Cycle", "Bus", "Passenger Rail"]
lifestyle_factor = 2.0

# Decay of inconvenience costs (1/yr) after the reference year
inconvenience_decay_rate = 0.03
techswitch_decay_rate = 0.08
