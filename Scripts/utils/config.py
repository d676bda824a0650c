from pathlib import Path
import json
import subprocess

from parameters.scenario import scenarios


DEFAULT_CONFIG_PATH = Path(__file__).parent.parent / "dev-config.json"


def read_from_file(path=DEFAULT_CONFIG_PATH):
    """Read run parameters from json file.

    Parameters
    ----------
    path : Path (optional)
        Json file (default: Scripts/dev-config.json)

    Returns
    -------
    Config
        Run parameters, keys in upper case
    """
    with open(path, 'r', encoding='utf-8') as file:
        config = json.load(file)
    return create_config(config)


def dump(args_dict: dict) -> str:
    """Dump parsed arguments to json readable by `create_config()`.

    Boolean switches that are set go to OPTIONAL_FLAGS,
    unset switches and missing values are left out.
    """
    args_dump = {key.upper(): val for key, val in args_dict.items()
                 if not (isinstance(val, bool) or val is None)}
    args_dump["OPTIONAL_FLAGS"] = [key.upper() for key, val in args_dict.items()
                                   if val is True]
    args_dump["LOG_FORMAT"] = "TEXT"
    return json.dumps(args_dump, indent=4)


def create_config(config: dict):
    """Create container for run parameters.

    Keys are in CAPS_LOCK and should be treated as constants.
    The normally used parameters are listed below with default values.
    Boolean switches are given as a list in OPTIONAL_FLAGS.

    Parameters
    ----------
    config : dict
        key : str
            Parameter name (e.g., EDGE_SCENARIO)
        value : str/bool/int/list
            Parameter value

    Raises
    ------
    ValueError
        If EDGE_SCENARIO is not a known scenario
        or NR_CLUSTERS or WORKERS is not positive
    """
    c = Config()
    c.update({
        "EDGE_VERSION": None,
        "JSON": None,
        "SCENARIO_NAME": None,
        "EDGE_SCENARIO": None,
        "LOG_LEVEL": None,
        "LOG_FORMAT": None,
        "INPUT_DATA_PATH": None,
        "RESULTS_PATH": None,
        "REFERENCE_YEARS": None,
        "NR_CLUSTERS": None,
        "WORKERS": None,
        "NO_INCONVENIENCE": False,
        "SMARTLIFESTYLE": False,
    })
    for key in config.pop("OPTIONAL_FLAGS", []):
        c[key] = True
    c.update(config)
    if c["EDGE_SCENARIO"] is not None and c["EDGE_SCENARIO"] not in scenarios:
        raise ValueError("Unknown EDGE_SCENARIO {}, choose from: {}".format(
            c["EDGE_SCENARIO"], ", ".join(scenarios)))
    for key in ("NR_CLUSTERS", "WORKERS"):
        if c[key] is not None and int(c[key]) < 1:
            raise ValueError(f"{key} must be positive, got {c[key]}")
    if isinstance(c["REFERENCE_YEARS"], int):
        c["REFERENCE_YEARS"] = [c["REFERENCE_YEARS"]]
    return c


class Config(dict):

    @property
    def VERSION(self):
        """Model version from git tag, or EDGE_VERSION outside git."""
        try:
            return subprocess.check_output(
                ["git", "describe", "--tags"], stderr=subprocess.STDOUT,
                text=True, cwd=Path(__file__).parent).strip()
        except (subprocess.CalledProcessError, OSError):
            return self["EDGE_VERSION"]
