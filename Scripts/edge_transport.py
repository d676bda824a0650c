from argparse import ArgumentParser
import sys
from pathlib import Path

import utils.config
import utils.log as log
from datahandling.inputdata import read_input_data
from datahandling.resultdata import ResultsData
from datatypes.scenario import new_scenario_switches
from modelsystem import ModelSystem


def main(args):
    input_data_path = Path(args.input_data_path)
    results_path = Path(args.results_path, args.scenario_name)
    log_extra = {
        "status": {
            "name": args.scenario_name,
            "state": "starting",
            "log": log.filename,
        }
    }
    if not input_data_path.is_dir():
        raise NameError(
            "Input data directory '{}' does not exist.".format(
                input_data_path))
    switches = new_scenario_switches(
        args.edge_scenario,
        inconvenience=False if args.no_inconvenience else None,
        smartlifestyle=True if args.smartlifestyle else None)
    log.info("Reading input data...", extra=log_extra)
    input_data = read_input_data(input_data_path)
    model = ModelSystem(
        input_data, switches,
        reference_years=args.reference_years,
        nr_clusters=args.nr_clusters,
        workers=args.workers,
        resultdata=ResultsData(results_path))
    log_extra["status"]["state"] = "running"
    log.info("Starting simulation...", extra=log_extra)
    try:
        results = model.run()
    except Exception as error:
        log_extra["status"]["state"] = "failed"
        log.error("Fatal error occured, simulation aborted.", error,
                  extra=log_extra)
        raise
    log_extra["status"]["state"] = "finished"
    log_extra["status"]["failed"] = results.failed_regions
    log.info("Simulation ended.", extra=log_extra)
    return results


if __name__ == "__main__":
    # Initially read defaults from config file ("dev-config.json")
    # but allow override via command-line arguments
    config = utils.config.read_from_file()
    parser = ArgumentParser(epilog="EDGE transport model system entry point script.")
    parser.add_argument(
        "--version",
        action="version",
        version="edge-transport " + str(config.VERSION))
    parser.add_argument(
        "--json",
        type=str,
        help="Read parameters from file, override command-line and dev-config.json arguments",
    )
    # Logging
    parser.add_argument(
        "--log-level",
        choices={"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"},
    )
    parser.add_argument(
        "--log-format",
        choices={"TEXT", "JSON"},
    )
    # Scenario metadata
    parser.add_argument(
        "--scenario-name",
        type=str,
        help="Name of run. Influences result folder name and log file name."),
    parser.add_argument(
        "--edge-scenario",
        type=str,
        help="EDGE transport scenario (e.g., ConvCase, ElecEra, HydrHypeWise)"),
    parser.add_argument(
        "--results-path",
        type=str,
        help="Path to folder where result data is saved to."),
    parser.add_argument(
        "--input-data-path",
        type=str,
        help="Path to folder containing input tables (.csv)"),
    parser.add_argument(
        "--reference-years",
        type=int,
        nargs="+",
        help="Historical years on which preferences are calibrated"),
    parser.add_argument(
        "--nr-clusters",
        type=int,
        help="Number of region clusters for preference trends"),
    parser.add_argument(
        "--workers",
        type=int,
        help="Number of threads for region calculations"),
    parser.add_argument(
        "-i", "--no-inconvenience",
        action="store_true",
        help="Using this flag calibrates on preferences only, without inconvenience costs."),
    parser.add_argument(
        "-w", "--smartlifestyle",
        action="store_true",
        help="Using this flag activates lifestyle changes favouring active modes and public transport."),
    parser.set_defaults(
        **{key.lower(): val for key, val in config.items()})
    args = parser.parse_args()
    args_dict = vars(args)
    if args.json is not None:
        config = utils.config.read_from_file(args.json)
        for key, val in config.items():
            args_dict[key.lower()] = val

    log.initialize(args)
    log.debug("edge_version=" + str(config.VERSION))
    log.debug('sys.version_info=' + str(sys.version_info[0]))
    log.debug('sys.path=' + str(sys.path))
    json_dump = utils.config.dump(args_dict)
    log.debug(json_dump)
    p = Path(args.results_path, args.scenario_name)
    p.mkdir(parents=True, exist_ok=True)
    with open(p / "runtime_params.json", 'w') as file:
        file.write(json_dump)

    main(args)
