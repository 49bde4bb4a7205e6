import argparse
from pathlib import Path

from helpers import generate_log
from pipeline_opf import OPFPipeline, network_structure_report
from pipeline_opf.konfig import load_opf_config

log = generate_log(name=__name__)


def parse_arguments(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="unbalanced-opf",
        description="Solve the unbalanced three-phase AC OPF of an OpenDSS network",
    )
    parser.add_argument("file", type=Path, help="OpenDSS network file")
    parser.add_argument(
        "--settings", type=Path, default=None, help="Settings file with an [opf] section"
    )
    parser.add_argument("--voltage-lower-bound", type=float, default=None)
    parser.add_argument("--voltage-upper-bound", type=float, default=None)
    parser.add_argument(
        "--print-level", type=int, default=None, help="Ipopt print level"
    )
    parser.add_argument("--tolerance", type=float, default=None)
    parser.add_argument(
        "--validate-bounds",
        action="store_true",
        default=None,
        help="Reject a lower voltage bound above the upper one",
    )
    parser.add_argument(
        "--structure",
        action="store_true",
        help="Also report the buses, generators and loads of the solution",
    )
    parser.add_argument(
        "--output", type=Path, default=None, help="CSV file for the bus voltage table"
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_arguments(argv)
    config = load_opf_config(
        settings_file=args.settings,
        voltage_lower_bound=args.voltage_lower_bound,
        voltage_upper_bound=args.voltage_upper_bound,
        solver_verbosity=args.print_level,
        tolerance=args.tolerance,
        validate_bounds=args.validate_bounds,
    )
    pipeline = OPFPipeline(config)
    raw_solution, _, result_table = pipeline.run(args.file)
    print(pipeline.report_text)
    if args.structure:
        print(network_structure_report(raw_solution))
    if args.output is not None:
        result_table.write_csv(args.output)
        log.info(f"Bus voltages written to {args.output}")
    return 0 if raw_solution.converged else 1
