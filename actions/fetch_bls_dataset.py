#!/usr/bin/env python3
"""
Download a BLS dataset and print it or save it to CSV.

**Purpose**: Command-line front end for the dataset assemblers in
src/datasets/. Each sub-command maps to one assembler; shared flags control
caching, output and diagnostics.

**Usage**:
    python actions/fetch_bls_dataset.py jolts
    python actions/fetch_bls_dataset.py laus --geography metro --output data/laus_metro.csv
    python actions/fetch_bls_dataset.py national-ces --filter current_seasonally_adjusted --cache
    python actions/fetch_bls_dataset.py qcew --industry-code 31-33 --year-start 2022 --year-end 2023
    python actions/fetch_bls_dataset.py dataset ap --data-file 0
    python actions/fetch_bls_dataset.py cps --series-id LNS14000000 --characteristic sexs_code=2
    python actions/fetch_bls_dataset.py ces --show-diagnostics --log-level INFO

**What this script does**:
  1. Parse the sub-command and flags
  2. Configure logging
  3. Run the assembler (through the cache when --cache is given)
  4. Print diagnostics if requested
  5. Write the table to --output, or print a preview

**Exit codes**:
  - 0: Success
  - 1: Invalid arguments or configuration
  - 2: Download or parse failure
"""

import argparse
import sys
from pathlib import Path

# Add project root to Python path so we can import src modules
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from src.data.envelope import ResultEnvelope, print_warnings
from src.data.io import write_table_csv
from src.datasets import (
    LAUS_GEOGRAPHIES,
    NATIONAL_CES_DATASETS,
    get_ces,
    get_cps_subset,
    get_jolts,
    get_laus,
    get_national_ces,
    get_oews,
    get_qcew,
    get_salt,
    load_bls_dataset,
)
from src.utils.errors import BlsError, ConfigurationError
from src.utils.logging import configure_logging


def _add_common_flags(parser: argparse.ArgumentParser) -> None:
    cache = parser.add_mutually_exclusive_group()
    cache.add_argument(
        "--cache",
        dest="cache",
        action="store_const",
        const=True,
        default=None,
        help="Use the local cache (default: follow USE_BLS_CACHE)",
    )
    cache.add_argument(
        "--no-cache",
        dest="cache",
        action="store_const",
        const=False,
        help="Download to a temporary directory and discard after parsing",
    )
    parser.add_argument("--output", type=str, default=None, help="Write the table to this CSV file")
    parser.add_argument(
        "--show-diagnostics",
        action="store_true",
        help="Print the per-file diagnostics report",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default="WARNING",
        help="Logging level (DEBUG, INFO, WARNING, ERROR)",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Download and assemble BLS datasets",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    commands = parser.add_subparsers(dest="command", required=True)

    jolts = commands.add_parser("jolts", help="Job Openings and Labor Turnover Survey")
    jolts.add_argument("--include-annual", action="store_true", help="Keep M13 annual averages")
    jolts.add_argument("--keep-regions", action="store_true", help="Keep census region rows")
    jolts.add_argument("--keep-national", action="store_true", help="Keep national total rows")

    laus = commands.add_parser("laus", help="Local Area Unemployment Statistics")
    laus.add_argument(
        "--geography",
        default="state_adjusted",
        choices=list(LAUS_GEOGRAPHIES),
        metavar="GEOGRAPHY",
        help="LAUS geography (default: state_adjusted)",
    )
    laus.add_argument("--include-annual", action="store_true", help="Keep M13 annual averages")
    laus.add_argument("--no-transform", action="store_true", help="Keep rates in percent")

    ces = commands.add_parser("ces", help="State and metro Current Employment Statistics")
    ces.add_argument("--no-transform", action="store_true", help="Keep employment in thousands")
    ces.add_argument("--include-annual", action="store_true", help="Keep M13 annual averages")
    ces.add_argument("--full-table", action="store_true", help="Keep series metadata columns")

    national = commands.add_parser("national-ces", help="National Current Employment Statistics")
    national.add_argument(
        "--filter",
        dest="dataset_filter",
        default="all_data",
        choices=list(NATIONAL_CES_DATASETS),
        help="Which national CES data file to load",
    )
    national.add_argument("--include-annual", action="store_true", help="Keep M13 annual averages")
    national.add_argument("--full-table", action="store_true", help="Keep series metadata columns")

    commands.add_parser("oews", help="Occupational Employment and Wage Statistics")

    cps = commands.add_parser("cps", help="Current Population Survey series subset")
    cps.add_argument(
        "--series-id",
        dest="series_ids",
        action="append",
        default=None,
        help="Series ID to extract (repeatable)",
    )
    cps.add_argument(
        "--characteristic",
        action="append",
        default=None,
        metavar="COLUMN=CODE[,CODE]",
        help="ln.series code filter, e.g. sexs_code=2 (repeatable)",
    )
    cps.add_argument("--full-table", action="store_true", help="Keep code columns, skip date")

    qcew = commands.add_parser("qcew", help="Quarterly Census of Employment and Wages slices")
    qcew.add_argument("--period-type", choices=["quarter", "year"], default="quarter")
    qcew.add_argument("--year-start", type=int, default=None)
    qcew.add_argument("--year-end", type=int, default=None)
    code = qcew.add_mutually_exclusive_group(required=True)
    code.add_argument("--industry-code", type=str, default=None)
    code.add_argument("--area-code", type=str, default=None)
    qcew.add_argument("--no-lookups", action="store_true", help="Do not join industry/area titles")

    salt = commands.add_parser("salt", help="State alternative unemployment measures")
    salt.add_argument("--include-substate", action="store_true", help="Keep sub-state areas")

    dataset = commands.add_parser("dataset", help="Any time.series database by code")
    dataset.add_argument("database_code", help="Database code, e.g. ap, cu, ln")
    dataset.add_argument(
        "--data-file",
        type=str,
        default=None,
        help="Data file name or zero-based index when the database has several",
    )
    dataset.add_argument("--full-table", action="store_true", help="Skip table simplification")

    for subparser in commands.choices.values():
        _add_common_flags(subparser)
    return parser


def parse_args(argv=None) -> argparse.Namespace:
    return build_parser().parse_args(argv)


def _data_file(value):
    if value is not None and value.isdigit():
        return int(value)
    return value


def _characteristics(values):
    """
    Turn ["sexs_code=2", "ages_code=00,01"] into {column: [codes]}.

    Raises:
        ConfigurationError: If a value is not COLUMN=CODE[,CODE].
    """
    if not values:
        return None
    parsed = {}
    for value in values:
        column, sep, codes = value.partition("=")
        codes = [code.strip() for code in codes.split(",") if code.strip()]
        if not sep or not column.strip() or not codes:
            raise ConfigurationError(f"Invalid --characteristic '{value}', expected COLUMN=CODE[,CODE]")
        parsed.setdefault(column.strip(), []).extend(codes)
    return parsed


def run_command(args: argparse.Namespace):
    """
    Run the assembler selected by args.

    Returns:
        (table, envelope): envelope is None for commands without diagnostics
        or when --show-diagnostics was not given.
    """
    diagnostics = args.show_diagnostics

    if args.command == "jolts":
        result = get_jolts(
            monthly_only=not args.include_annual,
            remove_regions=not args.keep_regions,
            remove_national=not args.keep_national,
            cache=args.cache,
            return_diagnostics=diagnostics,
        )
    elif args.command == "laus":
        result = get_laus(
            geography=args.geography,
            monthly_only=not args.include_annual,
            transform=not args.no_transform,
            cache=args.cache,
            suppress_warnings=True,
            return_diagnostics=diagnostics,
        )
    elif args.command == "ces":
        result = get_ces(
            transform=not args.no_transform,
            monthly_only=not args.include_annual,
            simplify_table=not args.full_table,
            cache=args.cache,
            suppress_warnings=True,
            return_diagnostics=diagnostics,
        )
    elif args.command == "national-ces":
        result = get_national_ces(
            dataset_filter=args.dataset_filter,
            monthly_only=not args.include_annual,
            simplify_table=not args.full_table,
            return_diagnostics=diagnostics,
            cache=args.cache,
        )
    elif args.command == "oews":
        result = get_oews(cache=args.cache, return_diagnostics=diagnostics)
    elif args.command == "cps":
        result = get_cps_subset(
            series_ids=args.series_ids,
            characteristics=_characteristics(args.characteristic),
            simplify_table=not args.full_table,
            cache=args.cache,
            suppress_warnings=True,
            return_diagnostics=diagnostics,
        )
    elif args.command == "qcew":
        result = get_qcew(
            period_type=args.period_type,
            year_start=args.year_start,
            year_end=args.year_end,
            industry_code=args.industry_code,
            area_code=args.area_code,
            add_lookups=not args.no_lookups,
            silently=True,
            cache=args.cache,
            return_diagnostics=diagnostics,
        )
    elif args.command == "salt":
        return get_salt(only_states=not args.include_substate, cache=args.cache), None
    elif args.command == "dataset":
        bundle = load_bls_dataset(
            args.database_code,
            return_full=True,
            simplify_table=not args.full_table,
            data_file=_data_file(args.data_file),
            cache=args.cache,
        )
        return bundle.full, (bundle.envelope if diagnostics else None)
    else:
        raise ConfigurationError(f"Unknown command: {args.command}")

    if isinstance(result, ResultEnvelope):
        return result.data(), result
    return result, None


def main(argv=None):
    args = parse_args(argv)
    try:
        configure_logging(args.log_level)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    try:
        table, envelope = run_command(args)
    except ConfigurationError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except BlsError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)
    except KeyboardInterrupt:
        print("\nInterrupted by user. Exiting...")
        sys.exit(130)

    if envelope is not None:
        print(envelope.summary())
        print("")
        print_warnings(envelope, detailed=True)
        print("")

    if table is None:
        print("No data retrieved.")
        sys.exit(2)

    if args.output:
        path = write_table_csv(table, args.output)
        print(f"Saved {len(table)} rows x {len(table.columns)} columns to {path}")
    else:
        print(table.head(20).to_string())
        print(f"[{len(table)} rows x {len(table.columns)} columns]")
    sys.exit(0)


if __name__ == "__main__":
    main()
