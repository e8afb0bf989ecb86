#!/usr/bin/env python3
"""
Print the overview document of a BLS time.series database.

**Usage**:
    python actions/show_bls_overview.py ce
    python actions/show_bls_overview.py jt --base-url https://download.bls.gov/pub/time.series

Each database directory carries a ``<code>.txt`` file describing its series
id layout, mapping files and data files. Reading it first is the quickest way
to decide which data file to pass to ``fetch_bls_dataset.py dataset``.
"""

import argparse
import sys
from pathlib import Path

# Add project root to Python path so we can import src modules
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from src.datasets.common import BASE_URL
from src.datasets.overview import bls_overview
from src.utils.errors import BlsError, ConfigurationError
from src.utils.logging import configure_logging


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Show a BLS database overview")
    parser.add_argument("database_code", help="Database code, e.g. ce, jt, la")
    parser.add_argument("--base-url", default=BASE_URL, help=f"time.series root (default: {BASE_URL})")
    parser.add_argument("--log-level", default="WARNING", help="Logging level")
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    try:
        configure_logging(args.log_level)
        bls_overview(args.database_code, base_url=args.base_url, display=True)
    except ConfigurationError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except (BlsError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)
    sys.exit(0)


if __name__ == "__main__":
    main()
