"""
blsfetch – Main entry point.

Lists the datasets that can be downloaded with actions/fetch_bls_dataset.py.
"""

from src.datasets import LAUS_GEOGRAPHIES, list_national_ces_options

DATASET_COMMANDS = {
    "jolts": "Job Openings and Labor Turnover Survey (jt)",
    "laus": f"Local Area Unemployment Statistics (la), {len(LAUS_GEOGRAPHIES)} geographies",
    "ces": "State and metro Current Employment Statistics (sm)",
    "national-ces": "National Current Employment Statistics (ce): "
    + ", ".join(list_national_ces_options()),
    "oews": "Occupational Employment and Wage Statistics (oe)",
    "cps": "Current Population Survey (ln) subset by series ID or characteristic",
    "qcew": "Quarterly Census of Employment and Wages open-data slices",
    "salt": "State alternative labor underutilization measures (U-1 to U-6)",
    "dataset": "Any time.series database by code, e.g. 'dataset ap'",
}


def main() -> None:
    """Print the available dataset commands."""
    print("blsfetch datasets (python actions/fetch_bls_dataset.py <command> --help):")
    for command, description in DATASET_COMMANDS.items():
        print(f"  {command:<14} {description}")
    print("Overview text: python actions/show_bls_overview.py <database_code>")


if __name__ == "__main__":
    main()
