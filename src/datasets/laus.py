"""
Local Area Unemployment Statistics (LAUS), database ``la``.

LAUS publishes one data file per geography (states, regions, metros,
counties, cities, five-year slices and individual states). LAUS_GEOGRAPHIES
maps the accepted ``geography`` values to those files.
"""

from typing import Optional

from src.datasets.common import (
    add_date_column,
    drop_annual_averages,
    drop_column_range,
    drop_columns_if_present,
    finalize,
    left_join_if_present,
    numeric_values,
    require_table,
    series_url,
)
from src.orchestration.downloads import download_bls_files
from src.utils.errors import ConfigurationError

LAUS_GEOGRAPHIES = {
    "state_current_adjusted": "la.data.1.CurrentS",
    "state_unadjusted": "la.data.2.AllStatesU",
    "state_adjusted": "la.data.3.AllStatesS",
    "region_unadjusted": "la.data.4.RegionDivisionU",
    "region_adjusted": "la.data.5.RegionDivisionS",
    "metro": "la.data.60.Metro",
    "division": "la.data.61.Division",
    "micro": "la.data.62.Micro",
    "combined": "la.data.63.Combined",
    "county": "la.data.64.County",
    "city": "la.data.65.City",
    "2025-2029": "la.data.0.CurrentU25-29",
    "2020-2024": "la.data.0.CurrentU20-24",
    "2015-2019": "la.data.0.CurrentU15-19",
    "2010-2014": "la.data.0.CurrentU10-14",
    "2005-2009": "la.data.0.CurrentU05-09",
    "2000-2004": "la.data.0.CurrentU00-04",
    "1995-1999": "la.data.0.CurrentU95-99",
    "1990-1994": "la.data.0.CurrentU90-94",
    "AR": "la.data.10.Arkansas",
    "CA": "la.data.11.California",
    "CO": "la.data.12.Colorado",
    "CT": "la.data.13.Connecticut",
    "DE": "la.data.14.Delaware",
    "DC": "la.data.15.DC",
    "FL": "la.data.16.Florida",
    "GA": "la.data.17.Georgia",
    "HI": "la.data.18.Hawaii",
    "ID": "la.data.19.Idaho",
    "IL": "la.data.20.Illinois",
    "IN": "la.data.21.Indiana",
    "IA": "la.data.22.Iowa",
    "KS": "la.data.23.Kansas",
    "KY": "la.data.24.Kentucky",
    "LA": "la.data.25.Louisiana",
    "ME": "la.data.26.Maine",
    "MD": "la.data.27.Maryland",
    "MA": "la.data.28.Massachusetts",
    "MI": "la.data.29.Michigan",
    "MN": "la.data.30.Minnesota",
    "MS": "la.data.31.Mississippi",
    "MO": "la.data.32.Missouri",
    "MT": "la.data.33.Montana",
    "NE": "la.data.34.Nebraska",
    "NV": "la.data.35.Nevada",
    "NH": "la.data.36.NewHampshire",
    "NJ": "la.data.37.NewJersey",
    "NM": "la.data.38.NewMexico",
    "NY": "la.data.39.NewYork",
    "NC": "la.data.40.NorthCarolina",
    "ND": "la.data.41.NorthDakota",
    "OH": "la.data.42.Ohio",
    "OK": "la.data.43.Oklahoma",
    "OR": "la.data.44.Oregon",
    "PA": "la.data.45.Pennsylvania",
    "PR": "la.data.46.PuertoRico",
    "RI": "la.data.47.RhodeIsland",
    "SC": "la.data.48.SouthCarolina",
    "SD": "la.data.49.SouthDakota",
    "TN": "la.data.50.Tennessee",
    "TX": "la.data.51.Texas",
    "UT": "la.data.52.Utah",
    "VT": "la.data.53.Vermont",
    "VA": "la.data.54.Virginia",
    "WA": "la.data.56.Washington",
    "WV": "la.data.57.WestVirginia",
    "WI": "la.data.58.Wisconsin",
    "WY": "la.data.59.Wyoming",
    "AL": "la.data.7.Alabama",
    "AK": "la.data.8.Alaska",
    "AZ": "la.data.9.Arizona",
}

LARGE_GEOGRAPHIES = ("county", "city")


def laus_data_url(geography: str) -> str:
    """
    Resolve a geography name to its LAUS data file URL.

    Raises:
        ConfigurationError: If geography is not a LAUS_GEOGRAPHIES key.
    """
    if geography not in LAUS_GEOGRAPHIES:
        raise ConfigurationError(
            f"Invalid geography '{geography}'. Valid options are: {', '.join(LAUS_GEOGRAPHIES)}"
        )
    return series_url("la", LAUS_GEOGRAPHIES[geography])


def get_laus(
    geography: str = "state_adjusted",
    monthly_only: bool = True,
    transform: bool = True,
    cache: Optional[bool] = None,
    suppress_warnings: bool = False,
    return_diagnostics: bool = False,
):
    """
    Download LAUS for one geography and join series, area and measure labels.

    Args:
        geography: Key of LAUS_GEOGRAPHIES, e.g. "state_adjusted", "metro",
                   "2020-2024" or a state postal code such as "CA".
        monthly_only: Drop M13 rows and add a date column.
        transform: Convert rates and ratios from percent to proportions.
        cache: True/False to force caching, None for USE_BLS_CACHE.
        suppress_warnings: Do not print notes or the diagnostics block.
        return_diagnostics: Return a ResultEnvelope instead of the table.

    Raises:
        ConfigurationError: Unknown geography.
        FetchFailure: If the main data file cannot be loaded.
    """
    data_url = laus_data_url(geography)
    if geography in LARGE_GEOGRAPHIES and not suppress_warnings:
        print(f"Note: the {geography} data file is very large (>300MB).")

    urls = {
        "data": data_url,
        "series": series_url("la", "la.series"),
        "area": series_url("la", "la.area"),
        "measure": series_url("la", "la.measure"),
    }
    batch = download_bls_files(urls, suppress_warnings=suppress_warnings, cache=cache)

    laus = drop_columns_if_present(require_table(batch, "data"), ["footnote_codes"])
    series = batch.table("series")
    if series is not None:
        series = drop_columns_if_present(series, ["footnote_codes"])
    laus, _ = left_join_if_present(laus, series, "series_id")
    laus, _ = left_join_if_present(laus, batch.table("area"), ["area_code", "area_type_code"])
    laus, _ = left_join_if_present(laus, batch.table("measure"), "measure_code")

    laus = numeric_values(laus)
    laus = laus[laus["value"].notna()].reset_index(drop=True)
    laus = drop_column_range(laus, "display_level", "sort_sequence")
    laus = drop_column_range(laus, "series_title", "end_period")
    steps = [
        "Joined series, area, and measure metadata",
        "Converted values to numeric",
        "Removed rows with missing values",
    ]

    if monthly_only:
        laus = add_date_column(drop_annual_averages(laus))
        steps.extend(["Filtered to monthly data only", "Created date column"])

    if transform and "measure_text" in laus.columns:
        is_rate = laus["measure_text"].str.contains("rate|ratio", na=False)
        laus.loc[is_rate, "value"] = laus.loc[is_rate, "value"] / 100
        steps.append("Converted rates and ratios to proportions")

    return finalize(laus, batch, "LAUS", steps, suppress_warnings, return_diagnostics)
