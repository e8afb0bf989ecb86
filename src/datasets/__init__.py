"""
Dataset assemblers for BLS programs.

Each function downloads the files for one program through
download_bls_files(), joins the lookup tables, applies the program's
transforms, and returns a DataFrame (or a ResultEnvelope when
return_diagnostics=True).
"""

from src.datasets.ces import get_ces, list_ces_industries, list_ces_states, show_ces_options
from src.datasets.cps import explore_cps_characteristics, explore_cps_series, get_cps_subset
from src.datasets.generic import DatasetBundle, load_bls_dataset
from src.datasets.jolts import get_jolts
from src.datasets.laus import LAUS_GEOGRAPHIES, get_laus
from src.datasets.national_ces import (
    NATIONAL_CES_DATASETS,
    get_national_ces,
    list_national_ces_options,
    show_national_ces_options,
)
from src.datasets.oews import get_oews
from src.datasets.overview import bls_overview
from src.datasets.qcew import get_qcew
from src.datasets.salt import get_salt

__all__ = [
    "DatasetBundle",
    "LAUS_GEOGRAPHIES",
    "NATIONAL_CES_DATASETS",
    "bls_overview",
    "explore_cps_characteristics",
    "explore_cps_series",
    "get_ces",
    "get_cps_subset",
    "get_jolts",
    "get_laus",
    "get_national_ces",
    "get_oews",
    "get_qcew",
    "get_salt",
    "list_ces_industries",
    "list_ces_states",
    "list_national_ces_options",
    "load_bls_dataset",
    "show_ces_options",
    "show_national_ces_options",
]
