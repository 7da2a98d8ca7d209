from functools import lru_cache

from .api import (
    CATALOGUE_DATA_PATH,
    ResidueCatalogue,
    get_amino_acid_definitions,
    get_amino_acid_name_map,
    get_residue_categories,
)
from .models import AminoAcid, ResidueCategory

__all__ = [
    "get_catalogue_version",
    "get_amino_acid_definitions",
    "get_amino_acid_name_map",
    "get_residue_categories",
    "AminoAcid",
    "ResidueCatalogue",
    "ResidueCategory",
]


@lru_cache(maxsize=1)
def get_catalogue_version() -> str:
    with open(CATALOGUE_DATA_PATH / "version.txt") as f:
        return f.read().strip()
