import json
from collections import Counter
from functools import lru_cache
from pathlib import Path
from typing import TYPE_CHECKING, TypeVar

from loguru import logger

from .._typing import Fetcher
from ..models import Environment
from ..resources import residue_type_url
from .models import AminoAcid, ResidueCategory

if TYPE_CHECKING:
    from ..graph import Residue


CATALOGUE_DATA_PATH = Path(__file__).parent.parent / "data" / "catalogue"
assert CATALOGUE_DATA_PATH.is_dir(), (
    f"Catalogue path {CATALOGUE_DATA_PATH} does not exist or is not a directory"
)

AMINO_ACIDS_DB_PATH = CATALOGUE_DATA_PATH / "amino_acids.json"
RESIDUE_TYPES_DB_PATH = CATALOGUE_DATA_PATH / "residue_types.json"

WATER_CODE = "HOH"


ModelType = TypeVar("ModelType", AminoAcid, ResidueCategory)


def _read_table(path: Path, model: type[ModelType]) -> list[ModelType]:
    """Reads a catalogue table and returns a list of entries."""
    with open(path, "r") as f:
        raw_data = [model.model_validate(entry) for entry in json.load(f)]

    # Check for duplicates.
    data = []
    counts = Counter(entry for entry in raw_data)
    for entry, count in counts.items():
        if count > 1:
            logger.warning(f"Duplicate entry {entry!r} found in {path.name}")
        else:
            data.append(entry)

    return data


@lru_cache(maxsize=1)
def get_amino_acid_definitions() -> list[AminoAcid]:
    """Returns the definitions of the standard amino acids."""
    return _read_table(AMINO_ACIDS_DB_PATH, AminoAcid)


@lru_cache(maxsize=1)
def get_residue_categories() -> list[ResidueCategory]:
    """Returns the residue display categories, in matching order."""
    return _read_table(RESIDUE_TYPES_DB_PATH, ResidueCategory)


def get_amino_acid_name_map() -> dict[str, str]:
    """Returns a mapping of amino acid 3-letter names to 1-letter names."""
    return {aa.long_name: aa.short_name for aa in get_amino_acid_definitions()}


class ResidueCatalogue:
    """Resolves chemical component codes to one-letter codes.

    The cache is seeded with the standard amino acids and extended on demand from the
    compound summary API. Lookups are queued with `request_annotation` and performed by
    `resolve_pending`, which must run before any residue classification is trusted.
    """

    def __init__(self, environment: Environment = Environment.PRODUCTION, fetcher: Fetcher | None = None):
        self.environment = environment
        self.fetcher = fetcher
        self._mapping: dict[str, str] = get_amino_acid_name_map()
        self._pending: list[str] = []

    def __contains__(self, code: str) -> bool:
        return code in self._mapping

    def abbreviation(self, code: str) -> str | None:
        """Returns the one-letter code of a chemical component, or None if unknown."""
        return self._mapping.get(code)

    def has_pending(self) -> bool:
        return len(self._pending) > 0

    @property
    def pending(self) -> list[str]:
        return list(self._pending)

    def request_annotation(self, residue: "Residue"):
        """Queues a remote lookup for the residue's component code when it is not known yet."""
        code = residue.chem_comp_id
        if residue.is_ligand or code == WATER_CODE:
            return
        if code in self._mapping or code in self._pending:
            return
        self._pending.append(code)

    def resolve_pending(self) -> dict[str, str]:
        """Performs every queued lookup and returns the newly resolved codes.

        Fetch errors are not handled here: a graph with unresolved residues must not be laid out.
        """
        pending, self._pending = self._pending, []
        if not pending:
            return {}

        if self.fetcher is None:
            logger.warning(f"No fetcher configured: {len(pending)} residue code(s) left unresolved: {pending}")
            return {}

        resolved = {}
        for code in pending:
            payload = self.fetcher(residue_type_url(code, self.environment))
            one_letter_code = payload[code][0]["one_letter_code"]
            self._mapping[code] = one_letter_code
            resolved[code] = one_letter_code
            logger.debug(f"Residue {code!r} resolved to {one_letter_code!r}")
        return resolved

    def residue_type(self, residue: "Residue") -> str:
        """Returns the display category of a residue."""
        if residue.is_ligand:
            return "ligand"
        if residue.chem_comp_id == WATER_CODE:
            return "water"

        code = self.abbreviation(residue.chem_comp_id)
        for category in get_residue_categories():
            if code in category.codes:
                return category.name
        return "other"
