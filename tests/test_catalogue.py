"""Tests for ligenv.catalogue."""

import pytest

from ligenv.catalogue import (
    ResidueCatalogue,
    get_amino_acid_definitions,
    get_amino_acid_name_map,
    get_catalogue_version,
    get_residue_categories,
)
from ligenv.graph import Residue
from ligenv.models import Environment
from ligenv.resources import ResourceNotFoundError


def _residue(code: str, is_ligand: bool = False) -> Residue:
    return Residue(chain_id="A", author_residue_number=1, chem_comp_id=code, is_ligand=is_ligand)


class RecordingFetcher:
    """Answers compound summary requests from a fixed table."""

    def __init__(self, codes: dict[str, str]):
        self.codes = codes
        self.urls = []

    def __call__(self, url: str):
        self.urls.append(url)
        code = url.rsplit("/", 1)[-1]
        if code not in self.codes:
            raise ResourceNotFoundError(url)
        return {code: [{"one_letter_code": self.codes[code]}]}


class TestStaticTables:
    def test_amino_acids(self):
        definitions = get_amino_acid_definitions()
        assert len(definitions) == 20
        mapping = get_amino_acid_name_map()
        assert mapping["SER"] == "S"
        assert mapping["TRP"] == "W"

    def test_categories_order(self):
        names = [c.name for c in get_residue_categories()]
        assert names == ["hydrophobic", "positive", "negative", "polar", "cystein", "glycine", "proline", "aromatic"]

    def test_version(self):
        assert get_catalogue_version()


class TestResidueCatalogue:
    def test_seeded_with_amino_acids(self):
        catalogue = ResidueCatalogue()
        assert "ALA" in catalogue
        assert catalogue.abbreviation("ALA") == "A"
        assert catalogue.abbreviation("MSE") is None

    def test_request_annotation_queues_unknown_codes_once(self):
        catalogue = ResidueCatalogue()
        catalogue.request_annotation(_residue("MSE"))
        catalogue.request_annotation(_residue("MSE"))
        catalogue.request_annotation(_residue("ALA"))
        catalogue.request_annotation(_residue("LIG", is_ligand=True))
        assert catalogue.pending == ["MSE"]
        assert catalogue.has_pending()

    def test_resolve_pending(self):
        fetcher = RecordingFetcher({"MSE": "M"})
        catalogue = ResidueCatalogue(Environment.DEVELOPMENT, fetcher)
        catalogue.request_annotation(_residue("MSE"))

        assert catalogue.resolve_pending() == {"MSE": "M"}
        assert fetcher.urls == ["https://wwwdev.ebi.ac.uk/pdbe/api/pdb/compound/summary/MSE"]
        assert catalogue.abbreviation("MSE") == "M"
        assert not catalogue.has_pending()

        # Known now: no second lookup.
        catalogue.request_annotation(_residue("MSE"))
        assert not catalogue.has_pending()

    def test_resolve_pending_propagates_errors(self):
        catalogue = ResidueCatalogue(fetcher=RecordingFetcher({}))
        catalogue.request_annotation(_residue("XYZ"))
        with pytest.raises(ResourceNotFoundError):
            catalogue.resolve_pending()

    def test_resolve_pending_without_fetcher(self):
        catalogue = ResidueCatalogue(fetcher=None)
        catalogue.request_annotation(_residue("MSE"))
        assert catalogue.resolve_pending() == {}
        assert not catalogue.has_pending()
        assert catalogue.abbreviation("MSE") is None

    @pytest.mark.parametrize(
        "code, is_ligand, expected",
        [
            ("LIG", True, "ligand"),
            ("HOH", False, "water"),
            ("LEU", False, "hydrophobic"),
            ("LYS", False, "positive"),
            ("ASP", False, "negative"),
            ("SER", False, "polar"),
            ("CYS", False, "cystein"),
            ("GLY", False, "glycine"),
            ("PRO", False, "proline"),
            ("HIS", False, "aromatic"),
            ("XYZ", False, "other"),
        ],
    )
    def test_residue_type(self, code, is_ligand, expected):
        assert ResidueCatalogue().residue_type(_residue(code, is_ligand)) == expected

    def test_residue_type_after_remote_lookup(self):
        catalogue = ResidueCatalogue(fetcher=RecordingFetcher({"MSE": "M"}))
        residue = _residue("MSE")
        assert residue.residue_type(catalogue) == "other"
        catalogue.request_annotation(residue)
        catalogue.resolve_pending()
        assert residue.residue_type(catalogue) == "hydrophobic"
