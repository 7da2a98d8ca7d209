import copy
import json
from pathlib import Path

import pytest

from ligenv.catalogue import ResidueCatalogue
from ligenv.depiction import Depiction
from ligenv.graph import BindingSite

TEST_DATA_DIR = Path(__file__).parent / "data"


def read_test_json(name: str):
    with open(TEST_DATA_DIR / name) as f:
        return json.load(f)


@pytest.fixture
def annotation_json() -> dict:
    return read_test_json("lig_annotation.json")


@pytest.fixture
def ligand_payload() -> dict:
    return read_test_json("ligand_interactions.json")


@pytest.fixture
def bound_molecule_payload() -> dict:
    return read_test_json("bound_molecule_interactions.json")


@pytest.fixture
def weights_payload() -> dict:
    return read_test_json("aggregated_weights.json")


@pytest.fixture
def depiction(annotation_json) -> Depiction:
    return Depiction.from_json(annotation_json)


@pytest.fixture
def ligand_site(ligand_payload, depiction) -> BindingSite:
    return BindingSite.from_ligand("1abc", ligand_payload["1abc"][0], depiction)


@pytest.fixture
def bound_molecule_site(bound_molecule_payload) -> BindingSite:
    return BindingSite.from_bound_molecule("1xyz", bound_molecule_payload["1xyz"][0])


@pytest.fixture
def offline_catalogue() -> ResidueCatalogue:
    return ResidueCatalogue(fetcher=None)


def single_ligand_bound_molecule(payload: dict) -> dict:
    """Returns a copy of the bound molecule payload restricted to its first ligand."""
    data = copy.deepcopy(payload)
    body = data["1xyz"][0]
    body["composition"]["ligands"] = body["composition"]["ligands"][:1]
    body["composition"]["connections"] = []
    return data
