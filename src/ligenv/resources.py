"""Remote PDBe resources: URLs per environment and the default JSON fetcher."""

import requests
from loguru import logger

from .models import Environment

PRODUCTION_API = "https://www.ebi.ac.uk/pdbe"
DEVELOPMENT_API = "https://wwwdev.ebi.ac.uk/pdbe"
INTERNAL_API = "https://wwwint.ebi.ac.uk/pdbe"

BOUND_MOLECULE_URL = "graph-api/pdb/bound_molecule_interactions"
CARBOHYDRATE_URL = "graph-api/pdb/carbohydrate_polymer_interactions"
BOUND_LIGAND_URL = "graph-api/pdb/bound_ligand_interactions"
COMPOUND_SUMMARY_URL = "api/pdb/compound/summary"
STATIC_FILES_URL = "static/files/pdbechem_v2"


class ResourceNotFoundError(IOError):
    """Raised when a remote resource is missing or unreachable."""


def api_root(environment: Environment) -> str:
    """Returns the API host used for graph-api and compound lookups."""
    if environment == Environment.DEVELOPMENT:
        return DEVELOPMENT_API
    if environment == Environment.INTERNAL:
        return INTERNAL_API
    return PRODUCTION_API


def ligand_annotation_url(ligand_name: str, environment: Environment) -> str:
    # Static files are not mirrored on the internal host.
    root = PRODUCTION_API if environment == Environment.PRODUCTION else DEVELOPMENT_API
    return f"{root}/{STATIC_FILES_URL}/{ligand_name}/annotation"


def bound_molecule_url(pdb_id: str, bm_id: str, environment: Environment) -> str:
    return f"{api_root(environment)}/{BOUND_MOLECULE_URL}/{pdb_id}/{bm_id}"


def carbohydrate_polymer_url(pdb_id: str, bm_id: str, entity_id: str, environment: Environment) -> str:
    return f"{api_root(environment)}/{CARBOHYDRATE_URL}/{pdb_id}/{bm_id}/{entity_id}"


def ligand_interactions_url(pdb_id: str, chain_id: str, res_id: int, environment: Environment) -> str:
    return f"{api_root(environment)}/{BOUND_LIGAND_URL}/{pdb_id}/{chain_id}/{res_id}"


def residue_type_url(chem_comp_id: str, environment: Environment) -> str:
    return f"{api_root(environment)}/{COMPOUND_SUMMARY_URL}/{chem_comp_id}"


def fetch_json(url: str, timeout: float = 30.0):
    """Downloads and decodes a JSON document.

    Raises:
        ResourceNotFoundError: the resource could not be retrieved or decoded.
    """
    logger.debug(f"Fetching {url}")
    try:
        response = requests.get(url, timeout=timeout)
        response.raise_for_status()
        return response.json()
    except (requests.RequestException, ValueError) as e:
        raise ResourceNotFoundError(f"could not retrieve {url}") from e


class JsonFetcher:
    """Callable fetcher bound to a timeout, used as the default network collaborator."""

    def __init__(self, timeout: float = 30.0):
        self.timeout = timeout

    def __call__(self, url: str):
        return fetch_json(url, timeout=self.timeout)


def offline_fetcher(url: str):
    """Fetcher refusing every download, for runs restricted to local inputs."""
    raise ResourceNotFoundError(f"offline mode: {url} was not downloaded")
