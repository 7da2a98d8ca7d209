from __future__ import annotations

from enum import StrEnum

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, model_validator


class UnknownInteractionTypeError(ValueError):
    """Raised when an interaction type tag is not part of the known vocabulary."""


class InteractionType(StrEnum):
    ATOM_ATOM = "atom_atom"
    ATOM_PLANE = "atom_plane"
    PLANE_PLANE = "plane_plane"
    GROUP_PLANE = "group_plane"
    GROUP_GROUP = "group_group"

    @classmethod
    def parse(cls, value: str) -> InteractionType:
        """Parses an interaction type tag, accepting both `atom-atom` and `atom_atom` forms."""
        try:
            return cls(value.replace("-", "_"))
        except ValueError:
            raise UnknownInteractionTypeError(f"Interaction type {value!r} does not exist") from None


class Environment(StrEnum):
    PRODUCTION = "production"
    DEVELOPMENT = "development"
    INTERNAL = "internal"

    @classmethod
    def parse(cls, value: str | None) -> Environment:
        """Parses an environment selector.

        Unknown selectors are not fatal: production is used instead.
        """
        if value is None:
            return cls.PRODUCTION
        aliases = {
            "production": cls.PRODUCTION,
            "prod": cls.PRODUCTION,
            "development": cls.DEVELOPMENT,
            "dev": cls.DEVELOPMENT,
            "internal": cls.INTERNAL,
            "int": cls.INTERNAL,
        }
        environment = aliases.get(value.lower())
        if environment is None:
            logger.warning(f"Unknown environment {value!r}. Using production instead.")
            return cls.PRODUCTION
        return environment


class PayloadModel(BaseModel):
    """Base model for externally sourced payloads.

    Extra keys are ignored: the upstream API carries more fields than are needed here.
    """

    model_config = ConfigDict(extra="ignore")


# =========================================================================================================
# Ligand structural annotation.


class Point(PayloadModel):
    x: float
    y: float


class AtomLabel(PayloadModel):
    d: str
    fill: str | None = None


class AnnotationAtom(PayloadModel):
    name: str
    labels: list[AtomLabel] = Field(default_factory=list)
    x: float
    y: float


class AnnotationBond(PayloadModel):
    bgn: str
    end: str
    coords: str = ""
    style: str = ""


class LigandAnnotation(PayloadModel):
    """2D depiction of a chemical component."""

    ccd_id: str
    resolution: Point
    atoms: list[AnnotationAtom]
    bonds: list[AnnotationBond] = Field(default_factory=list)


# =========================================================================================================
# Interaction payloads.


class ResidueRecord(PayloadModel):
    """Reference to a residue as found in the interaction payloads."""

    chain_id: str
    author_residue_number: int
    chem_comp_id: str
    author_insertion_code: str | None = " "


class InteractionPartner(ResidueRecord):
    atom_names: list[str] = Field(default_factory=list)


class Composition(PayloadModel):
    ligands: list[ResidueRecord] = Field(default_factory=list)
    connections: list[tuple[str, str]] = Field(default_factory=list)


class ResidueInteractionRecord(PayloadModel):
    begin: ResidueRecord
    end: ResidueRecord
    interactions: dict[str, list[str]]

    @model_validator(mode="after")
    def check_interaction_types(self):
        for key in self.interactions:
            InteractionType.parse(key)
        return self


class BoundMoleculeInteractions(PayloadModel):
    bm_id: str
    composition: Composition
    interactions: list[ResidueInteractionRecord] = Field(default_factory=list)


class LigandRecord(ResidueRecord):
    pass


class LigandInteractionRecord(PayloadModel):
    ligand_atoms: list[str]
    end: InteractionPartner
    interaction_type: str
    interaction_details: list[str] = Field(default_factory=list)
    distance: float

    @model_validator(mode="after")
    def check_interaction_type(self):
        InteractionType.parse(self.interaction_type)
        return self


class LigandInteractions(PayloadModel):
    ligand: LigandRecord
    interactions: list[LigandInteractionRecord] = Field(default_factory=list)


class AtomCount(PayloadModel):
    atom: str
    residue: str | None = None
    count: float


AggregatedInteractionData = dict[str, list[AtomCount]]


def unwrap_payload(data: dict) -> tuple[str, dict]:
    """Returns the key and the body of a `{key: [body]}` API payload."""
    if not isinstance(data, dict) or len(data) == 0:
        raise ValueError("interaction payload must be a non-empty mapping")
    key = next(iter(data))
    entries = data[key]
    if not entries:
        raise ValueError(f"interaction payload for {key!r} is empty")
    return key, entries[0]


def is_ligand_payload(body: dict) -> bool:
    """Returns True if a payload body describes ligand interactions (as opposed to a bound molecule)."""
    return "ligand" in body


# =========================================================================================================
# Run output.


class NodeLayout(BaseModel):
    id: str
    label: str
    residue_type: str
    x: float
    y: float
    scale: float
    static: bool


class LinkLayout(BaseModel):
    source: str
    target: str
    link_class: str
    has_clash: bool


class TransformModel(BaseModel):
    x: float
    y: float
    k: float


class SceneLayout(BaseModel):
    """Laid out scene, ready to be drawn."""

    pdb_id: str | None
    bm_id: str | None
    scene: str | None
    nodes: list[NodeLayout] = Field(default_factory=list)
    links: list[LinkLayout] = Field(default_factory=list)
    transform: TransformModel | None = None
    settled: bool = False
    ticks: int = 0


class LigenvRunOutput(BaseModel):
    """Content of the ligenv json output file.

    `runtime_in_seconds` is added to the json by hand, at the last moment, for better accuracy.
    """

    layout: SceneLayout = Field(frozen=True)
    input_file_checksum: str
    catalogue_version: str
    ligenv_version: str


class LigenvRunOutputRead(LigenvRunOutput):
    runtime_in_seconds: float
