"""Interaction graph of a binding site.

Payloads reference the same residue from many interaction records. Residues and nodes are
therefore funnelled through `ObjectSet.try_add`, which hands back the instance already
registered for an equal object, so that every logical residue/node exists exactly once.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Generic, Hashable, Iterable, Iterator, Mapping, Protocol, TypeVar

from loguru import logger
from pydantic import BaseModel, ConfigDict, computed_field

from .catalogue import get_amino_acid_name_map
from .models import (
    BoundMoleculeInteractions,
    InteractionType,
    LigandInteractions,
    ResidueRecord,
)

if TYPE_CHECKING:
    from .catalogue import ResidueCatalogue
    from .depiction import Depiction


class GraphConstructionError(ValueError):
    """Raised when a payload is inconsistent with the graph built from it."""


# Ordered: the first class whose tags intersect the tags of a link wins.
LINK_CLASSES: tuple[tuple[str, frozenset[str]], ...] = (
    ("covalent", frozenset({"covalent"})),
    (
        "electrostatic",
        frozenset({"ionic", "hbond", "weak_hbond", "polar", "weak_polar", "xbond", "carbonyl"}),
    ),
    ("amide", frozenset({"AMIDEAMIDE", "AMIDERING"})),
    ("vdw", frozenset({"vdw"})),
    ("hydrophobic", frozenset({"hydrophobic"})),
    ("aromatic", frozenset({"aromatic", "FF", "OF", "EE", "FT", "OT", "ET", "FE", "OE", "EF"})),
    ("atom-pi", frozenset({"CARBONPI", "CATIONPI", "DONORPI", "HALOGENPI", "METSULPHURPI"})),
    ("metal", frozenset({"metal_complex"})),
    ("clashes", frozenset({"clash", "vdw_clash"})),
)

BACKBONE_ATOMS = ("N", "CA", "C", "O")


def classify(tags: Iterable[str]) -> str:
    """Returns the class of a contact given all its detail tags."""
    tags = set(tags)
    for name, members in LINK_CLASSES:
        if tags & members:
            return name
    return "other"


class Deduplicable(Protocol):
    def dedup_key(self) -> Hashable: ...


T = TypeVar("T", bound=Deduplicable)


class ObjectSet(Generic[T]):
    """Insertion-ordered set returning the registered instance for equal objects."""

    def __init__(self):
        self._items: dict[Hashable, T] = {}

    def __iter__(self) -> Iterator[T]:
        return iter(list(self._items.values()))

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, value: T) -> bool:
        return value.dedup_key() in self._items

    def try_add(self, value: T) -> T:
        """Adds `value` unless an equal object is registered, and returns the registered one."""
        return self._items.setdefault(value.dedup_key(), value)

    def get(self, key: Hashable) -> T | None:
        return self._items.get(key)

    def discard(self, value: T):
        self._items.pop(value.dedup_key(), None)


# =========================================================================================================
#
#   Nodes
#
# =========================================================================================================


class Residue(BaseModel):
    """A residue taking part in the binding site, unique within it."""

    model_config = ConfigDict(frozen=True)

    chain_id: str
    author_residue_number: int
    chem_comp_id: str
    author_insertion_code: str | None = " "
    is_ligand: bool = False

    @classmethod
    def from_record(cls, record: ResidueRecord, is_ligand: bool) -> Residue:
        return cls(
            chain_id=record.chain_id,
            author_residue_number=record.author_residue_number,
            chem_comp_id=record.chem_comp_id,
            author_insertion_code=record.author_insertion_code,
            is_ligand=is_ligand,
        )

    @computed_field
    @property
    def id(self) -> str:
        insertion_code = self.author_insertion_code
        if insertion_code is None or insertion_code == " ":
            insertion_code = ""
        return f"{self.chain_id}{self.author_residue_number}{insertion_code}"

    def __eq__(self, other) -> bool:
        if not isinstance(other, Residue):
            return NotImplemented
        return self.id == other.id

    def __hash__(self):
        return hash(self.id)

    def __str__(self) -> str:
        return self.id

    def dedup_key(self) -> Hashable:
        return self.id

    def residue_type(self, catalogue: "ResidueCatalogue") -> str:
        """Returns the display category of the residue (ligand, water, hydrophobic, ...)."""
        return catalogue.residue_type(self)


class InteractionNode:
    """Graph vertex wrapping a residue, or a ligand atom/atom group.

    Nodes given an initial position are pinned there (`fx`, `fy`). Nodes scaled down below
    1.0 are static: they stay where the depiction puts them and cannot be dragged.
    """

    def __init__(
        self,
        residue: Residue,
        scale: float,
        id: str,
        x: float | None = None,
        y: float | None = None,
    ):
        self.residue = residue
        self.id = id
        self.scale = scale
        self.static = scale < 1.0

        self.index: int | None = None
        self.x: float | None = None
        self.y: float | None = None
        self.vx = 0.0
        self.vy = 0.0
        self.fx: float | None = None
        self.fy: float | None = None

        if x is not None:
            self.fx = x
            self.x = x
        if y is not None:
            self.fy = y
            self.y = y

    def __eq__(self, other) -> bool:
        if not isinstance(other, InteractionNode):
            return NotImplemented
        return self.id == other.id and self.fx == other.fx and self.fy == other.fy

    def __hash__(self):
        return hash(self.id)

    def __repr__(self) -> str:
        return f"InteractionNode({self.id!r}, scale={self.scale})"

    def dedup_key(self) -> Hashable:
        return (self.id, self.fx, self.fy)

    def label(self) -> str:
        r = self.residue
        chain, *symmetry = r.chain_id.split("_")
        symmetry_str = f"[{symmetry[0]}]" if symmetry and symmetry[0] != "1" else ""
        insertion_code = (r.author_insertion_code or "").strip()
        return f"{r.chem_comp_id} | {chain}{symmetry_str} | {r.author_residue_number}{insertion_code}"

    def tooltip(self) -> str:
        return f"<span>{self.label()}</span>"


# =========================================================================================================
#
#   Links
#
# =========================================================================================================


@dataclass
class Interaction:
    source_atoms: list[str]
    target_atoms: list[str]
    interaction_type: InteractionType
    interaction_details: list[str]
    distance: float


class Link(ABC):
    """Typed edge between two interaction nodes."""

    def __init__(self, source: InteractionNode, target: InteractionNode):
        self.source = source
        self.target = target

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.source.id!r}, {self.target.id!r}, {self.link_class()!r})"

    def contains_both_nodes(self, a: InteractionNode, b: InteractionNode) -> bool:
        return (self.source == a and self.target == b) or (self.source == b and self.target == a)

    def contains_node(self, node: InteractionNode) -> bool:
        return self.source == node or self.target == node

    def contains_residue(self, residue: Residue) -> bool:
        return self.source.residue == residue or self.target.residue == residue

    def other_node(self, node: InteractionNode) -> InteractionNode:
        return self.target if self.source == node else self.source

    def has_clash(self) -> bool:
        return any("clash" in tag for tag in self.detail_tags())

    def source_atoms(self) -> list[str]:
        """Source atom names, without duplicates."""
        return []

    def target_atoms(self) -> list[str]:
        """Target atom names, without duplicates."""
        return []

    @abstractmethod
    def detail_tags(self) -> list[str]:
        """Returns every interaction detail tag carried by the link."""

    @abstractmethod
    def link_class(self) -> str:
        """Returns the display class of the link (covalent, electrostatic, ...)."""

    @abstractmethod
    def tooltip(self, catalogue: "ResidueCatalogue | None" = None) -> str: ...


class ResidueResidueLink(Link):
    """Contact between two residues of a bound molecule environment."""

    def __init__(self, source: InteractionNode, target: InteractionNode, interactions: Mapping[str, list[str]]):
        super().__init__(source, target)
        self.interactions: dict[InteractionType, list[str]] = {
            InteractionType.parse(key): list(value) for key, value in interactions.items()
        }

    def detail_tags(self) -> list[str]:
        return [tag for tags in self.interactions.values() for tag in tags]

    def is_bound_molecule_link(self) -> bool:
        """Returns True for covalent links between two parts of the bound molecule."""
        return (
            self.source.residue.is_ligand
            and self.target.residue.is_ligand
            and "covalent" in self.interactions.get(InteractionType.ATOM_ATOM, [])
        )

    def link_class(self) -> str:
        if self.is_bound_molecule_link():
            return "ligand"
        return classify(self.detail_tags())

    def tooltip(self, catalogue: "ResidueCatalogue | None" = None) -> str:
        return f"<ul>{', '.join(self.detail_tags())}</ul>"


class LigandResidueLink(Link):
    """Contact between a ligand atom (or atom group) and a residue.

    Several interaction records between the same pair of nodes accumulate on one link.
    """

    def __init__(
        self,
        begin: InteractionNode,
        end: InteractionNode,
        begin_atoms: list[str],
        end_atoms: list[str],
        interaction_type: str,
        interaction_details: list[str],
        distance: float,
    ):
        super().__init__(begin, end)
        self.interactions: list[Interaction] = []
        self.add_interaction(begin_atoms, end_atoms, interaction_type, interaction_details, distance)

    def add_interaction(
        self,
        begin_atoms: list[str],
        end_atoms: list[str],
        interaction_type: str,
        interaction_details: list[str],
        distance: float,
    ):
        self.interactions.append(
            Interaction(
                list(begin_atoms),
                list(end_atoms),
                InteractionType.parse(interaction_type),
                list(interaction_details),
                distance,
            )
        )

    def detail_tags(self) -> list[str]:
        return [tag for interaction in self.interactions for tag in interaction.interaction_details]

    def source_atoms(self) -> list[str]:
        return list(dict.fromkeys(a for i in self.interactions for a in i.source_atoms))

    def target_atoms(self) -> list[str]:
        return list(dict.fromkeys(a for i in self.interactions for a in i.target_atoms))

    def is_atom_atom(self) -> bool:
        return all(i.interaction_type == InteractionType.ATOM_ATOM for i in self.interactions)

    def link_class(self) -> str:
        return classify(self.detail_tags())

    def tooltip(self, catalogue: "ResidueCatalogue | None" = None) -> str:
        target = self.target.residue
        if catalogue is not None:
            abbreviation = catalogue.abbreviation(target.chem_comp_id)
        else:
            abbreviation = get_amino_acid_name_map().get(target.chem_comp_id)
        is_residue = abbreviation is not None and abbreviation != "X"

        messages = {}
        for interaction in self.interactions:
            is_main_chain = not target.is_ligand and all(
                atom in BACKBONE_ATOMS for atom in interaction.target_atoms
            )
            if is_main_chain and is_residue:
                flag = "backbone"
            elif is_residue:
                flag = "side chain"
            else:
                flag = "ligand"
            atoms = ",".join(interaction.target_atoms)
            details = ",".join(interaction.interaction_details)
            message = (
                f"<li><span>{flag}</span> interaction (<b>{atoms}</b> | {details}): "
                f"{interaction.distance}Å</li>"
            )
            messages[message] = None
        return "<ul>{}</ul>".format("\n".join(messages))


# =========================================================================================================
#
#   Binding site
#
# =========================================================================================================


class BindingSite:
    """Residues, nodes and links of one query.

    Built once from a payload by `from_bound_molecule` or `from_ligand`; afterwards only the
    pinned positions of the nodes are reset when the layout is re-run.
    """

    def __init__(self, pdb_id: str | None = None, bm_id: str | None = None):
        self.pdb_id = pdb_id
        self.bm_id = bm_id
        self.residues: list[Residue] = []
        self.interaction_nodes: list[InteractionNode] = []
        self.links: list[Link] = []

    def __repr__(self) -> str:
        return (
            f"BindingSite({self.pdb_id!r}, {self.bm_id!r}, residues={len(self.residues)}, "
            f"nodes={len(self.interaction_nodes)}, links={len(self.links)})"
        )

    @classmethod
    def from_bound_molecule(cls, pdb_id: str, data: BoundMoleculeInteractions | dict) -> BindingSite:
        """Builds the binding site of a bound molecule (or carbohydrate polymer)."""
        data = BoundMoleculeInteractions.model_validate(data)
        site = cls(pdb_id, data.bm_id)

        residues: ObjectSet[Residue] = ObjectSet()
        nodes: ObjectSet[InteractionNode] = ObjectSet()

        for record in data.composition.ligands:
            residues.try_add(Residue.from_record(record, is_ligand=True))

        for record in data.interactions:
            bgn_node = _residue_partner(record.begin, residues, nodes)
            end_node = _residue_partner(record.end, residues, nodes)
            if bgn_node.residue == end_node.residue:
                logger.debug(f"Ignoring self contact of residue {bgn_node.residue}")
                continue
            site.links.append(ResidueResidueLink(bgn_node, end_node, record.interactions))

        for bgn_id, end_id in data.composition.connections:
            if bgn_id == end_id:
                continue
            bgn_node = _connection_node(bgn_id, residues, nodes)
            end_node = _connection_node(end_id, residues, nodes)
            if any(link.contains_both_nodes(bgn_node, end_node) for link in site.links):
                continue
            site.links.append(ResidueResidueLink(bgn_node, end_node, {"atom_atom": ["covalent"]}))

        site.residues = list(residues)
        site.interaction_nodes = list(nodes)
        logger.debug(f"Built {site!r}")
        return site

    @classmethod
    def from_ligand(cls, pdb_id: str, data: LigandInteractions | dict, depiction: "Depiction") -> BindingSite:
        """Builds the binding site of a ligand drawn with `depiction`."""
        data = LigandInteractions.model_validate(data)
        ligand = data.ligand
        site = cls(pdb_id, f"{ligand.chem_comp_id}_{ligand.chain_id}_{ligand.author_residue_number}")

        residues: ObjectSet[Residue] = ObjectSet()
        nodes: ObjectSet[InteractionNode] = ObjectSet()
        links: list[LigandResidueLink] = []

        ligand_residue = residues.try_add(Residue.from_record(ligand, is_ligand=True))

        for atom in depiction.atoms:
            _ligand_partner(ligand_residue, depiction, [atom.name], nodes)

        for record in data.interactions:
            bgn_node = _ligand_partner(ligand_residue, depiction, record.ligand_atoms, nodes)
            end_node = _residue_partner(record.end, residues, nodes)

            if bgn_node.residue == end_node.residue:
                nodes.discard(end_node)
                logger.debug(f"Ignoring self contact of ligand {ligand_residue}")
                continue

            link = next((x for x in links if x.contains_both_nodes(bgn_node, end_node)), None)
            if link is not None:
                link.add_interaction(
                    record.ligand_atoms,
                    record.end.atom_names,
                    record.interaction_type,
                    record.interaction_details,
                    record.distance,
                )
            else:
                links.append(
                    LigandResidueLink(
                        bgn_node,
                        end_node,
                        record.ligand_atoms,
                        record.end.atom_names,
                        record.interaction_type,
                        record.interaction_details,
                        record.distance,
                    )
                )

        site.residues = list(residues)
        site.interaction_nodes = list(nodes)
        site.links = filter_aromatic_atom_atom_links(links)
        logger.debug(f"Built {site!r}")
        return site

    def ligands(self) -> list[Residue]:
        return [r for r in self.residues if r.is_ligand]

    def node(self, node_id: str) -> InteractionNode | None:
        return next((n for n in self.interaction_nodes if n.id == node_id), None)

    def neighbours(self, node: InteractionNode) -> list[InteractionNode]:
        """Returns `node` and every node it is linked to."""
        result = [node]
        for link in self.links:
            if link.contains_node(node):
                other = link.other_node(node)
                if not any(other is n for n in result):
                    result.append(other)
        return result

    def reset_positions(self):
        """Unpins every node that is not static."""
        for node in self.interaction_nodes:
            if not node.static:
                node.fx = None
                node.fy = None


def filter_aromatic_atom_atom_links(links: list[LigandResidueLink]) -> list[LigandResidueLink]:
    """Removes aromatic atom-atom links already implied by a stacking contact.

    An aromatic link made of atom-atom interactions only is dropped when another link to the
    same target node binds its target atom through a ring (non atom-atom) interaction.
    """
    result = []
    for link in links:
        if link.link_class() == "aromatic" and link.is_atom_atom():
            target_atoms = link.target_atoms()
            other_bound_atoms = {
                atom
                for other in links
                if other is not link and other.target == link.target
                for interaction in other.interactions
                if interaction.interaction_type != InteractionType.ATOM_ATOM
                for atom in interaction.target_atoms
            }
            if target_atoms and target_atoms[0] in other_bound_atoms:
                logger.debug(f"Dropping aromatic atom-atom link {link!r}")
                continue
        result.append(link)
    return result


def _residue_partner(
    record: ResidueRecord, residues: ObjectSet[Residue], nodes: ObjectSet[InteractionNode]
) -> InteractionNode:
    residue = residues.try_add(Residue.from_record(record, is_ligand=False))
    return nodes.try_add(InteractionNode(residue, 1.0, residue.id))


def _ligand_partner(
    residue: Residue, depiction: "Depiction", atom_names: list[str], nodes: ObjectSet[InteractionNode]
) -> InteractionNode:
    if residue.is_ligand:
        scale = 0.5 if len(atom_names) > 1 else 0.0
    else:
        scale = 1.0

    center = depiction.center(atom_names)
    node_id = "_".join([residue.id, *sorted(atom_names)])
    return nodes.try_add(InteractionNode(residue, scale, node_id, center.x, center.y))


def _connection_node(
    residue_id: str, residues: ObjectSet[Residue], nodes: ObjectSet[InteractionNode]
) -> InteractionNode:
    node = next((n for n in nodes if n.residue.id == residue_id), None)
    if node is not None:
        return node

    residue = residues.get(residue_id)
    if residue is None:
        raise GraphConstructionError(f"connection references unknown residue {residue_id!r}")
    return nodes.try_add(InteractionNode(residue, 1.0, residue.id))
