"""2D depiction of a ligand and the geometry derived from it.

The depiction is an RDKit-style drawing (atoms, labels, bond primitives) consumed as is.
Besides exposing it to the renderer, it is used to seed positions of the interaction nodes:
ligand atoms and atom groups are pinned on the drawing, and residues start one bond length
away from the atoms they touch.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable

import numpy as np

from .models import AtomLabel, LigandAnnotation
from .viewport import BoundingBox

if TYPE_CHECKING:
    from .weights import AtomWeightScale


DEFAULT_HIGHLIGHT_COLOR = "#BFBFBF"


class DepictionError(ValueError):
    """Raised when a query is inconsistent with the depiction."""


class AtomNotInBondError(DepictionError):
    """Raised when asking a bond about an atom it does not contain."""


@dataclass(frozen=True)
class Vector2D:
    x: float
    y: float

    def __str__(self) -> str:
        return f"[{self.x}, {self.y}]"

    def distance_to(self, other: Vector2D) -> float:
        return math.hypot(other.x - self.x, other.y - self.y)

    @staticmethod
    def compose(points: Iterable[Vector2D]) -> Vector2D:
        """Returns the sum of a set of vectors."""
        points = list(points)
        return Vector2D(sum(p.x for p in points), sum(p.y for p in points))


class Atom:
    """Atom of the depiction.

    Attrs:
        name (str): unique atom name.
        labels (list[AtomLabel]): glyph paths drawn in place of the atom symbol.
        position (Vector2D): position in the depiction coordinate system.
        connectivity (int): number of distinct atoms bonded to this one.
        weight (float): current interaction weight (0 when none was assigned).
    """

    def __init__(self, name: str, position: Vector2D, labels: list[AtomLabel] | None = None):
        self.name = name
        self.labels = labels or []
        self.position = position
        self.connectivity = 0
        self.weight = 0.0

    def __eq__(self, other) -> bool:
        if not isinstance(other, Atom):
            return NotImplemented
        return self.name == other.name

    def __hash__(self):
        return hash(self.name)

    def __repr__(self) -> str:
        return f"Atom({self.name!r}, {self.position})"


class Bond:
    """Bond primitive of the depiction.

    Several primitives may describe a single chemical bond (e.g. double bonds).
    """

    def __init__(self, bgn: Atom, end: Atom, coords: str, style: str):
        self.bgn = bgn
        self.end = end
        self.coords = coords
        self.style = style.replace("stroke-width:2px", "stroke-width:4px")

    def __repr__(self) -> str:
        return f"Bond({self.bgn.name!r}, {self.end.name!r})"

    def contains_atom(self, atom: Atom) -> bool:
        return self.bgn == atom or self.end == atom

    def other_atom(self, atom: Atom) -> Atom:
        """Returns the atom at the other end of the bond.

        Raises:
            AtomNotInBondError: `atom` is not part of the bond.
        """
        if not self.contains_atom(atom):
            raise AtomNotInBondError(f"Atom {atom.name} is not a part of the bond.")
        return self.end if self.bgn == atom else self.bgn

    def hide(self):
        self.style = self.style.replace("stroke-width:4px", "stroke-width:0px")


@dataclass
class LigandHighlight:
    """Atoms and bonds of the depiction drawn over with a highlight colour."""

    atoms: list[Atom]
    bonds: list[Bond]
    color: str = DEFAULT_HIGHLIGHT_COLOR


class Depiction:
    """Read-only 2D structure of a chemical component."""

    def __init__(self, annotation: LigandAnnotation):
        self.ccd_id = annotation.ccd_id
        self.resolution = Vector2D(annotation.resolution.x, annotation.resolution.y)
        self.atoms = [Atom(a.name, Vector2D(a.x, a.y), list(a.labels)) for a in annotation.atoms]
        self._atoms_by_name = {atom.name: atom for atom in self.atoms}
        self.bonds: list[Bond] = []

        # Connectivity counts chemical bonds, not drawing primitives.
        seen_pairs = set()
        for item in annotation.bonds:
            atom_a = self.atom(item.bgn)
            atom_b = self.atom(item.end)
            self.bonds.append(Bond(atom_a, atom_b, item.coords, item.style))

            pair = frozenset((atom_a.name, atom_b.name))
            if pair not in seen_pairs:
                seen_pairs.add(pair)
                atom_a.connectivity += 1
                atom_b.connectivity += 1

    @classmethod
    def from_json(cls, data: dict) -> Depiction:
        return cls(LigandAnnotation.model_validate(data))

    def __repr__(self) -> str:
        return f"Depiction({self.ccd_id!r}, atoms={len(self.atoms)}, bonds={len(self.bonds)})"

    def atom(self, name: str) -> Atom:
        try:
            return self._atoms_by_name[name]
        except KeyError:
            raise DepictionError(f"Atom {name!r} is not a part of {self.ccd_id}") from None

    def has_atom(self, name: str) -> bool:
        return name in self._atoms_by_name

    def initial_node_position(self, atom_names: Iterable[str]) -> Vector2D:
        """Returns the initial position of a node bound to a list of atoms.

        The contact atom with the lowest degree is preferred (ideally a terminal atom), and the
        node is placed one bond length away from it, opposite to its bonded neighbour.
        """
        if len(self.atoms) == 1:
            position = self.atoms[0].position
            return Vector2D(position.x, position.y)

        names = set(atom_names)
        candidates = sorted((a for a in self.atoms if a.name in names), key=lambda a: a.connectivity)
        if not candidates:
            raise DepictionError(f"None of the atoms {sorted(names)} is a part of {self.ccd_id}")
        this_atom = candidates[0]

        bond = next((b for b in self.bonds if b.contains_atom(this_atom)), None)
        if bond is None:
            raise DepictionError(f"Atom {this_atom.name} of {self.ccd_id} has no bond")
        other_atom = bond.other_atom(this_atom)

        x = other_atom.position.x - 2 * (other_atom.position.x - this_atom.position.x)
        y = other_atom.position.y - 2 * (other_atom.position.y - this_atom.position.y)
        return Vector2D(x, y)

    def center(self, atom_names: Iterable[str]) -> Vector2D:
        """Returns the centroid of a set of atoms."""
        positions = np.array([(self.atom(n).position.x, self.atom(n).position.y) for n in atom_names])
        if len(positions) == 0:
            raise DepictionError("cannot compute the center of an empty atom set")
        x, y = positions.mean(axis=0)
        return Vector2D(float(x), float(y))

    def subgraph(self, atom_names: Iterable[str]) -> tuple[list[Atom], list[Bond]]:
        """Returns the atoms and the bonds fully included in a set of atom names."""
        names = set(atom_names)
        atoms = [a for a in self.atoms if a.name in names]
        bonds = [b for b in self.bonds if b.bgn.name in names and b.end.name in names]
        return atoms, bonds

    def highlight(self, atom_names: Iterable[str], color: str | None = None) -> LigandHighlight:
        atoms, bonds = self.subgraph(atom_names)
        return LigandHighlight(atoms, bonds, color or DEFAULT_HIGHLIGHT_COLOR)

    def bounding_box(self, label_padding: float = 50.0) -> BoundingBox:
        """Returns the box enclosing every atom, labelled atoms being padded on all sides."""
        boxes = []
        for atom in self.atoms:
            box = BoundingBox.from_points([(atom.position.x, atom.position.y)])
            if atom.labels:
                box = box.padded(label_padding)
            boxes.append(box)
        return BoundingBox.union(boxes)

    def apply_weights(self, scale: "AtomWeightScale"):
        """Stores the interaction weight of every atom."""
        for atom in self.atoms:
            atom.weight = scale.weight(atom.name)
