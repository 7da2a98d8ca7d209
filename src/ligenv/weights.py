"""Per-atom interaction weights and their visual scales."""

from __future__ import annotations

from typing import Iterable, Mapping

import matplotlib
import numpy as np
from loguru import logger
from matplotlib.colors import to_hex

from .models import AggregatedInteractionData, AtomCount

ALL_CONTACT_TYPES = "TOTAL"


class AggregatedInteractions:
    """Aggregated interaction counts of a ligand, restricted to a set of contact types."""

    def __init__(self, data: AggregatedInteractionData | dict, contact_types: Iterable[str]):
        self.data: AggregatedInteractionData = {
            key: [AtomCount.model_validate(item) for item in items] for key, items in data.items()
        }
        self.contact_types = list(contact_types)
        self.filtered_data = self._filter()

    def _filter(self) -> list[AtomCount]:
        if ALL_CONTACT_TYPES in self.contact_types:
            selected = list(self.data)
        else:
            selected = [c for c in self.contact_types if c in self.data]
        return [item for contact_type in selected for item in self.data[contact_type]]

    def atom_propensity(self) -> dict[str, float]:
        """Returns the percentage of the total interaction count carried by each atom."""
        counts: dict[str, float] = {}
        for item in self.filtered_data:
            counts[item.atom] = counts.get(item.atom, 0.0) + item.count

        total = sum(counts.values())
        if total == 0:
            return {atom: 0.0 for atom in counts}
        return {atom: count / total * 100 for atom, count in counts.items()}


class AtomWeightScale:
    """Radius and colour of the circles highlighting weighted atoms.

    Atoms without weight get `default_radius` and `default_color`. The radius follows a
    square-root scale over the range of the positive weights, the colour a piecewise linear
    scale over `[0, epsilon, max]` sampled from a matplotlib colormap.
    """

    def __init__(
        self,
        atom_names: Iterable[str],
        weights: Mapping[str, float],
        radius_range: tuple[float, float] = (20.0, 30.0),
        default_radius: float = 16.12,
        default_color: str = "#FFFFFF",
        colormap: str = "YlOrRd",
        epsilon: float = 1e-6,
    ):
        self.weights = {name: float(weights.get(name, 0.0)) for name in atom_names}
        unknown = [name for name in weights if name not in self.weights]
        if unknown:
            logger.warning(f"Ignoring weights of atoms missing from the depiction: {unknown}")

        self.radius_range = radius_range
        self.default_radius = default_radius
        self.default_color = default_color
        self.epsilon = epsilon
        self.cmap = matplotlib.colormaps[colormap]

        positive = np.array([w for w in self.weights.values() if w > 0])
        self.min_weight = float(positive.min()) if positive.size else 0.0
        self.max_weight = float(positive.max()) if positive.size else 0.0

    def weight(self, atom_name: str) -> float:
        return self.weights.get(atom_name, 0.0)

    def radius_of(self, weight: float) -> float:
        if weight <= 0:
            return self.default_radius

        low, high = self.radius_range
        if self.max_weight == self.min_weight:
            return (low + high) / 2
        t = (np.sqrt(weight) - np.sqrt(self.min_weight)) / (np.sqrt(self.max_weight) - np.sqrt(self.min_weight))
        return float(low + t * (high - low))

    def color_position(self, weight: float) -> float:
        """Returns the position of a weight along the colormap, in [0, 1]."""
        if self.max_weight <= 0:
            return 0.0
        if self.max_weight <= self.epsilon:
            return float(np.interp(weight, [0.0, self.max_weight], [0.0, 1.0]))
        return float(np.interp(weight, [0.0, self.epsilon, self.max_weight], [0.0, 0.2, 1.0]))

    def color_of(self, weight: float) -> str:
        if weight <= 0:
            return self.default_color
        return to_hex(self.cmap(self.color_position(weight)))

    def radius(self, atom_name: str) -> float:
        return self.radius_of(self.weight(atom_name))

    def color(self, atom_name: str) -> str:
        return self.color_of(self.weight(atom_name))
