"""Force-directed layout of the interaction nodes.

`ForceSimulation` is a velocity Verlet integrator following the d3-force conventions
(alpha cooling, velocity decay, pinned `fx`/`fy` positions); the scene constants in
`ligenv.settings` were tuned against those conventions. Node positions live in numpy arrays
during a step and are written back on the `InteractionNode` objects after it.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable, Sequence

import numpy as np
from loguru import logger

from .graph import BindingSite, InteractionNode, Link
from .settings import Settings, SimulationSettings, get_settings

if TYPE_CHECKING:
    from .depiction import Depiction

INITIAL_RADIUS = 10.0
INITIAL_ANGLE = math.pi * (3 - math.sqrt(5))

LinkParameter = float | Callable[[Link], float]


class Force(ABC):
    """Base class of the simulation forces."""

    def initialize(self, simulation: ForceSimulation):
        self.simulation = simulation

    @abstractmethod
    def __call__(self, alpha: float):
        """Updates the velocities (or positions) of the simulated nodes."""


class ForceSimulation:
    """Holds node state and advances it one step at a time.

    Args:
        nodes: simulated nodes. Nodes with `fx`/`fy` set are pinned; nodes without a position
            are placed on a phyllotaxis spiral around the origin.
        seed: seed (or numpy generator) of the jiggle used to separate coincident nodes.
    """

    def __init__(
        self,
        nodes: Sequence[InteractionNode],
        alpha_min: float = 0.001,
        alpha_decay: float = 1 - 0.001 ** (1 / 300),
        velocity_decay: float = 0.4,
        seed: int | np.random.Generator | None = None,
    ):
        self.nodes = list(nodes)
        self.alpha = 1.0
        self.alpha_min = alpha_min
        self.alpha_decay = alpha_decay
        self.alpha_target = 0.0
        self.velocity_decay = velocity_decay
        self.rng = np.random.default_rng(seed)
        self.forces: dict[str, Force] = {}

        n = len(self.nodes)
        self.positions = np.zeros((n, 2))
        self.velocities = np.zeros((n, 2))
        self._index = {id(node): i for i, node in enumerate(self.nodes)}
        self._initialize_nodes()

    def _initialize_nodes(self):
        for i, node in enumerate(self.nodes):
            node.index = i
            if node.fx is not None:
                node.x = node.fx
            if node.fy is not None:
                node.y = node.fy
            if node.x is None or node.y is None:
                radius = INITIAL_RADIUS * math.sqrt(0.5 + i)
                angle = i * INITIAL_ANGLE
                node.x = radius * math.cos(angle)
                node.y = radius * math.sin(angle)
            self.positions[i] = node.x, node.y
            self.velocities[i] = node.vx, node.vy

    def index_of(self, node: InteractionNode) -> int:
        try:
            return self._index[id(node)]
        except KeyError:
            raise ValueError(f"node {node.id!r} is not part of the simulation") from None

    def jiggle(self) -> float:
        return (self.rng.random() - 0.5) * 1e-6

    def force(self, name: str, force: Force) -> ForceSimulation:
        force.initialize(self)
        self.forces[name] = force
        return self

    def restart(self, alpha: float | None = None):
        if alpha is not None:
            self.alpha = alpha

    def _pinned(self) -> tuple[np.ndarray, np.ndarray]:
        pinned = np.array([[node.fx is not None, node.fy is not None] for node in self.nodes], dtype=bool)
        fixed = np.array(
            [[node.fx if node.fx is not None else 0.0, node.fy if node.fy is not None else 0.0] for node in self.nodes]
        )
        return pinned.reshape(-1, 2), fixed.reshape(-1, 2)

    def step(self):
        self.alpha += (self.alpha_target - self.alpha) * self.alpha_decay

        for force in self.forces.values():
            force(self.alpha)

        pinned, fixed = self._pinned()
        self.velocities *= 1 - self.velocity_decay
        self.positions += self.velocities
        self.positions[pinned] = fixed[pinned]
        self.velocities[pinned] = 0.0

        for i, node in enumerate(self.nodes):
            node.x, node.y = float(self.positions[i, 0]), float(self.positions[i, 1])
            node.vx, node.vy = float(self.velocities[i, 0]), float(self.velocities[i, 1])

    def is_cooled(self) -> bool:
        return self.alpha < self.alpha_min


class LinkForce(Force):
    """Spring between linked nodes.

    Unless given, the strength of a link is `1 / min(degree)` of its endpoints, so that
    springs between hubs are softer.
    """

    def __init__(
        self,
        links: Sequence[Link],
        distance: LinkParameter = 30.0,
        strength: LinkParameter | None = None,
        iterations: int = 1,
    ):
        self.links = list(links)
        self.distance = distance
        self.strength = strength
        self.iterations = iterations

    def initialize(self, simulation: ForceSimulation):
        super().initialize(simulation)
        self.sources = np.array([simulation.index_of(link.source) for link in self.links], dtype=int)
        self.targets = np.array([simulation.index_of(link.target) for link in self.links], dtype=int)

        count = np.zeros(len(simulation.nodes))
        np.add.at(count, self.sources, 1)
        np.add.at(count, self.targets, 1)

        if self.links:
            self.bias = count[self.sources] / (count[self.sources] + count[self.targets])
        else:
            self.bias = np.zeros(0)
        self.distances = np.array([self._evaluate(self.distance, link) for link in self.links], dtype=float)
        if self.strength is None:
            self.strengths = 1 / np.minimum(count[self.sources], count[self.targets])
        else:
            self.strengths = np.array([self._evaluate(self.strength, link) for link in self.links], dtype=float)

    @staticmethod
    def _evaluate(parameter: LinkParameter, link: Link) -> float:
        return parameter(link) if callable(parameter) else parameter

    def __call__(self, alpha: float):
        pos = self.simulation.positions
        vel = self.simulation.velocities
        for _ in range(self.iterations):
            # Links are relaxed one after the other: each sees the velocities updated by the previous ones.
            for i in range(len(self.links)):
                s, t = self.sources[i], self.targets[i]
                delta = pos[t] + vel[t] - pos[s] - vel[s]
                if delta[0] == 0:
                    delta[0] = self.simulation.jiggle()
                if delta[1] == 0:
                    delta[1] = self.simulation.jiggle()
                length = math.hypot(delta[0], delta[1])
                delta *= (length - self.distances[i]) / length * alpha * self.strengths[i]
                vel[t] -= delta * self.bias[i]
                vel[s] += delta * (1 - self.bias[i])


class ManyBodyForce(Force):
    """Pairwise repulsion (negative strength) or attraction between all nodes."""

    def __init__(self, strength: float = -30.0, distance_min: float = 1.0, distance_max: float = math.inf):
        self.strength = strength
        self.distance_min = distance_min
        self.distance_max = distance_max

    def __call__(self, alpha: float):
        pos = self.simulation.positions
        n = len(pos)
        if n < 2:
            return

        delta = pos[np.newaxis, :, :] - pos[:, np.newaxis, :]
        off_diagonal = ~np.eye(n, dtype=bool)
        coincident = (delta == 0) & off_diagonal[:, :, np.newaxis]
        for i, j, axis in zip(*np.nonzero(coincident)):
            delta[i, j, axis] = self.simulation.jiggle()

        dist2 = (delta**2).sum(axis=2)
        active = off_diagonal & (dist2 < self.distance_max**2)
        dmin2 = self.distance_min**2
        dist2 = np.where(dist2 < dmin2, np.sqrt(dmin2 * dist2), dist2)
        factor = np.where(active, self.strength * alpha / np.where(active, dist2, 1.0), 0.0)
        self.simulation.velocities += (delta * factor[:, :, np.newaxis]).sum(axis=1)


class CollideForce(Force):
    """Keeps nodes at least `2 * radius` apart."""

    def __init__(self, radius: float = 1.0, strength: float = 1.0, iterations: int = 1):
        self.radius = radius
        self.strength = strength
        self.iterations = iterations

    def __call__(self, alpha: float):
        pos = self.simulation.positions
        vel = self.simulation.velocities
        n = len(pos)
        ri = rj = self.radius
        r = ri + rj
        share = rj * rj / (ri * ri + rj * rj)

        for _ in range(self.iterations):
            for i in range(n - 1):
                predicted = pos[i] + vel[i]
                others = slice(i + 1, n)
                delta = predicted - pos[others] - vel[others]
                dist2 = (delta**2).sum(axis=1)
                overlapping = np.nonzero(dist2 < r * r)[0]
                for k in overlapping:
                    d = delta[k]
                    l2 = dist2[k]
                    if d[0] == 0:
                        d[0] = self.simulation.jiggle()
                        l2 += d[0] ** 2
                    if d[1] == 0:
                        d[1] = self.simulation.jiggle()
                        l2 += d[1] ** 2
                    length = math.sqrt(l2)
                    d = d * ((r - length) / length * self.strength)
                    vel[i] += d * share
                    vel[i + 1 + k] -= d * (1 - share)


class CenterForce(Force):
    """Translates all nodes so that their mean position is `(x, y)`."""

    def __init__(self, x: float = 0.0, y: float = 0.0, strength: float = 1.0):
        self.x = x
        self.y = y
        self.strength = strength

    def __call__(self, alpha: float):
        pos = self.simulation.positions
        if len(pos) == 0:
            return
        shift = (pos.mean(axis=0) - (self.x, self.y)) * self.strength
        pos -= shift


# =========================================================================================================
#
#   Scenes
#
# =========================================================================================================


@dataclass
class NodeTransform:
    id: str
    x: float
    y: float
    scale: float

    def svg(self) -> str:
        return f"translate({self.x},{self.y}) scale({self.scale})"


@dataclass
class LinkEndpoints:
    source: str
    target: str
    x1: float
    y1: float
    x2: float
    y2: float


@dataclass
class LayoutFrame:
    """Rendered state of the scene after one tick."""

    tick: int
    alpha: float
    nodes: list[NodeTransform] = field(default_factory=list)
    links: list[LinkEndpoints] = field(default_factory=list)


class LayoutEngine:
    """Force layout of a binding site, advanced by `tick`.

    The scene is settled once the simulation has cooled down and at least one node and one
    link have been rendered.
    """

    def __init__(
        self,
        site: BindingSite,
        simulation: ForceSimulation,
        settings: SimulationSettings | None = None,
        center: CenterForce | None = None,
    ):
        self.site = site
        self.simulation = simulation
        self.settings = settings or SimulationSettings()
        self.center = center
        self.ticks = 0
        self.last_frame: LayoutFrame | None = None
        self.dragged: InteractionNode | None = None

    @staticmethod
    def _make_simulation(site: BindingSite, settings: Settings, seed) -> ForceSimulation:
        return ForceSimulation(
            site.interaction_nodes,
            alpha_min=settings.simulation.alpha_min,
            alpha_decay=settings.simulation.alpha_decay,
            velocity_decay=settings.simulation.velocity_decay,
            seed=seed,
        )

    @classmethod
    def for_residue_scene(
        cls,
        site: BindingSite,
        width: float,
        height: float,
        settings: Settings | None = None,
        seed: int | np.random.Generator | None = None,
    ) -> LayoutEngine:
        """Layout of a bound molecule environment: every residue node is free to move."""
        settings = settings or get_settings()
        scene = settings.residue_scene

        def link_distance(link: Link) -> float:
            if link.source.residue.is_ligand and link.target.residue.is_ligand:
                return scene.ligand_link_distance
            return scene.link_distance

        simulation = cls._make_simulation(site, settings, seed)
        center = CenterForce(width / 2, height / 2)
        simulation.force("link", LinkForce(site.links, distance=link_distance, strength=scene.link_strength))
        simulation.force(
            "charge",
            ManyBodyForce(scene.charge_strength, scene.charge_distance_min, scene.charge_distance_max),
        )
        simulation.force("collision", CollideForce(scene.collision_radius))
        simulation.force("center", center)

        logger.debug(f"Residue scene set up with {len(site.interaction_nodes)} nodes and {len(site.links)} links")
        return cls(site, simulation, settings.simulation, center)

    @classmethod
    def for_ligand_scene(
        cls,
        site: BindingSite,
        depiction: "Depiction",
        settings: Settings | None = None,
        seed: int | np.random.Generator | None = None,
    ) -> LayoutEngine:
        """Layout around a fixed ligand depiction: only the residue nodes move."""
        settings = settings or get_settings()
        scene = settings.ligand_scene
        rng = np.random.default_rng(seed)

        for node in site.interaction_nodes:
            if node.residue.is_ligand:
                continue
            links = [x for x in site.links if x.contains_node(node) and x.link_class() != "hydrophobic"]
            if not links:
                links = [x for x in site.links if x.contains_node(node)]
            atom_names = [atom for link in links for atom in link.source_atoms()]

            position = depiction.initial_node_position(atom_names)
            node.x = position.x + rng.random() * scene.initial_jitter
            node.y = position.y + rng.random() * scene.initial_jitter

        simulation = cls._make_simulation(site, settings, rng)
        simulation.force(
            "link",
            LinkForce([x for x in site.links if x.link_class() != "hydrophobic"], distance=scene.link_distance),
        )
        simulation.force(
            "charge",
            ManyBodyForce(scene.charge_strength, scene.charge_distance_min, scene.charge_distance_max),
        )
        simulation.force(
            "collision",
            CollideForce(
                scene.collision_radius,
                strength=scene.collision_strength,
                iterations=scene.collision_iterations,
            ),
        )

        logger.debug(f"Ligand scene set up with {len(site.interaction_nodes)} nodes and {len(site.links)} links")
        return cls(site, simulation, settings.simulation)

    @property
    def alpha(self) -> float:
        return self.simulation.alpha

    def tick(self) -> LayoutFrame:
        """Advances the simulation by one step and returns the rendered frame."""
        self.simulation.step()
        self.ticks += 1
        self.last_frame = self.frame()
        return self.last_frame

    def frame(self) -> LayoutFrame:
        nodes = [NodeTransform(n.id, n.x, n.y, n.scale) for n in self.site.interaction_nodes]
        links = [
            LinkEndpoints(x.source.id, x.target.id, x.source.x, x.source.y, x.target.x, x.target.y)
            for x in self.site.links
        ]
        return LayoutFrame(self.ticks, self.alpha, nodes, links)

    def is_settled(self) -> bool:
        if not self.simulation.is_cooled() or self.last_frame is None:
            return False
        return len(self.last_frame.nodes) > 0 and len(self.last_frame.links) > 0

    def run(self, max_ticks: int | None = None) -> LayoutFrame | None:
        """Ticks until the layout is settled or `max_ticks` steps were made."""
        max_ticks = self.settings.max_ticks if max_ticks is None else max_ticks
        for _ in range(max_ticks):
            self.tick()
            if self.is_settled():
                logger.debug(f"Layout settled after {self.ticks} ticks")
                break
        else:
            logger.info(f"Layout not settled after {max_ticks} ticks (alpha={self.alpha:.4f})")
        return self.last_frame

    # Drag interaction. Static nodes are part of the depiction and never move.

    def drag_start(self, node: InteractionNode) -> bool:
        if node.static:
            return False
        self.simulation.alpha_target = self.settings.drag_alpha_target
        self.simulation.restart()
        node.fx = node.x
        node.fy = node.y
        self.dragged = node
        return True

    def drag(self, x: float, y: float):
        if self.dragged is None:
            return
        self.dragged.fx = x
        self.dragged.fy = y

    def drag_end(self, x: float, y: float):
        if self.dragged is None:
            return
        self.simulation.alpha_target = 0.0
        self.dragged.fx = x
        self.dragged.fy = y
        self.dragged = None

    def is_dragging(self) -> bool:
        return self.dragged is not None

    def resize(self, width: float, height: float):
        """Moves the centering force of the residue scene to the center of the new area."""
        if self.center is None:
            return
        self.center.x = width / 2
        self.center.y = height / 2
