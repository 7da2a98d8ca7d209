"""Sequencing of a visualization: fetch, build the binding site, lay it out and fit it.

A `Visualization` owns all the state of one scene. Each query (`init_*`) carries an epoch; a
result arriving after a newer query has started is dropped instead of replacing the newer
state.
"""

from __future__ import annotations

import json
from typing import Iterable

import numpy as np
from loguru import logger

from ._typing import Fetcher
from .catalogue import ResidueCatalogue
from .depiction import Depiction, DepictionError, LigandHighlight
from .events import (
    EventDispatcher,
    EventName,
    MolstarEventPayload,
    label_event,
    link_event,
    node_event,
    null_event,
)
from .graph import BindingSite, InteractionNode, Link
from .layout import LayoutEngine, LayoutFrame
from .models import is_ligand_payload, unwrap_payload
from .resources import (
    JsonFetcher,
    ResourceNotFoundError,
    bound_molecule_url,
    carbohydrate_polymer_url,
    ligand_annotation_url,
    ligand_interactions_url,
)
from .settings import Settings, get_settings
from .viewport import BoundingBox, Transform, ZoomState, fit_transform
from .weights import ALL_CONTACT_TYPES, AggregatedInteractions, AtomWeightScale

NO_INTERACTIONS_MESSAGE = "No interactions data are available."


class Visualization:
    """Interaction diagram of a ligand or a bound molecule in a `width` x `height` area."""

    def __init__(
        self,
        width: float = 800,
        height: float = 600,
        settings: Settings | None = None,
        fetcher: Fetcher | None = None,
        catalogue: ResidueCatalogue | None = None,
        dispatcher: EventDispatcher | None = None,
        seed: int | None = None,
    ):
        self.width = width
        self.height = height
        self.settings = settings or get_settings()
        self.environment = self.settings.get_environment()
        self.fetcher = fetcher or JsonFetcher(self.settings.http_timeout)
        self.catalogue = catalogue or ResidueCatalogue(self.environment, self.fetcher)
        self.dispatcher = dispatcher or EventDispatcher()
        self.rng = np.random.default_rng(seed)
        self.zoom = ZoomState(self.settings.viewport.scale_extent)

        self.pdb_id: str | None = None
        self.interactions_data: dict | None = None
        self.depiction: Depiction | None = None
        self.binding_sites: list[BindingSite] = []
        self.present_binding_site: BindingSite | None = None
        self.layout: LayoutEngine | None = None
        self.weights: AtomWeightScale | None = None
        self.highlight: LigandHighlight | None = None
        self.show_atom_names = False
        self.message: str | None = None

        self.highlighted: list[InteractionNode] = []
        self.selected_residue_hash: str | None = None
        self._epoch = 0

        self.dispatcher.subscribe(EventName.MOLSTAR_CLICK, self._on_molstar_event)
        self.dispatcher.subscribe(EventName.MOLSTAR_MOUSEOVER, self._on_molstar_event)
        self.dispatcher.subscribe(EventName.MOLSTAR_MOUSEOUT, lambda event: self.molstar_clear())

    def __repr__(self) -> str:
        return f"Visualization({self.pdb_id!r}, {self.present_binding_site!r}, depiction={self.depiction!r})"

    # =====================================================================================================
    # Queries

    def _begin_query(self, pdb_id: str | None) -> int:
        self._epoch += 1
        self.pdb_id = pdb_id
        self.message = None
        return self._epoch

    def _is_stale(self, epoch: int, what: str) -> bool:
        if epoch != self._epoch:
            logger.info(f"Discarding stale result for {what} (query {epoch}, current {self._epoch})")
            return True
        return False

    def _clear_scene(self):
        self.binding_sites = []
        self.present_binding_site = None
        self.interactions_data = None
        self.layout = None
        self.weights = None
        self.highlight = None
        self.highlighted = []

    def _fetch(self, url: str, message: str):
        try:
            return self.fetcher(url)
        except ResourceNotFoundError as e:
            self.message = message
            logger.error(f"{message} ({e})")
            raise

    def _finish(self, epoch: int, what: str) -> Transform | None:
        if self._is_stale(epoch, what):
            return None
        self.run_layout()
        return self.center_scene()

    def init_bound_molecule_interactions(self, pdb_id: str, bm_id: str) -> Transform | None:
        """Downloads and displays the interactions of a bound molecule."""
        epoch = self._begin_query(pdb_id)
        self._clear_scene()
        url = bound_molecule_url(pdb_id, bm_id, self.environment)

        data = self._fetch(url, NO_INTERACTIONS_MESSAGE)
        if self._is_stale(epoch, url):
            return None
        if not self.add_bound_molecule_interactions(data, bm_id, epoch):
            return None
        return self._finish(epoch, url)

    def init_carbohydrate_polymer_interactions(self, pdb_id: str, bm_id: str, entity_id: str) -> Transform | None:
        """Downloads and displays the interactions of a carbohydrate polymer."""
        epoch = self._begin_query(pdb_id)
        self._clear_scene()
        url = carbohydrate_polymer_url(pdb_id, bm_id, entity_id, self.environment)

        data = self._fetch(url, NO_INTERACTIONS_MESSAGE)
        if self._is_stale(epoch, url):
            return None
        if not self.add_bound_molecule_interactions(data, bm_id, epoch):
            return None
        return self._finish(epoch, url)

    def init_ligand_interactions(self, pdb_id: str, res_id: int, chain_id: str) -> Transform | None:
        """Downloads and displays the interactions of a ligand (and its depiction)."""
        epoch = self._begin_query(pdb_id)
        self._clear_scene()
        if not self._load_ligand_interactions(pdb_id, res_id, chain_id, epoch):
            return None
        return self._finish(epoch, f"ligand {chain_id}{res_id}")

    def _load_ligand_interactions(self, pdb_id: str, res_id: int, chain_id: str, epoch: int) -> bool:
        url = ligand_interactions_url(pdb_id, chain_id, res_id, self.environment)
        data = self._fetch(url, NO_INTERACTIONS_MESSAGE)
        if self._is_stale(epoch, url):
            return False
        return self.add_ligand_interactions(data, epoch)

    def init_ligand_display(self, ligand_id: str) -> Transform | None:
        """Downloads and displays the depiction of a chemical component, without interactions."""
        epoch = self._begin_query(self.pdb_id)
        self._clear_scene()
        if not self._load_depiction(ligand_id, epoch):
            return None
        return self.center_scene()

    def _load_depiction(self, ligand_id: str, epoch: int) -> bool:
        url = ligand_annotation_url(ligand_id, self.environment)
        data = self._fetch(url, f"Component {ligand_id} was not found.")
        if self._is_stale(epoch, url):
            return False
        self.add_depiction(data)
        return True

    # =====================================================================================================
    # Scene construction
    #
    # Methods taking an `epoch` return False when a newer query started while they were waiting
    # on a download; nothing is modified after that point.

    def add_depiction(self, data: dict) -> Depiction:
        self.depiction = Depiction.from_json(data)
        self.weights = None
        self.highlight = None
        logger.debug(f"Loaded {self.depiction!r}")
        return self.depiction

    def add_interactions(self, data: dict, bm_id: str | None = None) -> bool:
        """Adds a ligand or bound-molecule payload, whichever it is."""
        _, body = unwrap_payload(data)
        if is_ligand_payload(body):
            return self.add_ligand_interactions(data)
        return self.add_bound_molecule_interactions(data, bm_id or body.get("bm_id"))

    def _set_binding_site(self, data: dict, key: str, site: BindingSite):
        self.interactions_data = data
        if self.pdb_id is None:
            self.pdb_id = key
        self.binding_sites.append(site)
        self.present_binding_site = site

    def add_bound_molecule_interactions(self, data: dict, bm_id: str | None, epoch: int | None = None) -> bool:
        """Builds the binding site of a bound molecule and sets up its scene.

        A bound molecule made of a single ligand is displayed as a ligand instead.
        """
        epoch = self._epoch if epoch is None else epoch
        key, body = unwrap_payload(data)
        site = BindingSite.from_bound_molecule(key, body)
        if bm_id is not None:
            site.bm_id = bm_id
        self._set_binding_site(data, key, site)

        ligands = site.ligands()
        if len(ligands) == 1:
            ligand = ligands[0]
            return self._load_ligand_interactions(self.pdb_id, ligand.author_residue_number, ligand.chain_id, epoch)
        return self.setup_residue_scene(epoch)

    def add_ligand_interactions(self, data: dict, epoch: int | None = None) -> bool:
        """Builds the binding site of a ligand, loading its depiction first when needed."""
        epoch = self._epoch if epoch is None else epoch
        key, body = unwrap_payload(data)

        ligand_id = body["ligand"]["chem_comp_id"]
        if self.depiction is None or self.depiction.ccd_id != ligand_id:
            if not self._load_depiction(ligand_id, epoch):
                return False

        site = BindingSite.from_ligand(key, body, self.depiction)
        self._set_binding_site(data, key, site)
        return self.setup_ligand_scene(epoch)

    def _resolve_annotations(self, site: BindingSite, epoch: int) -> bool:
        for node in site.interaction_nodes:
            self.catalogue.request_annotation(node.residue)
        self.catalogue.resolve_pending()
        return not self._is_stale(epoch, f"residue annotations of {site.bm_id}")

    def setup_residue_scene(self, epoch: int | None = None) -> bool:
        epoch = self._epoch if epoch is None else epoch
        site = self.present_binding_site
        if not self._resolve_annotations(site, epoch):
            return False
        self.depiction = None
        self.weights = None
        self.highlight = None
        self.layout = LayoutEngine.for_residue_scene(site, self.width, self.height, self.settings, seed=self.rng)
        self.zoom.reset()
        return True

    def setup_ligand_scene(self, epoch: int | None = None) -> bool:
        epoch = self._epoch if epoch is None else epoch
        site = self.present_binding_site
        if not self._resolve_annotations(site, epoch):
            return False
        self.layout = LayoutEngine.for_ligand_scene(site, self.depiction, self.settings, seed=self.rng)
        self.zoom.reset()
        return True

    @property
    def scene(self) -> str | None:
        if self.layout is None:
            return None
        return "residue" if self.depiction is None else "ligand"

    def run_layout(self, max_ticks: int | None = None) -> LayoutFrame | None:
        if self.layout is None:
            return None
        return self.layout.run(max_ticks)

    def is_settled(self) -> bool:
        return self.layout is not None and self.layout.is_settled()

    def center_scene(self) -> Transform | None:
        """Fits the scene in the display area and feeds the transform to the zoom state."""
        if self.layout is not None and self.present_binding_site.interaction_nodes:
            box = BoundingBox.from_points((n.x, n.y) for n in self.present_binding_site.interaction_nodes)
        elif self.depiction is not None:
            box = self.depiction.bounding_box(self.settings.viewport.label_padding)
        else:
            return None

        transform = fit_transform(box, self.width, self.height, self.settings.viewport.margin)
        self.zoom.set(transform)
        logger.debug(f"Scene centered: {transform.svg()}")
        return transform

    def reinitialize(self) -> Transform | None:
        """Re-runs the layout from scratch.

        When the ligand view was opened from a bound molecule, goes back to the bound molecule.
        """
        if self.present_binding_site is None:
            return None

        residue_scene = self.depiction is None
        if len(self.binding_sites) > 1 and not residue_scene:
            self.binding_sites = self.binding_sites[:1]
            self.present_binding_site = self.binding_sites[0]
            residue_scene = True

        self.present_binding_site.reset_positions()
        if residue_scene:
            ready = self.setup_residue_scene()
        else:
            ready = self.setup_ligand_scene()
        if not ready:
            return None

        self.run_layout()
        transform = self.center_scene()
        self.dispatcher.dispatch(null_event(EventName.INTERACTION_HIDE_LABEL))
        return transform

    def resize(self, width: float, height: float):
        self.width = width
        self.height = height
        if self.layout is not None:
            self.layout.resize(width, height)

    # =====================================================================================================
    # UI interaction

    def _is_dragging(self) -> bool:
        return self.layout is not None and self.layout.is_dragging()

    def drag_start(self, node: InteractionNode) -> bool:
        return self.layout is not None and self.layout.drag_start(node)

    def drag(self, x: float, y: float):
        if self.layout is not None:
            self.layout.drag(x, y)

    def drag_end(self, x: float, y: float):
        if self.layout is not None:
            self.layout.drag_end(x, y)

    def node_mouseover(self, node: InteractionNode):
        if self._is_dragging():
            return
        self.highlighted = self.present_binding_site.neighbours(node)
        self.dispatcher.dispatch(node_event(EventName.INTERACTION_MOUSEOVER, self.pdb_id, node))

    def node_mouseout(self, node: InteractionNode):
        if self._is_dragging():
            return
        self.highlighted = []
        self.dispatcher.dispatch(null_event(EventName.INTERACTION_MOUSEOUT))

    def node_click(self, node: InteractionNode) -> Transform | None:
        """Clicking a ligand of a bound molecule opens the interactions of that ligand."""
        self.dispatcher.dispatch(node_event(EventName.INTERACTION_CLICK, self.pdb_id, node))
        if not node.residue.is_ligand or self.depiction is not None:
            return None

        self.node_mouseout(node)
        self.dispatcher.dispatch(label_event(node))

        epoch = self._begin_query(self.pdb_id)
        residue = node.residue
        if not self._load_ligand_interactions(self.pdb_id, residue.author_residue_number, residue.chain_id, epoch):
            return None
        return self._finish(epoch, f"ligand {residue.id}")

    def link_mouseover(self, link: Link):
        if self._is_dragging():
            return
        self.highlighted = [link.source, link.target]
        tooltip = link.tooltip(self.catalogue)
        self.dispatcher.dispatch(link_event(EventName.INTERACTION_MOUSEOVER, self.pdb_id, link, tooltip))

    def link_mouseout(self, link: Link):
        if self._is_dragging():
            return
        self.highlighted = []
        self.dispatcher.dispatch(null_event(EventName.INTERACTION_MOUSEOUT))

    def molstar_highlight(self, residue_id: str) -> InteractionNode | None:
        """Highlights the node of a residue selected in the 3D viewer."""
        self.highlighted = []
        if self.present_binding_site is None:
            return None
        node = self.present_binding_site.node(residue_id)
        if node is not None:
            self.selected_residue_hash = residue_id
            self.highlighted = [node]
        return node

    def molstar_clear(self):
        self.selected_residue_hash = None
        self.highlighted = []

    def _on_molstar_event(self, event):
        payload = MolstarEventPayload.model_validate(event.detail.model_dump())
        self.molstar_highlight(payload.residue_id())

    # =====================================================================================================
    # Depiction display

    def toggle_depiction(self, with_names: bool) -> bool:
        """Switches atom names on or off in the depiction. Returns False when there is no depiction."""
        if self.depiction is None:
            return False
        self.show_atom_names = with_names
        return True

    def ligand_highlight(self, atom_names: Iterable[str], color: str | None = None) -> LigandHighlight:
        """Highlights a set of depiction atoms, replacing the previous highlight."""
        if self.depiction is None:
            raise DepictionError("highlighting atoms requires a ligand depiction")
        self.highlight = self.depiction.highlight(atom_names, color)
        return self.highlight

    # =====================================================================================================
    # Atom weights and exports

    def add_atom_weights(
        self, data: dict, contact_types: Iterable[str] = (ALL_CONTACT_TYPES,)
    ) -> AtomWeightScale:
        """Colours the depiction atoms by their share of the aggregated interactions."""
        if self.depiction is None:
            raise DepictionError("atom weights require a ligand depiction")

        propensity = AggregatedInteractions(data, contact_types).atom_propensity()
        scale = AtomWeightScale(
            [atom.name for atom in self.depiction.atoms],
            propensity,
            **self.settings.weights.model_dump(),
        )
        self.depiction.apply_weights(scale)
        self.weights = scale
        return scale

    def interactions_json(self) -> tuple[str, str]:
        """Returns the file name and the content of the interactions data download."""
        if self.interactions_data is None:
            return "no_name.json", json.dumps(None)
        name = f"{self.pdb_id}_{self.present_binding_site.bm_id}_interactions.json"
        return name, json.dumps(self.interactions_data, indent=4)

    def svg_name(self) -> str:
        if self.present_binding_site is not None:
            return f"{self.present_binding_site.bm_id}.svg"
        if self.depiction is not None:
            return f"{self.depiction.ccd_id}.svg"
        return "blank.svg"
