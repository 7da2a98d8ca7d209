from loguru import logger

from ._typing import PathLike
from .catalogue import ResidueCatalogue
from .depiction import Depiction, DepictionError
from .graph import BindingSite
from .io import read_annotation, read_interactions
from .models import (
    LigandAnnotation,
    LinkLayout,
    NodeLayout,
    SceneLayout,
    TransformModel,
    is_ligand_payload,
    unwrap_payload,
)
from .orchestrator import Visualization
from .resources import offline_fetcher
from .settings import Settings, get_settings


def build_binding_site(data: dict, depiction: Depiction | None = None) -> BindingSite:
    """Builds the binding site described by a ligand or bound-molecule payload."""
    key, body = unwrap_payload(data)
    if is_ligand_payload(body):
        if depiction is None:
            raise DepictionError("a ligand payload requires the depiction of the ligand")
        return BindingSite.from_ligand(key, body, depiction)
    return BindingSite.from_bound_molecule(key, body)


def describe_scene(visualization: Visualization) -> SceneLayout:
    """Returns the current scene of a visualization as a serializable model."""
    site = visualization.present_binding_site
    if site is None:
        return SceneLayout(pdb_id=visualization.pdb_id, bm_id=None, scene=visualization.scene)

    catalogue = visualization.catalogue
    transform = visualization.zoom.transform
    return SceneLayout(
        pdb_id=visualization.pdb_id,
        bm_id=site.bm_id,
        scene=visualization.scene,
        nodes=[
            NodeLayout(
                id=node.id,
                label=node.label(),
                residue_type=node.residue.residue_type(catalogue),
                x=node.x,
                y=node.y,
                scale=node.scale,
                static=node.static,
            )
            for node in site.interaction_nodes
        ],
        links=[
            LinkLayout(
                source=link.source.id,
                target=link.target.id,
                link_class=link.link_class(),
                has_clash=link.has_clash(),
            )
            for link in site.links
        ],
        transform=TransformModel(x=transform.x, y=transform.y, k=transform.k),
        settled=visualization.is_settled(),
        ticks=visualization.layout.ticks if visualization.layout is not None else 0,
    )


def layout_interactions(
    data: dict,
    annotation: LigandAnnotation | dict | None = None,
    width: float = 800,
    height: float = 600,
    settings: Settings | None = None,
    max_ticks: int | None = None,
    seed: int | None = None,
    offline: bool = False,
) -> SceneLayout:
    """Lays out an interaction payload and fits it into a `width` x `height` area."""
    settings = settings or get_settings()
    fetcher = offline_fetcher if offline else None
    catalogue = None
    if offline:
        catalogue = ResidueCatalogue(settings.get_environment(), fetcher=None)

    visualization = Visualization(width, height, settings=settings, fetcher=fetcher, catalogue=catalogue, seed=seed)
    if annotation is not None:
        visualization.add_depiction(LigandAnnotation.model_validate(annotation).model_dump())

    visualization.add_interactions(data)
    frame = visualization.run_layout(max_ticks)
    if frame is not None:
        logger.debug(f"Last frame: tick {frame.tick}, alpha {frame.alpha:.5f}")
    visualization.center_scene()
    return describe_scene(visualization)


def layout_interactions_file(
    interactions_path: PathLike,
    settings: Settings,
    annotation_path: PathLike | None = None,
    **kwargs,
) -> SceneLayout:
    """Reads an interaction payload (and optionally a ligand annotation) and lays it out."""
    data = read_interactions(interactions_path)
    annotation = read_annotation(annotation_path) if annotation_path else None
    return layout_interactions(data, annotation, settings=settings, **kwargs)
