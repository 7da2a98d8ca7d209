from .core import build_binding_site, describe_scene, layout_interactions, layout_interactions_file
from .depiction import Depiction
from .graph import BindingSite
from .io import read_annotation, read_interactions, read_ligenv_output
from .layout import LayoutEngine
from .models import LigenvRunOutput, LigenvRunOutputRead, SceneLayout
from .orchestrator import Visualization

__all__ = [
    "build_binding_site",
    "describe_scene",
    "layout_interactions",
    "layout_interactions_file",
    "read_annotation",
    "read_interactions",
    "read_ligenv_output",
    "BindingSite",
    "Depiction",
    "LayoutEngine",
    "LigenvRunOutput",
    "LigenvRunOutputRead",
    "SceneLayout",
    "Visualization",
]
