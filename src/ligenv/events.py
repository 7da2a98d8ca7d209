"""Events exchanged with the surrounding page (tooltips, labels, 3D viewer)."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from enum import StrEnum
from typing import Callable

from loguru import logger
from pydantic import BaseModel

from .graph import InteractionNode, Link, Residue


class EventName(StrEnum):
    INTERACTION_CLICK = "PDB.interactions.click"
    INTERACTION_MOUSEOVER = "PDB.interactions.mouseover"
    INTERACTION_MOUSEOUT = "PDB.interactions.mouseout"
    INTERACTION_SHOW_LABEL = "PDB.interactions.showLabel"
    INTERACTION_HIDE_LABEL = "PDB.interactions.hideLabel"
    MOLSTAR_CLICK = "PDB.molstar.click"
    MOLSTAR_MOUSEOVER = "PDB.molstar.mouseover"
    MOLSTAR_MOUSEOUT = "PDB.molstar.mouseout"


class SelectedResidue(BaseModel):
    pdb_res_id: str | None
    auth_asym_id: str
    auth_seq_id: int
    auth_ins_code_id: str | None

    @classmethod
    def from_residue(cls, pdb_id: str | None, residue: Residue, **kwargs) -> SelectedResidue:
        return cls(
            pdb_res_id=pdb_id,
            auth_asym_id=residue.chain_id,
            auth_seq_id=residue.author_residue_number,
            auth_ins_code_id=residue.author_insertion_code,
            **kwargs,
        )


class InteractingResidue(SelectedResidue):
    atoms: list[str]


class NodeEventPayload(BaseModel):
    selected_node: SelectedResidue
    tooltip: str


class LinkEventPayload(BaseModel):
    interacting_nodes: list[InteractingResidue]
    tooltip: str


class LabelEventPayload(BaseModel):
    label: str


class EmptyPayload(BaseModel):
    pass


class MolstarEventPayload(BaseModel):
    """Residue picked in the 3D viewer."""

    auth_asym_id: str
    auth_seq_id: int
    ins_code: str | None = None

    def residue_id(self) -> str:
        insertion_code = (self.ins_code or "").strip()
        return f"{self.auth_asym_id}{self.auth_seq_id}{insertion_code}"


@dataclass
class Event:
    name: EventName
    detail: BaseModel

    def to_json(self) -> dict:
        return {"name": str(self.name), "detail": self.detail.model_dump()}


def node_event(name: EventName, pdb_id: str | None, node: InteractionNode) -> Event:
    payload = NodeEventPayload(
        selected_node=SelectedResidue.from_residue(pdb_id, node.residue),
        tooltip=node.tooltip(),
    )
    return Event(name, payload)


def link_event(name: EventName, pdb_id: str | None, link: Link, tooltip: str) -> Event:
    payload = LinkEventPayload(
        interacting_nodes=[
            InteractingResidue.from_residue(pdb_id, link.source.residue, atoms=link.source_atoms()),
            InteractingResidue.from_residue(pdb_id, link.target.residue, atoms=link.target_atoms()),
        ],
        tooltip=tooltip,
    )
    return Event(name, payload)


def label_event(node: InteractionNode) -> Event:
    return Event(EventName.INTERACTION_SHOW_LABEL, LabelEventPayload(label=node.tooltip()))


def null_event(name: EventName) -> Event:
    return Event(name, EmptyPayload())


EventCallback = Callable[[Event], None]


class EventDispatcher:
    """Synchronous publish/subscribe hub keyed by event name."""

    def __init__(self):
        self._subscribers: dict[EventName, list[EventCallback]] = defaultdict(list)

    def subscribe(self, name: EventName | str, callback: EventCallback):
        self._subscribers[EventName(name)].append(callback)

    def unsubscribe(self, name: EventName | str, callback: EventCallback):
        callbacks = self._subscribers.get(EventName(name), [])
        if callback in callbacks:
            callbacks.remove(callback)

    def dispatch(self, event: Event):
        logger.debug(f"Dispatching {event.name}")
        for callback in list(self._subscribers.get(event.name, [])):
            callback(event)
