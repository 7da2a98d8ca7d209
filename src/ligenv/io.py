"""ligenv read/write functions"""

import json

from loguru import logger

from ._typing import PathLike
from .models import LigandAnnotation, LigenvRunOutputRead, unwrap_payload


def read_json(path: PathLike):
    logger.debug(f"Reading {path}")
    with open(path) as fileobj:
        return json.load(fileobj)


def read_interactions(path: PathLike) -> dict:
    """Reads a ligand or bound-molecule interaction payload (`{key: [body]}`)."""
    data = read_json(path)
    unwrap_payload(data)
    return data


def read_annotation(path: PathLike) -> LigandAnnotation:
    """Reads the 2D depiction annotation of a chemical component."""
    return LigandAnnotation.model_validate(read_json(path))


def read_ligenv_output(path: PathLike) -> LigenvRunOutputRead:
    return LigenvRunOutputRead.model_validate(read_json(path))
