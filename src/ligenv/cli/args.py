import sys
from dataclasses import dataclass
from pathlib import Path
from typing import ClassVar

from loguru import logger

DEFAULT_OUTPUT_STEM_SUFFIX = "_ligenv"


def _fatal_error(msg: str, status: int = 1):
    """Prints an error message and exits with status `status`."""
    logger.critical(msg)
    sys.exit(status)


@dataclass
class InputFile:
    path: Path
    valid_extensions: ClassVar[set[str]] = {".json"}

    def __post_init__(self):
        # Ensures paths are pathlib.Path instances.
        self.path = Path(self.path)

        # Ensures paths are valid files.
        path = self.path
        if not path.exists():
            _fatal_error(f"'{path}' does not exist")
        if not path.is_file():
            _fatal_error(f"'{path}' is not a file")
        if path.suffix not in self.valid_extensions:
            _fatal_error(f"'{path}' has an invalid extension (valid extensions are {self.valid_extensions})")

    @property
    def stem(self) -> str:
        return self.path.stem


@dataclass
class InteractionsFile(InputFile):
    pass


@dataclass
class AnnotationFile(InputFile):
    pass


@dataclass
class Arguments:
    """Holds command-line arguments.

    Attrs:
        interactions_file (InteractionsFile): ligand or bound-molecule interaction payload.
        annotation_file (AnnotationFile | None): ligand depiction; downloaded when missing.
        width, height (float): display area the scene is fitted into.
        max_ticks (int | None): maximum number of layout steps.
        seed (int | None): seed of the layout random generator.
        offline (bool): never download anything.
        print_to_stdout (bool): Whether to output results to stdout.
    """

    interactions_file: InteractionsFile
    annotation_file: AnnotationFile | None = None
    width: float = 800
    height: float = 600
    max_ticks: int | None = None
    seed: int | None = None
    offline: bool = False
    print_to_stdout: bool = False

    def __post_init__(self):
        if self.width <= 0 or self.height <= 0:
            _fatal_error(f"invalid display area: {self.width}x{self.height}")

    def get_log_filename(self) -> Path:
        return generate_output_log_path(self.interactions_file.stem)

    def get_layout_filename(self) -> Path:
        return generate_output_layout_path(self.interactions_file.stem)


def generate_output_layout_path(stem: str) -> Path:
    return Path(stem + DEFAULT_OUTPUT_STEM_SUFFIX + ".json")


def generate_output_log_path(stem: str) -> Path:
    return Path(stem + DEFAULT_OUTPUT_STEM_SUFFIX + ".log")
