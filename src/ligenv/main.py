import hashlib
import json
import time
from typing import TYPE_CHECKING

from loguru import logger

from ._typing import PathLike
from .catalogue import get_catalogue_version
from .core import layout_interactions_file
from .models import LigenvRunOutput
from .settings import get_settings
from .version import get_version

if TYPE_CHECKING:
    from .cli.args import Arguments as CliArgs


def _get_checksum(path: PathLike) -> str:
    """Computes a checksum for the interactions file."""
    with open(path, "rb") as f:
        return hashlib.md5(f.read()).hexdigest()


def main(args: "CliArgs"):
    """Lays out an interaction payload and writes the resulting scene."""
    start_time = time.perf_counter_ns()
    interactions_path = args.interactions_file.path
    annotation_path = args.annotation_file.path if args.annotation_file else None

    settings = get_settings()

    logger.info(f"Processing interactions file: {interactions_path}")

    layout = layout_interactions_file(
        interactions_path,
        settings,
        annotation_path=annotation_path,
        width=args.width,
        height=args.height,
        max_ticks=args.max_ticks,
        seed=args.seed,
        offline=args.offline,
    )
    if not layout.settled:
        logger.warning(f"Layout did not settle within {layout.ticks} ticks")

    output = LigenvRunOutput(
        layout=layout,
        input_file_checksum=_get_checksum(interactions_path),
        catalogue_version=get_catalogue_version(),
        ligenv_version=get_version(),
    )

    # Updates run time as late as possible.
    output_json = output.model_dump()
    output_json["runtime_in_seconds"] = (time.perf_counter_ns() - start_time) / 1e9

    # Output results: to stdout or writes to a file.
    if args.print_to_stdout:
        print(json.dumps(output_json, indent=2))
    else:
        layout_filename = args.get_layout_filename()
        with open(layout_filename, "w") as f:
            f.write(json.dumps(output_json, indent=2))
        logger.info(f"Results written to {layout_filename}")
