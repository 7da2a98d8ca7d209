import click

from ..logging import setup_logging
from ..main import main as ligenv_main
from .args import AnnotationFile, InteractionsFile
from .args import Arguments as CliArgs


@click.command()
@click.argument("interactions_file", type=InteractionsFile)
@click.option("--annotation", "annotation_file", type=AnnotationFile, help="ligand depiction (annotation JSON)")
@click.option("--width", default=800.0, type=float, help="width of the display area (default: 800)")
@click.option("--height", default=600.0, type=float, help="height of the display area (default: 600)")
@click.option("--max-ticks", default=1000, type=int, help="maximum number of layout steps (default: 1000)")
@click.option("--seed", default=None, type=int, help="seed of the layout random generator")
@click.option("--offline", is_flag=True, help="never download catalogue entries or depictions")
@click.option(
    "-s",
    "--stdout",
    metavar="print_to_stdout",
    is_flag=True,
    help="Output the results to stdout in JSON format",
)
@click.option("-v", "--verbose", is_flag=True, help="show debug messages")
def cli(**kwargs):
    """Lays out the interactions of a ligand or a bound molecule."""
    args = CliArgs(
        interactions_file=kwargs["interactions_file"],
        annotation_file=kwargs["annotation_file"],
        width=kwargs["width"],
        height=kwargs["height"],
        max_ticks=kwargs["max_ticks"],
        seed=kwargs["seed"],
        offline=kwargs["offline"],
        print_to_stdout=kwargs["stdout"],
    )

    logfile = args.get_log_filename()
    setup_logging(logfile, kwargs["verbose"] or None)
    ligenv_main(args)


__all__ = ["cli"]
