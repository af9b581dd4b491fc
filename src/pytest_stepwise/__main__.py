"""CLI utilities for pytest-stepwise document trees.

The JSON Schema is generated from the document model consumed by the
engine, so external Gherkin parsers can validate the trees they emit.
"""

from json import dumps
from pathlib import Path

from click import Path as PathParam
from click import argument, echo, group

from pytest_stepwise.document import DocumentLoader, Feature
from pytest_stepwise.errors import DocumentError

InputFilepath = PathParam(
    dir_okay=False,
    readable=True,
    path_type=Path,
)


@group(help='Command-line utilities for pytest-stepwise document trees.')
def cli() -> None:
    """Root CLI group for pytest-stepwise tools."""
    return None


@cli.command(
    name='schema',
    help='Print the feature document JSON Schema to standard output.',
)
def print_schema() -> None:
    """Generate and print the JSON Schema."""
    echo(dumps(Feature.model_json_schema(), ensure_ascii=False, indent=2))


@cli.command(
    name='validate',
    help='Load feature document trees and report the ones that are invalid.',
)
@argument(
    'files',
    type=InputFilepath,
    nargs=-1,
    required=True,
)
def validate(files: tuple[Path, ...]) -> None:
    """Validate feature document trees.

    Args:
        files: Paths of the document trees.
    """
    loader = DocumentLoader()
    failed = False

    for path in files:
        try:
            feature = loader.load_file(path)

        except DocumentError as error:
            failed = True
            echo(f'{path}: {error}', err=True)
            continue

        echo(f'{path}: ok ({len(feature.scenarios)} scenarios)')

    if failed:
        raise SystemExit(1)


if __name__ == '__main__':
    cli()
