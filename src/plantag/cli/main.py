from pathlib import Path
from typing import Optional

import typer

from .._version import __version__
from ..disposition import DispositionEngine
from ..errors import ConfigurationError
from ..hierarchy import HierarchyChainBuilder
from ..tokenization import TokenizationEngine
from .batch import batch_command
from .common import CONFIG_FILE_OPTION, REGISTRY_DIR_OPTION, echo_json, load_registries
from .config import app as config_app


__all__ = ["app", "run"]


app = typer.Typer(help="Plant tag tokenization, disposition and hierarchy utilities", add_completion=False)


@app.callback(invoke_without_command=True)
def version_callback(
    ctx: typer.Context,
    version: bool = typer.Option(False, "--version", help="Show plantag version and exit", is_eager=True),
) -> None:
    """Handle global options before any sub-command executes."""

    if version:
        typer.echo(f"plantag {__version__}")
        raise typer.Exit()
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit()


app.add_typer(config_app, name="config")
app.command("batch", help="Process a JSONL file of items and write one result line per item.")(batch_command)


@app.command("tokenize")
def tokenize_command(
    tag: str = typer.Argument(..., help="Raw tag to tokenize"),
    registry_dir: Optional[Path] = REGISTRY_DIR_OPTION,
    config_file: Optional[Path] = CONFIG_FILE_OPTION,
) -> None:
    """Print the tokenization result of TAG as JSON."""

    snapshot, _ = load_registries(registry_dir, config_file)
    result = TokenizationEngine(snapshot).tokenize(tag)
    echo_json(result.as_dict())


@app.command("dispose")
def dispose_command(
    tag: str = typer.Argument(..., help="Raw tag to classify"),
    item_id: Optional[str] = typer.Option(None, "--item-id", help="Identifier of the item (used for fallback names)"),
    discipline: Optional[str] = typer.Option(None, "--discipline", help="Discipline code of the item"),
    registry_dir: Optional[Path] = REGISTRY_DIR_OPTION,
    config_file: Optional[Path] = CONFIG_FILE_OPTION,
) -> None:
    """Tokenize TAG and print its quality bucket and route."""

    snapshot, _ = load_registries(registry_dir, config_file)
    tokens = TokenizationEngine(snapshot).tokenize(tag)
    disposition = DispositionEngine().dispose(tokens, item_id=item_id, discipline=discipline)
    echo_json(
        {
            "tokenization": {
                "normalized_input": tokens.normalized_input,
                "tokens": {token.key: token.value for token in tokens.ordered_tokens()},
                "score_0_to_100": tokens.score_0_to_100,
                "warnings": tokens.warnings,
                "errors": tokens.errors,
            },
            "disposition": disposition.as_dict(),
        }
    )


@app.command("hierarchy")
def hierarchy_command(
    tag: str = typer.Argument(..., help="Raw tag to place"),
    item_id: Optional[str] = typer.Option(None, "--item-id", help="Identifier assigned to the EQUI node"),
    discipline: Optional[str] = typer.Option(None, "--discipline", help="Discipline whose role list is used"),
    registry_dir: Optional[Path] = REGISTRY_DIR_OPTION,
    config_file: Optional[Path] = CONFIG_FILE_OPTION,
) -> None:
    """Print the hierarchy chain built for TAG."""

    snapshot, tag_format = load_registries(registry_dir, config_file)
    tokens = TokenizationEngine(snapshot).tokenize(tag)
    try:
        built = HierarchyChainBuilder(snapshot, tag_format).build(tokens, item_id=item_id, discipline=discipline)
    except ConfigurationError as exc:
        typer.echo(f"Configuration error: {exc}", err=True)
        raise typer.Exit(code=2) from exc
    echo_json(built.as_dict())


def run() -> None:
    """Entry point compatible with ``python -m plantag.cli.main`` and console scripts."""

    from typer.main import get_command

    cli = get_command(app)
    cli()


if __name__ == "__main__":
    run()
