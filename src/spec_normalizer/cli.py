"""CLI entry point for spec-normalizer."""

import json
import logging
from pathlib import Path

import click

from spec_normalizer.config import NormalizerSettings
from spec_normalizer.parser.chain_metadata import PREDEFINED_CHAINS, get_predefined_chain
from spec_normalizer.parser.detect import DocumentLoadError, load_input_spec
from spec_normalizer.pipeline.normalizer import InputNormalizer

INPUT_TYPES = ["auto", "openapi-3.0", "openapi-3.1", "swagger-2.0", "contract-abi", "chain-metadata"]


def _configure_logging(level: str) -> None:
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


@click.group()
def main():
    """Spec Normalizer: turn OpenAPI specs, contract ABIs and chain metadata into one canonical spec."""
    pass


@main.command()
@click.argument("doc_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--type", "input_type", default="auto", type=click.Choice(INPUT_TYPES), help="Input document type.")
@click.option("-o", "--output", default=None, type=click.Path(path_type=Path), help="Write the result JSON here instead of stdout.")
@click.option("--strict", is_flag=True, default=False, help="Reject inputs claimed by more than one parser.")
@click.option("-v", "--verbose", is_flag=True, default=False, help="Log parser diagnostics.")
def normalize(doc_path: Path, input_type: str, output: Path | None, strict: bool, verbose: bool):
    """Normalize an interface document into a NormalizedSpec."""
    settings = NormalizerSettings()
    if strict:
        settings = settings.model_copy(update={"strict_dispatch": True})
    _configure_logging("DEBUG" if verbose else settings.log_level)

    try:
        input_spec = load_input_spec(doc_path, input_type)
    except DocumentLoadError as e:
        raise click.ClickException(str(e))

    result = InputNormalizer(settings=settings).normalize(input_spec)
    payload = result.model_dump_json(by_alias=True, exclude_none=True, indent=2)

    if output:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(payload, encoding="utf-8")
        click.echo(f"Result saved to {output}", err=True)
    else:
        click.echo(payload)

    for note in result.warnings:
        click.echo(f"  [{note.level}] {note.code}: {note.message}", err=True)

    if not result.success:
        click.echo(f"Normalization failed: {result.error}", err=True)
        raise SystemExit(1)

    spec = result.spec
    click.echo(
        f"Normalized {input_spec.type}: {len(spec.types)} types, {len(spec.operations)} operations, "
        f"{len(spec.networks)} networks",
        err=True,
    )


@main.command()
@click.argument("chain_id", required=False)
def chains(chain_id: str | None):
    """List predefined chains, or show one as JSON."""
    if chain_id is None:
        for key, chain in PREDEFINED_CHAINS.items():
            click.echo(f"{key:<18} {chain.chain_id:<12} {chain.name}")
        return

    chain = get_predefined_chain(chain_id)
    if chain is None:
        raise click.ClickException(f"Unknown chain: {chain_id}")
    click.echo(json.dumps(chain.model_dump(by_alias=True, exclude_none=True), indent=2))
