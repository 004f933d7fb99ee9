"""Impersonaid CLI entry point."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Any

import click

from impersonaid import __version__
from impersonaid.config import AppConfig, load_config
from impersonaid.content.fetcher import HttpDocumentSource, load_local_document
from impersonaid.content.reducer import ContentReducer
from impersonaid.delivery.router import DeliveryRouter
from impersonaid.delivery.simulator import PersonaSimulator
from impersonaid.errors import ImpersonaidError
from impersonaid.output.writer import OutputWriter
from impersonaid.personas.persona import Persona, PersonaStore
from impersonaid.providers.base import GenerationAdapter
from impersonaid.providers.chat_models import OllamaAdapter
from impersonaid.providers.registry import ProviderRegistry
from impersonaid.types import Document


@click.group()
@click.version_option(__version__, prog_name="impersonaid")
@click.option(
    "--config",
    "config_path",
    envvar="IMPERSONAID_CONFIG",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Path to config.toml (default: ./config.toml)",
)
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, config_path: Path | None, verbose: bool) -> None:
    """Simulate user personas interacting with documentation using LLMs."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )
    ctx.ensure_object(dict)
    try:
        config: AppConfig = ctx.obj.get("config") or load_config(config_path)
    except ImpersonaidError as exc:
        raise click.ClickException(str(exc)) from exc

    ctx.obj["config"] = config
    store = ctx.obj.setdefault("personas", PersonaStore(config.personas.personas_dir))
    store.load_all()
    if "providers" not in ctx.obj:
        ctx.obj["providers"] = ProviderRegistry(config)
    if "document_source" not in ctx.obj:
        ctx.obj["document_source"] = HttpDocumentSource()
    providers: ProviderRegistry = ctx.obj["providers"]
    source = ctx.obj["document_source"]
    ctx.call_on_close(source.close)
    ctx.call_on_close(providers.close)
    ctx.obj.setdefault("writer", OutputWriter(config.output.output_dir))


@cli.command("list-personas")
@click.pass_obj
def list_personas(obj: dict[str, Any]) -> None:
    """List available user personas."""
    names = obj["personas"].names()
    if not names:
        click.echo("No personas found. Create one with the create-sample command.")
        return
    click.echo("Available personas:")
    for name in names:
        click.echo(f"- {name}")


@cli.command("create-sample")
@click.option("-n", "--name", default="beginner_developer", show_default=True)
@click.pass_obj
def create_sample(obj: dict[str, Any], name: str) -> None:
    """Create a sample persona."""
    try:
        path = obj["personas"].create_sample(name)
    except (OSError, ValueError) as exc:
        raise click.ClickException(f"Failed to create sample persona: {exc}") from exc
    click.echo(f"Created sample persona at {path}")
    click.echo("You can modify this file to customize the persona.")


@cli.command("list-models")
@click.pass_obj
def list_models(obj: dict[str, Any]) -> None:
    """List available LLM providers and their default models."""
    providers: ProviderRegistry = obj["providers"]
    click.echo("Supported LLM providers:")
    for name in providers.supported():
        adapter = providers.get(name)
        click.echo(f"\n{name.upper()}:")
        click.echo(f"- Default model: {adapter.name}")
        if isinstance(adapter, OllamaAdapter):
            models = adapter.list_models()
            if models:
                click.echo("Available models:")
                for model in models:
                    click.echo(f"- {model.get('name')}")
            else:
                click.echo("No Ollama models found or server not available.")


@cli.command()
@click.option("-p", "--persona", "persona_name", required=True, help="Name of the persona to use")
@click.option("-d", "--doc", "doc_url", help="URL of the documentation to test")
@click.option(
    "-f",
    "--file",
    "doc_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Local markdown or text file to test instead of a URL",
)
@click.option("-r", "--request", "request_text", help="Request or question for the persona")
@click.option("-m", "--model", "provider", default="openai", show_default=True, help="LLM provider to use")
@click.option("-i", "--interactive", is_flag=True, help="Run in interactive mode")
@click.option(
    "-o",
    "--output",
    "output_dir",
    type=click.Path(file_okay=False, path_type=Path),
    help="Directory to save the output",
)
@click.pass_obj
def simulate(
    obj: dict[str, Any],
    persona_name: str,
    doc_url: str | None,
    doc_file: Path | None,
    request_text: str | None,
    provider: str,
    interactive: bool,
    output_dir: Path | None,
) -> None:
    """Run a simulation with a user persona on documentation."""
    if bool(doc_url) == bool(doc_file):
        raise click.UsageError("Provide exactly one of --doc or --file.")
    if not interactive and not request_text:
        raise click.UsageError("--request is required unless --interactive is set.")

    config: AppConfig = obj["config"]
    try:
        persona: Persona = obj["personas"].get(persona_name)
        adapter: GenerationAdapter = obj["providers"].get(provider)
        simulator = PersonaSimulator(
            router=DeliveryRouter(ContentReducer(config.reduction), obj["document_source"])
        )
        click.echo(f"Using persona: {persona.name}")
        if doc_file is not None:
            document = load_local_document(doc_file)
        else:
            document = simulator.load_document(doc_url or "", adapter.capabilities)

        if interactive:
            _interactive_session(simulator, persona, document, adapter)
            return

        click.echo("Simulating response...")
        result = simulator.simulate(persona, document, request_text or "", adapter)
    except ImpersonaidError as exc:
        raise click.ClickException(f"Error running simulation: {exc}") from exc

    click.echo("\n--- Simulation Response ---\n")
    click.echo(result.response)
    click.echo("\n--------------------------\n")

    writer: OutputWriter = OutputWriter(output_dir) if output_dir else obj["writer"]
    saved = writer.save(persona, result.plan.document, request_text or "", result.response)
    click.echo(f"Saved simulation to {saved}")


def _interactive_session(
    simulator: PersonaSimulator,
    persona: Persona,
    document: Document,
    adapter: GenerationAdapter,
) -> None:
    click.echo(f"\n===== Interactive Session with {persona.name} =====")
    click.echo(f"Document: {document.title}")
    click.echo(f"URL: {document.location}")
    click.echo('\nEnter your questions or requests. Type "exit" to end the session.\n')

    while True:
        try:
            request = click.prompt(">", prompt_suffix=" ", default="", show_default=False)
        except click.Abort:
            break
        if request.strip().lower() == "exit":
            break
        if not request.strip():
            continue
        click.echo("\nSimulating response...\n")
        try:
            result = simulator.simulate(persona, document, request, adapter)
        except ImpersonaidError as exc:
            click.echo(f"Error in simulation: {exc}", err=True)
            continue
        click.echo(f"\n{result.response}\n")

    click.echo("\nEnding interactive session.")


@cli.command()
@click.option("--host", default="127.0.0.1", show_default=True)
@click.option("-p", "--port", default=3000, show_default=True, type=int)
@click.pass_obj
def web(obj: dict[str, Any], host: str, port: int) -> None:
    """Start the web API."""
    import uvicorn

    from impersonaid.api.main import create_app

    app = create_app(
        obj["config"],
        persona_store=obj["personas"],
        providers=obj["providers"],
        document_source=obj["document_source"],
    )
    click.echo(f"Impersonaid web interface running at http://{host}:{port}")
    click.echo("Press Ctrl+C to stop")
    uvicorn.run(app, host=host, port=port)


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    sys.exit(main())
