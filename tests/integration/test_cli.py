from pathlib import Path
from typing import Any

from click.testing import CliRunner

from impersonaid.cli import cli
from impersonaid.config import AppConfig, OutputConfig, PersonasConfig
from impersonaid.content.fetcher import DocumentSource
from impersonaid.output.writer import OutputWriter
from impersonaid.personas.persona import PersonaStore
from impersonaid.providers.base import GenerationAdapter, GenerationOptions
from impersonaid.providers.registry import ProviderRegistry
from impersonaid.types import CapabilityDescriptor, Document, DocumentOrigin


class _FakeSource(DocumentSource):
    def fetch(self, url: str) -> Document:
        return Document(origin=DocumentOrigin.REMOTE, location=url, title="Guide", content="Guide body.")


class _ScriptedAdapter(GenerationAdapter):
    provider = "scripted"
    display_name = "Scripted"

    def initialize(self) -> bool:
        return True

    def is_ready(self) -> bool:
        return True

    def _complete(self, system_text: str, user_text: str, options: GenerationOptions) -> str:
        return "I would need a screenshot of step 2."


def _obj(tmp_path: Path) -> dict[str, Any]:
    config = AppConfig(
        output=OutputConfig(output_dir=tmp_path / "output"),
        personas=PersonasConfig(personas_dir=tmp_path / "personas"),
    )
    return {
        "config": config,
        "personas": PersonaStore(config.personas.personas_dir),
        "providers": ProviderRegistry(
            config,
            factories={"scripted": lambda cfg: _ScriptedAdapter(cfg, capabilities=CapabilityDescriptor())},
        ),
        "document_source": _FakeSource(),
        "writer": OutputWriter(config.output.output_dir),
    }


def test_list_and_create_personas(tmp_path: Path) -> None:
    runner = CliRunner()
    obj = _obj(tmp_path)

    empty = runner.invoke(cli, ["list-personas"], obj=obj)
    assert empty.exit_code == 0
    assert "No personas found" in empty.output

    created = runner.invoke(cli, ["create-sample", "--name", "newbie"], obj=obj)
    assert created.exit_code == 0
    assert "Created sample persona at" in created.output

    listed = runner.invoke(cli, ["list-personas"], obj=obj)
    assert "Available personas:\n- newbie\n" in listed.output


def test_simulate_with_url_saves_transcript(tmp_path: Path) -> None:
    runner = CliRunner()
    obj = _obj(tmp_path)
    obj["personas"].create_sample()

    result = runner.invoke(
        cli,
        [
            "simulate",
            "-p", "beginner_developer",
            "-d", "https://docs.example.com/guide",
            "-r", "Where do I start?",
            "-m", "scripted",
        ],
        obj=obj,
    )

    assert result.exit_code == 0, result.output
    assert "Using persona: beginner_developer" in result.output
    assert "I would need a screenshot of step 2." in result.output
    transcripts = list((tmp_path / "output").glob("beginner_developer_*.md"))
    assert len(transcripts) == 1
    assert "- **URL**: https://docs.example.com/guide" in transcripts[0].read_text(encoding="utf-8")


def test_simulate_with_local_file(tmp_path: Path) -> None:
    runner = CliRunner()
    obj = _obj(tmp_path)
    obj["personas"].create_sample()
    notes = tmp_path / "notes.md"
    notes.write_text("# Notes\n\nRun make.", encoding="utf-8")
    out_dir = tmp_path / "custom"

    result = runner.invoke(
        cli,
        [
            "simulate",
            "-p", "beginner_developer",
            "-f", str(notes),
            "-r", "Clear?",
            "-m", "scripted",
            "-o", str(out_dir),
        ],
        obj=obj,
    )

    assert result.exit_code == 0, result.output
    assert len(list(out_dir.glob("*.md"))) == 1


def test_simulate_argument_errors(tmp_path: Path) -> None:
    runner = CliRunner()
    obj = _obj(tmp_path)
    obj["personas"].create_sample()

    no_doc = runner.invoke(cli, ["simulate", "-p", "beginner_developer", "-r", "Hi"], obj=obj)
    assert no_doc.exit_code == 2

    unknown = runner.invoke(
        cli,
        ["simulate", "-p", "ghost", "-d", "https://docs.example.com", "-r", "Hi", "-m", "scripted"],
        obj=obj,
    )
    assert unknown.exit_code == 1
    assert 'Persona "ghost" not found.' in unknown.output


def test_interactive_session(tmp_path: Path) -> None:
    runner = CliRunner()
    obj = _obj(tmp_path)
    obj["personas"].create_sample()

    result = runner.invoke(
        cli,
        ["simulate", "-p", "beginner_developer", "-d", "https://docs.example.com/guide", "-m", "scripted", "-i"],
        obj=obj,
        input="What is step one?\nexit\n",
    )

    assert result.exit_code == 0, result.output
    assert "Interactive Session with beginner_developer" in result.output
    assert result.output.count("I would need a screenshot of step 2.") == 1
    assert "Ending interactive session." in result.output


def test_list_models(tmp_path: Path) -> None:
    result = CliRunner().invoke(cli, ["list-models"], obj=_obj(tmp_path))

    assert result.exit_code == 0
    assert "SCRIPTED:\n- Default model: scripted" in result.output


def test_document_source_closed_after_command(tmp_path: Path) -> None:
    class _ClosingSource(_FakeSource):
        closed = False

        def close(self) -> None:
            self.closed = True

    obj = _obj(tmp_path)
    obj["document_source"] = _ClosingSource()

    result = CliRunner().invoke(cli, ["list-personas"], obj=obj)

    assert result.exit_code == 0
    assert obj["document_source"].closed
