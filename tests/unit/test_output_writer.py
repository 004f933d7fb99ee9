from datetime import datetime, timezone
from pathlib import Path

from impersonaid.output.writer import OutputWriter
from impersonaid.personas.persona import Persona
from impersonaid.types import Document


def test_transcript_layout(tmp_path: Path) -> None:
    persona = Persona(name="Ada", description="Engineer", expertise={"technical": "Expert"})
    document = Document.inline("# Notes")
    moment = datetime(2024, 5, 1, 12, 30, 15, 123000, tzinfo=timezone.utc)

    path = OutputWriter(tmp_path / "out").save(persona, document, "Is it clear?", "Mostly.", now=moment)

    assert path.name == "Ada_2024-05-01T12-30-15-123000+00-00.md"
    text = path.read_text(encoding="utf-8")
    assert text.startswith(
        "# User Persona Simulation: Ada\n\n"
        "- **Date**: 2024-05-01T12:30:15.123000+00:00\n"
        "- **Document**: Provided Markdown Document\n"
        "- **URL**: markdown://local\n\n"
        "## User Request\n\nIs it clear?\n\n"
        "## Persona Details\n\n# User Persona: Ada\n"
    )
    assert text.endswith("\n\n## Simulation Response\n\nMostly.\n")


def test_transcript_stays_in_output_dir(tmp_path: Path) -> None:
    persona = Persona(name="../escaped", description="Engineer", expertise={"technical": "Expert"})
    moment = datetime(2024, 5, 1, tzinfo=timezone.utc)

    path = OutputWriter(tmp_path / "out").save(persona, Document.inline("x"), "Hi", "Ok", now=moment)

    assert path.parent == tmp_path / "out"
    assert path.name.startswith(".._escaped_")
