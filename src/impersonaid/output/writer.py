"""Markdown transcripts of simulation runs."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path

from impersonaid.personas.persona import Persona
from impersonaid.types import Document

logger = logging.getLogger(__name__)


class OutputWriter:
    def __init__(self, output_dir: str | Path) -> None:
        self.output_dir = Path(output_dir)

    def save(
        self,
        persona: Persona,
        document: Document,
        request: str,
        response: str,
        *,
        now: datetime | None = None,
    ) -> Path:
        """Write one simulation to `<persona>_<timestamp>.md` and return its path."""

        moment = now or datetime.now(timezone.utc)
        iso = moment.isoformat()
        stamp = iso.replace(":", "-").replace(".", "-")
        self.output_dir.mkdir(parents=True, exist_ok=True)
        stem = persona.name.replace("/", "_").replace("\\", "_")
        path = self.output_dir / f"{stem}_{stamp}.md"

        content = (
            f"# User Persona Simulation: {persona.name}\n\n"
            f"- **Date**: {iso}\n"
            f"- **Document**: {document.title}\n"
            f"- **URL**: {document.location}\n\n"
            f"## User Request\n\n{request}\n\n"
            "## Persona Details\n\n"
            f"{persona.to_prompt()}"
            f"\n\n## Simulation Response\n\n{response}\n"
        )
        path.write_text(content, encoding="utf-8")
        logger.debug("Saved simulation to %s", path)
        return path
