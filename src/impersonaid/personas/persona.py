"""Persona model and the YAML persona directory."""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError

from impersonaid.errors import PersonaNotFoundError

logger = logging.getLogger(__name__)

_EXPERTISE_LABELS = (
    ("technical", "Technical expertise"),
    ("domain", "Domain expertise"),
    ("tools", "Tools expertise"),
)


class Persona(BaseModel):
    """A described reader whose reactions the backend role-plays."""

    name: str = ""
    description: str = ""
    expertise: dict[str, Any] = Field(default_factory=dict)
    background: dict[str, Any] = Field(default_factory=dict)
    traits: dict[str, Any] = Field(default_factory=dict)
    goals: list[str] = Field(default_factory=list)
    preferences: dict[str, Any] = Field(default_factory=dict)

    def validation_errors(self) -> list[str]:
        errors: list[str] = []
        if not self.name:
            errors.append("Persona must have a name")
        elif not is_safe_name(self.name):
            errors.append("Persona name must not contain path separators or '..'")
        if not self.description:
            errors.append("Persona must have a description")
        if not any(self.expertise.get(key) for key, _ in _EXPERTISE_LABELS):
            errors.append(
                "Expertise should include at least one category (technical, domain, or tools)"
            )
        return errors

    def is_valid(self) -> bool:
        return not self.validation_errors()

    def to_prompt(self) -> str:
        lines = [f"# User Persona: {self.name}", "", self.description, "", "## Expertise"]
        for key, label in _EXPERTISE_LABELS:
            if self.expertise.get(key):
                lines.append(f"- {label}: {self.expertise[key]}")
        lines.append("")

        for title, mapping in (
            ("Background", self.background),
            ("Personality Traits", self.traits),
        ):
            if mapping:
                lines.append(f"## {title}")
                lines.extend(f"- {key}: {value}" for key, value in mapping.items())
                lines.append("")

        if self.goals:
            lines.append("## Goals")
            lines.extend(f"- {goal}" for goal in self.goals)
            lines.append("")

        if self.preferences:
            lines.append("## Preferences")
            lines.extend(f"- {key}: {value}" for key, value in self.preferences.items())
            lines.append("")

        return "\n".join(lines) + "\n"


SAMPLE_PERSONA: dict[str, Any] = {
    "description": "A junior developer who is new to programming and the technology stack.",
    "expertise": {
        "technical": "Beginner",
        "domain": "Limited",
        "tools": "Basic understanding of development tools",
    },
    "background": {
        "education": "Computer Science student or bootcamp graduate",
        "experience": "Less than 1 year of professional experience",
    },
    "traits": {
        "patience": "Low",
        "attention_to_detail": "Moderate",
        "learning_style": "Prefers step-by-step tutorials with examples",
    },
    "goals": [
        "Understand basic concepts quickly",
        "Find practical examples to learn from",
        "Avoid complex technical jargon",
    ],
    "preferences": {
        "documentation_style": "Visual with clear examples",
        "communication": "Simple and direct explanations",
    },
}


def is_safe_name(name: str) -> bool:
    """Persona names become file names and must stay inside the personas directory."""
    return "/" not in name and "\\" not in name and ".." not in name


def persona_filename(name: str) -> str:
    return "_".join(name.lower().split()) + ".yml"


class PersonaStore:
    """Loads, saves and deletes personas kept as YAML files in one directory.

    A reload swaps in complete mappings at once, so readers never see a
    half-loaded directory. Writers are serialized with a lock.
    """

    def __init__(self, personas_dir: str | Path) -> None:
        self.personas_dir = Path(personas_dir)
        self._personas: dict[str, Persona] = {}
        self._paths: dict[str, Path] = {}
        self._lock = threading.RLock()

    def load_all(self) -> dict[str, Persona]:
        with self._lock:
            personas: dict[str, Persona] = {}
            paths: dict[str, Path] = {}
            if not self.personas_dir.exists():
                self.personas_dir.mkdir(parents=True, exist_ok=True)
                logger.info("Created personas directory at %s", self.personas_dir)

            files = sorted(
                path for path in self.personas_dir.iterdir() if path.suffix in {".yml", ".yaml"}
            )
            for path in files:
                try:
                    data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
                    persona = Persona.model_validate(data)
                except (OSError, yaml.YAMLError, ValidationError) as exc:
                    logger.error("Error loading persona from %s: %s", path.name, exc)
                    continue

                errors = persona.validation_errors()
                if errors:
                    logger.warning("Invalid persona in %s: %s", path.name, ", ".join(errors))
                    continue
                personas[persona.name] = persona
                paths[persona.name] = path

            self._paths = paths
            self._personas = personas
            return dict(personas)

    def get(self, name: str) -> Persona:
        persona = self._personas.get(name)
        if persona is None:
            raise PersonaNotFoundError(f'Persona "{name}" not found.')
        return persona

    def names(self) -> list[str]:
        return list(self._personas)

    def all(self) -> list[Persona]:
        return list(self._personas.values())

    def save(self, persona: Persona) -> Path:
        errors = persona.validation_errors()
        if errors:
            raise ValueError(f"Invalid persona data: {', '.join(errors)}")
        with self._lock:
            self.personas_dir.mkdir(parents=True, exist_ok=True)
            # Overwrite the file a persona was loaded from, whatever its name.
            path = self._paths.get(persona.name) or self.personas_dir / persona_filename(persona.name)
            if path.resolve().parent != self.personas_dir.resolve():
                raise ValueError(f"Persona file must stay inside {self.personas_dir}")
            path.write_text(
                yaml.safe_dump(persona.model_dump(), sort_keys=False, allow_unicode=True),
                encoding="utf-8",
            )
            self.load_all()
            return path

    def delete(self, name: str) -> None:
        with self._lock:
            self.get(name)
            path = self._paths.get(name)
            if path is None or not path.exists():
                raise PersonaNotFoundError(f'No persona file found for "{name}".')
            path.unlink()
            self.load_all()

    def create_sample(self, name: str = "beginner_developer") -> Path:
        return self.save(Persona.model_validate({"name": name, **SAMPLE_PERSONA}))
