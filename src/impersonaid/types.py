"""Shared domain models."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import PurePosixPath
from typing import Any
from urllib.parse import urlparse

INLINE_LOCATION = "markdown://local"
PLACEHOLDER_CONTENT = (
    "This content will be accessed directly by the LLM via its browsing capability."
)


class DocumentOrigin(str, Enum):
    REMOTE = "remote"
    INLINE = "inline"


class ContentKind(str, Enum):
    HTML_TEXT = "html-derived-text"
    JSON = "json"
    PLAIN_TEXT = "plain-text"
    MARKDOWN = "markdown"


class DeliveryStrategy(str, Enum):
    DIRECT_REFERENCE = "direct-reference"
    EMBEDDED_REFERENCE = "embedded-reference"
    FULLY_EMBEDDED = "fully-embedded"


@dataclass(slots=True, frozen=True)
class Document:
    """A documentation page or inline text submitted for review.

    Instances belong to a single simulation request. A placeholder document
    (`fetched=False`) is created when the backend is expected to retrieve the
    page itself; backfilling it yields a new instance.
    """

    origin: DocumentOrigin
    location: str
    title: str
    content: str
    content_kind: ContentKind = ContentKind.PLAIN_TEXT
    metadata: dict[str, Any] = field(default_factory=dict)
    fetched: bool = True

    @classmethod
    def inline(cls, text: str, *, title: str = "Provided Markdown Document") -> "Document":
        return cls(
            origin=DocumentOrigin.INLINE,
            location=INLINE_LOCATION,
            title=title,
            content=text,
            content_kind=ContentKind.MARKDOWN,
        )

    @classmethod
    def placeholder(cls, url: str) -> "Document":
        return cls(
            origin=DocumentOrigin.REMOTE,
            location=url,
            title=title_from_url(url, default="Document"),
            content=PLACEHOLDER_CONTENT,
            fetched=False,
        )

    @property
    def is_inline(self) -> bool:
        return self.origin is DocumentOrigin.INLINE


@dataclass(slots=True, frozen=True)
class CapabilityDescriptor:
    """What a generation backend can do with a remote document."""

    supports_direct_reference: bool = False
    requires_embedded_content_despite_capability: bool = False


@dataclass(slots=True, frozen=True)
class ReductionBudget:
    max_chars: int = 8000
    aggressive_threshold_ratio: float = 1.5


@dataclass(slots=True, frozen=True)
class DeliveryPlan:
    """How one request delivers its document to the backend."""

    strategy: DeliveryStrategy
    document: Document
    payload_content: str | None = None
    target_url: str | None = None
    reduced: bool = False


@dataclass(slots=True, frozen=True)
class RenderedPrompt:
    role_block: str
    task_block: str


@dataclass(slots=True)
class SimulationResult:
    response: str
    plan: DeliveryPlan
    trace_id: str


def title_from_url(url: str, *, default: str = "") -> str:
    name = PurePosixPath(urlparse(url).path).name
    return name or default or url
