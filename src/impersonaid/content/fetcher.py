"""Document sources: remote fetch and local files."""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import replace
from pathlib import Path
from typing import Any

import httpx
import markdownify
import readabilipy

from impersonaid import __version__
from impersonaid.content.reducer import clean_text
from impersonaid.errors import FetchError
from impersonaid.types import ContentKind, Document, DocumentOrigin, title_from_url

logger = logging.getLogger(__name__)

USER_AGENT = f"Impersonaid/{__version__}"


class DocumentSource(ABC):
    """Fetches a remote document and flattens it to text."""

    @abstractmethod
    def fetch(self, url: str) -> Document:
        """Return a fully fetched remote `Document` or raise `FetchError`."""

    def close(self) -> None:
        """Release any connections held by the source."""


class HttpDocumentSource(DocumentSource):
    """httpx-backed source for HTML, JSON and plain-text pages."""

    def __init__(
        self,
        *,
        client: httpx.Client | None = None,
        timeout: float = 30.0,
    ) -> None:
        self._client = client or httpx.Client(
            timeout=timeout,
            follow_redirects=True,
            headers={"User-Agent": USER_AGENT},
        )

    def fetch(self, url: str) -> Document:
        logger.info("Fetching document from %s", url)
        try:
            response = self._client.get(url)
        except httpx.HTTPError as exc:
            raise FetchError(f"Failed to fetch document: {exc}", url=url) from exc

        if not response.is_success:
            raise FetchError(
                f"Failed to fetch document: {response.status_code} {response.reason_phrase}",
                url=url,
                status_code=response.status_code,
            )

        content_type = response.headers.get("content-type", "")
        if "text/html" in content_type:
            title, content = _html_to_text(response.text, url)
            kind = ContentKind.HTML_TEXT
        elif "application/json" in content_type:
            try:
                payload: Any = response.json()
            except ValueError as exc:
                raise FetchError(f"Invalid JSON document: {exc}", url=url) from exc
            title = title_from_url(url)
            content = json.dumps(payload, ensure_ascii=False, indent=2)
            kind = ContentKind.JSON
        elif "text/plain" in content_type:
            title = title_from_url(url)
            content = response.text
            kind = ContentKind.PLAIN_TEXT
        else:
            raise FetchError(f"Unsupported content type: {content_type}", url=url)

        logger.info("Fetched: %s", title)
        return Document(
            origin=DocumentOrigin.REMOTE,
            location=url,
            title=title,
            content=content,
            content_kind=kind,
            metadata={"content_type": content_type},
        )

    def close(self) -> None:
        self._client.close()


def _html_to_text(html: str, url: str) -> tuple[str, str]:
    article = readabilipy.simple_json_from_html_string(html, use_readability=False)
    if not article.get("content"):
        raise FetchError(
            "Page failed to be simplified from HTML. It may be dynamically generated.",
            url=url,
        )
    text = markdownify.markdownify(article["content"], heading_style=markdownify.ATX)
    title = (article.get("title") or "").strip() or title_from_url(url)
    return title, clean_text(text)


def load_local_document(path: str | Path) -> Document:
    """Read a local markdown or text file as inline document content."""

    file_path = Path(path)
    try:
        text = file_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise FetchError(f"Cannot read {file_path}: {exc}", url=str(file_path)) from exc
    if file_path.suffix.lower() in {".md", ".markdown"}:
        kind = ContentKind.MARKDOWN
    else:
        kind = ContentKind.PLAIN_TEXT
    return replace(Document.inline(text, title=file_path.name), content_kind=kind)
