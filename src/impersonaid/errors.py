"""Error taxonomy.

Every error carries the pipeline stage it came from (`config`, `fetch`,
`route`, `reduce`, `generate`, `persona`) so traces and API responses can
attribute a failure without inspecting the exception type.
"""

from __future__ import annotations


class ImpersonaidError(Exception):
    stage = "unknown"

    def __init__(self, message: str, *, stage: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        if stage is not None:
            self.stage = stage


class ConfigError(ImpersonaidError):
    stage = "config"


class FetchError(ImpersonaidError):
    """The document origin was unreachable or served unsupported content."""

    stage = "fetch"

    def __init__(
        self,
        message: str,
        *,
        url: str | None = None,
        status_code: int | None = None,
        stage: str | None = None,
    ) -> None:
        super().__init__(message, stage=stage)
        self.url = url
        self.status_code = status_code


class ReductionError(ImpersonaidError):
    """Raised only when the reducer itself is broken."""

    stage = "reduce"


class ProviderError(ImpersonaidError):
    """The generation backend rejected the request or failed."""

    stage = "generate"

    def __init__(
        self,
        message: str,
        *,
        provider: str,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code


class UnknownProviderError(ImpersonaidError, KeyError):
    stage = "generate"

    def __str__(self) -> str:
        return self.message


class PersonaNotFoundError(ImpersonaidError, KeyError):
    stage = "persona"

    def __str__(self) -> str:
        return self.message
