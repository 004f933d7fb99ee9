"""Capability-based choice of how a document reaches the backend."""

from __future__ import annotations

import logging

from impersonaid.content.fetcher import DocumentSource
from impersonaid.content.reducer import ContentReducer, clean_text
from impersonaid.errors import FetchError, ReductionError
from impersonaid.types import (
    CapabilityDescriptor,
    DeliveryPlan,
    DeliveryStrategy,
    Document,
    ReductionBudget,
)

logger = logging.getLogger(__name__)


class DeliveryRouter:
    """Derives a fresh `DeliveryPlan` for every request.

    Decision table, first match wins:

    | document | direct reference | quirk | strategy           |
    |----------|------------------|-------|--------------------|
    | inline   | any              | any   | FULLY_EMBEDDED     |
    | remote   | yes              | no    | DIRECT_REFERENCE   |
    | remote   | yes              | yes   | EMBEDDED_REFERENCE |
    | remote   | no               | any   | FULLY_EMBEDDED     |

    Embedding strategies need real content, so a placeholder document is
    fetched once through the `DocumentSource` before reduction. The fetched
    document replaces the placeholder only inside the returned plan.
    """

    def __init__(
        self,
        reducer: ContentReducer,
        document_source: DocumentSource,
        *,
        budget: ReductionBudget | None = None,
    ) -> None:
        self.reducer = reducer
        self.document_source = document_source
        self.budget = budget or reducer.default_budget()

    def plan(
        self,
        document: Document,
        capabilities: CapabilityDescriptor,
        *,
        budget: ReductionBudget | None = None,
    ) -> DeliveryPlan:
        budget = budget or self.budget

        if document.is_inline:
            return self._embedded(DeliveryStrategy.FULLY_EMBEDDED, document, budget)

        if capabilities.supports_direct_reference:
            if not capabilities.requires_embedded_content_despite_capability:
                logger.info("Backend will access %s directly", document.location)
                return DeliveryPlan(
                    strategy=DeliveryStrategy.DIRECT_REFERENCE,
                    document=document,
                    target_url=document.location,
                )
            logger.info("Backend requires document content despite reference support")
            return self._embedded(
                DeliveryStrategy.EMBEDDED_REFERENCE,
                self._backfill(document),
                budget,
                target_url=document.location,
            )

        return self._embedded(
            DeliveryStrategy.FULLY_EMBEDDED, self._backfill(document), budget
        )

    def _backfill(self, document: Document) -> Document:
        if document.fetched:
            return document
        logger.info("Fetching content for %s before embedding", document.location)
        try:
            return self.document_source.fetch(document.location)
        except FetchError as exc:
            exc.stage = "route"
            raise

    def _embedded(
        self,
        strategy: DeliveryStrategy,
        document: Document,
        budget: ReductionBudget,
        *,
        target_url: str | None = None,
    ) -> DeliveryPlan:
        try:
            payload = self.reducer.reduce(document.content, budget)
        except Exception as exc:
            raise ReductionError(f"Content reduction failed: {exc}") from exc
        return DeliveryPlan(
            strategy=strategy,
            document=document,
            payload_content=payload,
            target_url=target_url,
            reduced=payload != clean_text(document.content),
        )
