"""End-to-end simulation pipeline: route -> reduce -> assemble -> generate."""

from __future__ import annotations

import logging

from impersonaid.delivery.prompts import PromptAssembler
from impersonaid.delivery.router import DeliveryRouter
from impersonaid.errors import ImpersonaidError, ProviderError
from impersonaid.obs.tracing import SimulationTrace, Timer, TraceStore
from impersonaid.personas.persona import Persona
from impersonaid.providers.base import GenerationAdapter, GenerationOptions
from impersonaid.types import (
    CapabilityDescriptor,
    DeliveryPlan,
    DeliveryStrategy,
    Document,
    RenderedPrompt,
    SimulationResult,
)

logger = logging.getLogger(__name__)


class PersonaSimulator:
    """Runs one persona simulation per call.

    Stages run strictly in sequence and nothing is shared between calls
    except the trace store, so concurrent simulations of the same URL never
    see each other's documents.
    """

    def __init__(
        self,
        *,
        router: DeliveryRouter,
        assembler: PromptAssembler | None = None,
        trace_store: TraceStore | None = None,
    ) -> None:
        self.router = router
        self.assembler = assembler or PromptAssembler()
        self.trace_store = trace_store or TraceStore()

    def load_document(self, url: str, capabilities: CapabilityDescriptor) -> Document:
        """Fetch `url` unless the backend is expected to retrieve it itself."""

        if capabilities.supports_direct_reference:
            return Document.placeholder(url)
        return self.router.document_source.fetch(url)

    def simulate(
        self,
        persona: Persona,
        document: Document,
        request: str,
        adapter: GenerationAdapter,
        *,
        options: GenerationOptions | None = None,
    ) -> SimulationResult:
        plan: DeliveryPlan | None = None
        prompt: RenderedPrompt | None = None
        timer = Timer()
        try:
            with timer:
                if not adapter.initialize():
                    raise ProviderError(
                        f"Failed to initialize {adapter.provider} LLM.",
                        provider=adapter.provider,
                    )
                logger.info("Using %s model: %s", adapter.provider, adapter.name)
                plan = self.router.plan(document, adapter.capabilities)
                prompt = self.assembler.render(persona.to_prompt(), plan, request)
                logger.info("Generating response (%s)", plan.strategy.value)
                response = self._generate(adapter, plan, prompt, options)
        except ImpersonaidError as exc:
            logger.error("Simulation failed at %s stage: %s", exc.stage, exc)
            self._record(
                persona,
                document,
                adapter,
                plan,
                prompt,
                "",
                timer.elapsed_ms,
                failed_stage=exc.stage,
                error=str(exc),
            )
            raise

        record = self._record(persona, document, adapter, plan, prompt, response, timer.elapsed_ms)
        return SimulationResult(response=response, plan=plan, trace_id=record.trace_id)

    @staticmethod
    def _generate(
        adapter: GenerationAdapter,
        plan: DeliveryPlan,
        prompt: RenderedPrompt,
        options: GenerationOptions | None,
    ) -> str:
        if plan.strategy is DeliveryStrategy.FULLY_EMBEDDED:
            return adapter.generate(
                prompt.task_block, system_text=prompt.role_block, options=options
            )
        return adapter.generate_with_reference(
            plan.target_url or plan.document.location,
            prompt.task_block,
            system_text=prompt.role_block,
            embedded_content=plan.payload_content,
            options=options,
        )

    def _record(
        self,
        persona: Persona,
        document: Document,
        adapter: GenerationAdapter,
        plan: DeliveryPlan | None,
        prompt: RenderedPrompt | None,
        response: str,
        latency_ms: float,
        *,
        failed_stage: str | None = None,
        error: str | None = None,
    ) -> SimulationTrace:
        payload = (plan.payload_content if plan else None) or ""
        prompt_text = ""
        if prompt is not None:
            prompt_text = prompt.role_block + prompt.task_block
            if plan is not None and plan.strategy is DeliveryStrategy.EMBEDDED_REFERENCE:
                prompt_text += payload
        source = plan.document if plan else document
        return self.trace_store.create_record(
            persona=persona.name,
            provider=adapter.provider,
            model=adapter.name,
            document_location=document.location,
            strategy=plan.strategy.value if plan else None,
            raw_chars=len(source.content) if source.fetched else 0,
            payload_chars=len(payload),
            reduced=plan.reduced if plan else False,
            prompt_text=prompt_text,
            response=response,
            latency_ms=latency_ms,
            failed_stage=failed_stage,
            error=error,
        )
