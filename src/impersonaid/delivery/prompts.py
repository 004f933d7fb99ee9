"""Prompt templates for persona simulations."""

from __future__ import annotations

from impersonaid.types import DeliveryPlan, DeliveryStrategy, RenderedPrompt

_ROLE_PREAMBLE = "You are simulating a user persona with the following characteristics:\n\n"

_SIMULATION_INSTRUCTIONS = """
## Simulation Instructions
- You are reviewing documentation as this user persona.
- Respond to the documentation and questions as this persona would, based on their expertise, background, traits, goals, and preferences.
- Be authentic to the persona's knowledge level - don't know things they wouldn't know.
- Express confusion when appropriate for this persona's expertise level.
- Use language and terminology consistent with this persona's background.
- Focus on aspects of the documentation that would be most relevant or challenging for this persona.
- If the persona would struggle with certain concepts, express that struggle in your response.
- If the persona would have specific questions or need clarification, include those in your response.
"""

_CLOSING_INSTRUCTION = (
    "Please respond as the user persona described in the system prompt. "
    "Consider how this persona would interact with this documentation based on "
    "their expertise, background, traits, goals, and preferences."
)


class PromptAssembler:
    """Renders the role block and task block sent to the backend.

    The section headers and their order are fixed so simulations stay
    comparable across backends and runs.
    """

    def render(self, persona_block: str, plan: DeliveryPlan, request: str) -> RenderedPrompt:
        return RenderedPrompt(
            role_block=self.role_block(persona_block),
            task_block=self.task_block(plan, request),
        )

    @staticmethod
    def role_block(persona_block: str) -> str:
        return _ROLE_PREAMBLE + persona_block + _SIMULATION_INSTRUCTIONS

    @staticmethod
    def task_block(plan: DeliveryPlan, request: str) -> str:
        # Reference strategies carry the request alone; the adapter adds the URL
        # (and the embedded content, when the backend needs it).
        if plan.strategy is not DeliveryStrategy.FULLY_EMBEDDED:
            return request

        document = plan.document
        return (
            "# Documentation to Review\n\n"
            f"Title: {document.title}\n"
            f"URL: {document.location}\n\n"
            f"## Content\n\n{plan.payload_content or ''}\n\n"
            f"# Your Task\n\n{request}\n\n"
            f"{_CLOSING_INSTRUCTION}"
        )
