"""
Marginalia - Thought Constraints Source
Behavioral rules every persona utterance must follow
"""

from typing import Optional, Dict, Any

import config
from prompt_builder.sources.base import ContextSource, ContextBlock, SourcePriority


DEFAULT_LENGTH_DIRECTIVE = f"Maximum {config.ANNOTATION_MAX_CHARS} characters. Be punchy."

THOUGHT_CONSTRAINTS_TEMPLATE = """CRITICAL CONSTRAINTS:
1. NO ACTIONS: Strictly NO physical descriptions (e.g., NO "*nods*", "*sighs*", "I look up").
2. PURE THOUGHT: Express only internal insights, intellectual sparks, or visceral mental reactions.
3. COLLOQUIAL: Use natural, spoken, and informal language, like a quick thought scribbled in a margin.
4. LENGTH: {length_directive}
5. PERSONA: You must speak with the bias and life experience of your specific persona."""


class ThoughtConstraintsSource(ContextSource):
    """
    Provides the fixed constraint block.

    The length rule defaults to the margin-note cap; long-form tasks pass
    their own directive through session_context["length_directive"].
    """

    @property
    def source_name(self) -> str:
        return "thought_constraints"

    @property
    def priority(self) -> int:
        return SourcePriority.THOUGHT_CONSTRAINTS

    def get_context(
        self,
        task_instruction: str,
        session_context: Dict[str, Any]
    ) -> Optional[ContextBlock]:
        directive = session_context.get("length_directive") or DEFAULT_LENGTH_DIRECTIVE
        return ContextBlock(
            source_name=self.source_name,
            content=THOUGHT_CONSTRAINTS_TEMPLATE.format(length_directive=directive),
            priority=self.priority,
            metadata={"length_directive": directive}
        )
