"""
Marginalia - Prompt Builder
Orchestrates context sources to assemble persona system instructions
"""

from typing import Optional, List, Dict, Any
from dataclasses import dataclass

from core.personas import Persona
from prompt_builder.sources.base import ContextSource, ContextBlock
from core.logger import log_info, log_error


@dataclass
class AssembledPrompt:
    """The final assembled prompt with metadata."""
    user_message: str
    context_blocks: List[ContextBlock]

    @property
    def system_instruction(self) -> str:
        """Complete system instruction, blocks in priority order."""
        sorted_blocks = sorted(self.context_blocks, key=lambda b: b.priority)
        return "\n\n".join(b.content for b in sorted_blocks if b.content)


class PromptBuilder:
    """
    Orchestrates context sources to build persona prompts.

    Features:
    - Pluggable source architecture
    - Priority-based ordering
    - Session context sharing between sources
    """

    def __init__(self):
        self._sources: List[ContextSource] = []

    def register_source(self, source: ContextSource) -> None:
        """Register a context source, keeping sources sorted by priority."""
        self._sources.append(source)
        self._sources.sort(key=lambda s: s.priority)

    def unregister_source(self, source_name: str) -> bool:
        """
        Unregister a context source by name.

        Returns:
            True if source was found and removed
        """
        for i, source in enumerate(self._sources):
            if source.source_name == source_name:
                self._sources.pop(i)
                log_info(f"Unregistered source: {source_name}")
                return True
        return False

    def build(
        self,
        persona: Persona,
        task_instruction: str,
        length_directive: Optional[str] = None
    ) -> AssembledPrompt:
        """
        Build a prompt for one task.

        Args:
            persona: The persona speaking
            task_instruction: The user-turn text for the task
            length_directive: Output length rule; None keeps the margin-note cap

        Returns:
            AssembledPrompt with all context assembled
        """
        session_context: Dict[str, Any] = {
            "persona": persona,
            "length_directive": length_directive,
        }

        blocks: List[ContextBlock] = []

        for source in self._sources:
            try:
                block = source.get_context(task_instruction, session_context)
                if block and block.content:
                    blocks.append(block)
            except Exception as e:
                log_error(f"Error getting context from {source.source_name}: {e}")
                # Continue with other sources

        return AssembledPrompt(
            user_message=task_instruction,
            context_blocks=blocks
        )

    def build_system_instruction(
        self,
        persona: Persona,
        length_directive: Optional[str] = None
    ) -> str:
        """Just the system text for a persona, without a task."""
        return self.build(persona, "", length_directive).system_instruction

    def list_sources(self) -> List[str]:
        """Get list of registered source names."""
        return [s.source_name for s in self._sources]


def create_default_builder() -> PromptBuilder:
    """
    Create a PromptBuilder with the default sources.

    Returns:
        Configured PromptBuilder
    """
    from prompt_builder.sources.persona_voice import PersonaVoiceSource
    from prompt_builder.sources.long_term_memory import LongTermMemorySource
    from prompt_builder.sources.thought_constraints import ThoughtConstraintsSource

    builder = PromptBuilder()

    sources = [
        PersonaVoiceSource(),        # Voice (priority 10)
        LongTermMemorySource(),      # Shared history (priority 20)
        ThoughtConstraintsSource(),  # Constraint block (priority 90)
    ]

    for source in sources:
        builder.register_source(source)

    return builder


# Global instance
_prompt_builder: Optional[PromptBuilder] = None


def get_prompt_builder() -> PromptBuilder:
    """Get the global PromptBuilder instance."""
    global _prompt_builder
    if _prompt_builder is None:
        _prompt_builder = create_default_builder()
    return _prompt_builder


def init_prompt_builder() -> PromptBuilder:
    """Initialize the global PromptBuilder."""
    global _prompt_builder
    _prompt_builder = create_default_builder()
    return _prompt_builder
