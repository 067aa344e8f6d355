"""
Marginalia - Persona Voice Source
The persona's fixed voice instruction
"""

from typing import Optional, Dict, Any

from prompt_builder.sources.base import ContextSource, ContextBlock, SourcePriority


class PersonaVoiceSource(ContextSource):
    """Provides the persona's immutable system instruction."""

    @property
    def source_name(self) -> str:
        return "persona_voice"

    @property
    def priority(self) -> int:
        return SourcePriority.PERSONA_VOICE

    def get_context(
        self,
        task_instruction: str,
        session_context: Dict[str, Any]
    ) -> Optional[ContextBlock]:
        persona = session_context.get("persona")
        if persona is None or not persona.system_instruction:
            return None

        return ContextBlock(
            source_name=self.source_name,
            content=persona.system_instruction,
            priority=self.priority,
            metadata={"persona_id": persona.id}
        )
