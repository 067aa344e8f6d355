"""
Marginalia - Long-Term Memory Source
Consolidated shared history injected behind a delimiter
"""

from typing import Optional, Dict, Any

from prompt_builder.sources.base import ContextSource, ContextBlock, SourcePriority


MEMORY_HEADER = "[LONG-TERM MEMORY & SHARED HISTORY]"

MEMORY_PREAMBLE = (
    "The following is a summary of our past conversations and your evolved "
    "understanding. Use this context to deepen our bond, but do not explicitly "
    "recite it:"
)


class LongTermMemorySource(ContextSource):
    """
    Provides the persona's long-term memory.

    Omitted entirely while the memory is empty, so a fresh persona gets
    no memory block at all.
    """

    @property
    def source_name(self) -> str:
        return "long_term_memory"

    @property
    def priority(self) -> int:
        return SourcePriority.LONG_TERM_MEMORY

    def get_context(
        self,
        task_instruction: str,
        session_context: Dict[str, Any]
    ) -> Optional[ContextBlock]:
        persona = session_context.get("persona")
        memory = (persona.long_term_memory or "").strip() if persona else ""
        if not memory:
            return None

        return ContextBlock(
            source_name=self.source_name,
            content=f'{MEMORY_HEADER}\n{MEMORY_PREAMBLE}\n"{memory}"',
            priority=self.priority,
            metadata={"memory_chars": len(memory)}
        )
