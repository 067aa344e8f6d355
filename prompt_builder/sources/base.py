"""
Marginalia - Base Context Source
Abstract interface for all system-instruction sources
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional, Dict, Any
from enum import IntEnum


class SourcePriority(IntEnum):
    """
    Priority levels for context sources.
    Lower numbers = higher priority (included first in prompt).
    """
    PERSONA_VOICE = 10       # Fixed voice instruction, always first
    LONG_TERM_MEMORY = 20    # Consolidated shared history
    THOUGHT_CONSTRAINTS = 90  # Behavioral rules, always last


@dataclass
class ContextBlock:
    """
    A block of context from a source.

    Attributes:
        source_name: Identifier for the source
        content: The formatted context text
        priority: Lower = higher priority (placed earlier in prompt)
        metadata: Additional data about this block
    """
    source_name: str
    content: str
    priority: int
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __bool__(self) -> bool:
        """Block is truthy if it has content."""
        return bool(self.content and self.content.strip())


class ContextSource(ABC):
    """
    Abstract base class for context sources.

    Each source reads what it needs from the session context (the
    persona, the length directive) and returns a ContextBlock, or None
    when it has nothing to add. Sources are pluggable: new ones can be
    registered without modifying the PromptBuilder.
    """

    @property
    @abstractmethod
    def source_name(self) -> str:
        """Unique identifier for this source."""
        pass

    @property
    @abstractmethod
    def priority(self) -> int:
        """
        Priority for ordering in prompt.
        Use SourcePriority enum values.
        """
        pass

    @abstractmethod
    def get_context(
        self,
        task_instruction: str,
        session_context: Dict[str, Any]
    ) -> Optional[ContextBlock]:
        """
        Generate context block for the current prompt.

        Args:
            task_instruction: The user-turn text the prompt is built for
            session_context: Shared context dict for cross-source data
                Keys include:
                - 'persona': The Persona speaking
                - 'length_directive': Output length rule, or None for default

        Returns:
            ContextBlock with formatted context, or None if no context
        """
        pass
