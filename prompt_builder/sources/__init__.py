"""
Marginalia - Context Sources
Pluggable sources for system-instruction assembly
"""

from prompt_builder.sources.base import ContextSource, ContextBlock, SourcePriority
from prompt_builder.sources.persona_voice import PersonaVoiceSource
from prompt_builder.sources.long_term_memory import LongTermMemorySource
from prompt_builder.sources.thought_constraints import ThoughtConstraintsSource

__all__ = [
    "ContextSource",
    "ContextBlock",
    "SourcePriority",
    "PersonaVoiceSource",
    "LongTermMemorySource",
    "ThoughtConstraintsSource",
]
