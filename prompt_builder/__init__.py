"""
Marginalia - Prompt Builder
Persona system instructions and task prompts
"""

from prompt_builder.builder import (
    PromptBuilder, AssembledPrompt, create_default_builder,
    get_prompt_builder, init_prompt_builder
)
from prompt_builder.sources.base import ContextSource, ContextBlock

__all__ = [
    "PromptBuilder",
    "AssembledPrompt",
    "create_default_builder",
    "get_prompt_builder",
    "init_prompt_builder",
    "ContextSource",
    "ContextBlock",
]
