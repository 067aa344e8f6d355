"""
Marginalia - Personas
Reading companions with a fixed voice and an evolving long-term memory
"""

from dataclasses import dataclass, asdict, replace
from typing import Optional, Dict, Any, List


class PersonaError(Exception):
    """Raised for invalid persona registry operations."""


@dataclass(frozen=True)
class Persona:
    """
    A simulated reading companion.

    Attributes:
        id: Stable identifier
        name: Display name, also used inside prompts
        role: Short role label ("Classical Philosopher")
        relationship: How the persona relates to the reader
        description: One-line bio
        avatar: Avatar reference (emoji or image URL)
        system_instruction: The voice instruction, never rewritten by the core
        long_term_memory: Consolidated shared history, empty until first consolidation
    """
    id: str
    name: str
    role: str
    relationship: str
    description: str
    avatar: str
    system_instruction: str
    long_term_memory: str = ""

    def with_memory(self, memory: str) -> "Persona":
        """Return a copy carrying a new long-term memory."""
        return replace(self, long_term_memory=memory)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Persona":
        return cls(
            id=data["id"],
            name=data["name"],
            role=data.get("role", ""),
            relationship=data.get("relationship", ""),
            description=data.get("description", ""),
            avatar=data.get("avatar", ""),
            system_instruction=data.get("system_instruction", ""),
            long_term_memory=data.get("long_term_memory") or "",
        )


DEFAULT_PERSONAS: List[Persona] = [
    Persona(
        id="socrates",
        name="Socrates",
        role="Classical Philosopher",
        relationship="Philosophical Guide",
        description="Questioning, inquisitive, and intellectually humble. Seeks truth through dialogue.",
        avatar="🏛️",
        system_instruction=(
            "You are Socrates. You respond to texts by asking probing questions that expose "
            "contradictions and seek underlying definitions. Your tone is humble but intellectually "
            "rigorous. You never offer direct praise; instead, you ask why the author chose a "
            "specific path. Avoid generic supportive language."
        ),
    ),
    Persona(
        id="da-vinci",
        name="Leonardo da Vinci",
        role="Renaissance Polymath",
        relationship="Artistic Mentor",
        description="Obsessed with observation, nature, and the intersection of art and science.",
        avatar="🎨",
        system_instruction=(
            "You are Leonardo da Vinci. You view everything through the lens of anatomy, nature, "
            "and mechanical principles. Your annotations often compare human emotions to natural "
            "phenomena like fluid dynamics or the growth of plants. You are curious and meticulous."
        ),
    ),
    Persona(
        id="stern-critic",
        name="The Stern Critic",
        role="Severe Mentor",
        relationship="Distant Observer",
        description="Bitingly honest, cynical, and deeply guarded. Has no time for sentimental fluff.",
        avatar="♟️",
        system_instruction=(
            "You are a Stern Critic. You are cynical and reserved. Your annotations are brief, "
            "sharp, and often sarcastic. You never use words like \"dear\" or \"friend\". If you "
            "find a user's writing sentimental, you point it out with a dry remark. You rarely "
            "share your own pain, only hinting at it through your bitterness toward the world."
        ),
    ),
    Persona(
        id="dreamer",
        name="The Eternal Poet",
        role="Romantic Dreamer",
        relationship="Soulmate",
        description="Emotional, sees beauty in everything, uses metaphorical language.",
        avatar="✨",
        system_instruction=(
            "You are a Romantic Poet. You interpret text through the sublime. Your annotations "
            "are lyrical, vulnerable, and deeply feeling. You treat the user like a fellow soul "
            "in a world of shadows. You often respond with half-finished thoughts or evocative "
            "fragments of imagery."
        ),
    ),
]


class PersonaRegistry:
    """
    Built-in plus user-created personas.

    Personas are immutable values; every change swaps the stored value.
    Built-ins cannot be deleted, but their memory evolves like any other.
    """

    def __init__(self, builtins: Optional[List[Persona]] = None):
        self._builtins: Dict[str, Persona] = {
            p.id: p for p in (DEFAULT_PERSONAS if builtins is None else builtins)
        }
        self._custom: Dict[str, Persona] = {}

    def is_builtin(self, persona_id: str) -> bool:
        return persona_id in self._builtins

    def get(self, persona_id: str) -> Optional[Persona]:
        """Get a persona by id, or None."""
        return self._custom.get(persona_id) or self._builtins.get(persona_id)

    def require(self, persona_id: str) -> Persona:
        persona = self.get(persona_id)
        if persona is None:
            raise PersonaError(f"Unknown persona: {persona_id}")
        return persona

    def list_all(self) -> List[Persona]:
        """Built-ins first (in their declared order), then custom personas."""
        return list(self._builtins.values()) + list(self._custom.values())

    def add_custom(self, persona: Persona) -> Persona:
        if self.get(persona.id) is not None:
            raise PersonaError(f"Persona id already in use: {persona.id}")
        self._custom[persona.id] = persona
        return persona

    def update(self, persona: Persona) -> Persona:
        """Replace a persona after an explicit edit."""
        if persona.id in self._builtins:
            self._builtins[persona.id] = persona
        elif persona.id in self._custom:
            self._custom[persona.id] = persona
        else:
            raise PersonaError(f"Unknown persona: {persona.id}")
        return persona

    def update_memory(self, persona_id: str, memory: str) -> Persona:
        """Store a freshly consolidated memory and return the new value."""
        return self.update(self.require(persona_id).with_memory(memory))

    def delete(self, persona_id: str) -> None:
        if persona_id in self._builtins:
            raise PersonaError(f"Built-in persona cannot be deleted: {persona_id}")
        if self._custom.pop(persona_id, None) is None:
            raise PersonaError(f"Unknown persona: {persona_id}")

    def export_custom(self) -> List[Dict[str, Any]]:
        return [p.to_dict() for p in self._custom.values()]

    def import_custom(self, records: List[Dict[str, Any]]) -> int:
        """Load custom personas from exported records; returns how many were added."""
        added = 0
        for record in records:
            persona = Persona.from_dict(record)
            if self.get(persona.id) is None:
                self._custom[persona.id] = persona
                added += 1
        return added
