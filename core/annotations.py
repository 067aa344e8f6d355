"""
Marginalia - Annotations
Comments anchored to exact passages, with optional chat threads
"""

import time
import uuid
from dataclasses import dataclass, field, replace
from typing import Optional, Dict, Any, List, Iterable, Set, Tuple

AUTHOR_AI = "ai"
AUTHOR_USER = "user"

ROLE_USER = "user"
ROLE_MODEL = "model"


class AnnotationNotFoundError(KeyError):
    """Raised when an operation names an annotation that does not exist."""


@dataclass(frozen=True)
class ChatTurn:
    """One turn of an annotation thread."""
    role: str  # "user" | "model"
    text: str

    def to_dict(self) -> Dict[str, str]:
        return {"role": self.role, "text": self.text}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChatTurn":
        role = ROLE_USER if data.get("role") == ROLE_USER else ROLE_MODEL
        return cls(role=role, text=str(data.get("text", "")))


def new_annotation_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class Annotation:
    """
    A comment anchored to an exact substring of a book.

    Attributes:
        id: Unique identifier
        book_id: Owning book
        text_selection: The anchor, an exact substring of the book text
        comment: The annotation body
        author: "ai" or "user"
        timestamp: Creation time in epoch milliseconds
        persona_id: Owning persona
        topic: Short topic label
        is_autonomous: Created by a background scan
        chat_history: Ordered thread turns
    """
    book_id: str
    text_selection: str
    comment: str
    author: str
    id: str = field(default_factory=new_annotation_id)
    timestamp: int = field(default_factory=lambda: int(time.time() * 1000))
    persona_id: Optional[str] = None
    topic: Optional[str] = None
    is_autonomous: bool = False
    chat_history: Tuple[ChatTurn, ...] = ()

    def with_turns(self, *turns: ChatTurn) -> "Annotation":
        """Return a copy with turns appended to the thread."""
        return replace(self, chat_history=self.chat_history + tuple(turns))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "book_id": self.book_id,
            "text_selection": self.text_selection,
            "comment": self.comment,
            "author": self.author,
            "timestamp": self.timestamp,
            "persona_id": self.persona_id,
            "topic": self.topic,
            "is_autonomous": self.is_autonomous,
            "chat_history": [t.to_dict() for t in self.chat_history],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Annotation":
        return cls(
            id=str(data["id"]),
            book_id=str(data["book_id"]),
            text_selection=data.get("text_selection", ""),
            comment=data.get("comment", ""),
            author=AUTHOR_USER if data.get("author") == AUTHOR_USER else AUTHOR_AI,
            timestamp=int(data.get("timestamp") or 0),
            persona_id=data.get("persona_id"),
            topic=data.get("topic"),
            is_autonomous=bool(data.get("is_autonomous", False)),
            chat_history=tuple(ChatTurn.from_dict(t) for t in data.get("chat_history") or []),
        )


class AnnotationStore:
    """
    In-process annotation collection.

    Values are immutable; update() and append_turns() swap in a complete new
    Annotation so readers never observe a half-written one.
    """

    def __init__(self, annotations: Optional[Iterable[Annotation]] = None):
        self._items: Dict[str, Annotation] = {}
        for annotation in annotations or ():
            self._items[annotation.id] = annotation

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, annotation_id: str) -> bool:
        return annotation_id in self._items

    def add(self, annotation: Annotation) -> Annotation:
        self._items[annotation.id] = annotation
        return annotation

    def add_many(self, annotations: Iterable[Annotation]) -> List[Annotation]:
        return [self.add(a) for a in annotations]

    def get(self, annotation_id: str) -> Optional[Annotation]:
        return self._items.get(annotation_id)

    def require(self, annotation_id: str) -> Annotation:
        annotation = self._items.get(annotation_id)
        if annotation is None:
            raise AnnotationNotFoundError(annotation_id)
        return annotation

    def update(self, annotation_id: str, **changes: Any) -> Optional[Annotation]:
        """Replace fields of an annotation; None if it no longer exists."""
        current = self._items.get(annotation_id)
        if current is None:
            return None
        updated = replace(current, **changes)
        self._items[annotation_id] = updated
        return updated

    def append_turns(self, annotation_id: str, *turns: ChatTurn) -> Optional[Annotation]:
        """Append turns to the current thread; None if the annotation is gone."""
        current = self._items.get(annotation_id)
        if current is None:
            return None
        updated = current.with_turns(*turns)
        self._items[annotation_id] = updated
        return updated

    def remove(self, annotation_id: str) -> bool:
        return self._items.pop(annotation_id, None) is not None

    def remove_book(self, book_id: str) -> int:
        doomed = [a.id for a in self._items.values() if a.book_id == book_id]
        for annotation_id in doomed:
            del self._items[annotation_id]
        return len(doomed)

    def for_book(self, book_id: str) -> List[Annotation]:
        """Annotations of a book, newest first."""
        return sorted(
            (a for a in self._items.values() if a.book_id == book_id),
            key=lambda a: a.timestamp,
            reverse=True,
        )

    def count_for_book(self, book_id: str) -> int:
        return sum(1 for a in self._items.values() if a.book_id == book_id)

    def anchors_for_book(self, book_id: str) -> Set[str]:
        return {a.text_selection for a in self._items.values() if a.book_id == book_id}

    def export(self) -> List[Dict[str, Any]]:
        return [a.to_dict() for a in self._items.values()]
