"""Core Note (Zettel) dataclass and its lightweight metadata."""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from typing import Any

from kasten.errors import SerializationError

#: Precedes the identifier in picker lines; never typed into a title by hand.
PICKER_SEPARATOR = "\u2063"


def first_line(text: str) -> str:
    """Return *text* up to its first line break (``""`` for empty text)."""
    return text.split("\n", 1)[0].removesuffix("\r")


@dataclass(frozen=True)
class MetaData:
    """Always-resident subset of a note used for listing and picking."""

    id: uuid.UUID
    title: str
    creation_date: datetime

    def picker_line(self) -> str:
        return f"{self.title} - {PICKER_SEPARATOR}{self.id}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "title": self.title,
            "creation_date": self.creation_date.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MetaData":
        try:
            meta = cls(
                id=uuid.UUID(data["id"]),
                title=str(data["title"]),
                creation_date=datetime.fromisoformat(data["creation_date"]),
            )
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            raise SerializationError(f"Invalid note metadata: {exc}") from exc
        if meta.creation_date.tzinfo is None:
            raise SerializationError(f"Creation date of {meta.id} has no UTC offset")
        return meta


@dataclass
class Note:
    """A single note: identity, creation date, body and a derived title.

    ``dirty`` is true whenever the in-memory content may differ from what is
    persisted; it is never serialized.
    """

    meta_data: MetaData
    body: str
    dirty: bool = field(default=False, compare=False)

    @classmethod
    def create(cls, body: str = "") -> "Note":
        """Return a fresh note with a random id, stamped now, marked dirty."""
        meta = MetaData(
            id=uuid.uuid4(),
            title=first_line(body),
            creation_date=datetime.now(UTC),
        )
        return cls(meta_data=meta, body=body, dirty=True)

    @property
    def id(self) -> uuid.UUID:
        return self.meta_data.id

    @property
    def title(self) -> str:
        return self.meta_data.title

    @property
    def creation_date(self) -> datetime:
        return self.meta_data.creation_date

    def update_body(self, body: str) -> None:
        """Replace the body, recompute the title and mark the note dirty."""
        self.body = body
        self.meta_data = replace(self.meta_data, title=first_line(body))
        self.dirty = True

    def copy(self) -> "Note":
        return replace(self)

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        return {"meta_data": self.meta_data.to_dict(), "body": self.body}

    def serialize(self) -> bytes:
        return json.dumps(self.to_dict(), ensure_ascii=False).encode("utf-8")

    @classmethod
    def deserialize(cls, data: bytes | str) -> "Note":
        """Decode a note written by :meth:`serialize`; the result is clean."""
        try:
            raw = json.loads(data)
        except (UnicodeDecodeError, ValueError) as exc:
            raise SerializationError(f"Invalid note encoding: {exc}") from exc
        if not isinstance(raw, dict) or not isinstance(raw.get("body"), str):
            raise SerializationError("Invalid note encoding: expected an object with a text body")
        meta = raw.get("meta_data")
        if not isinstance(meta, dict):
            raise SerializationError("Invalid note encoding: missing meta_data")
        return cls(meta_data=MetaData.from_dict(meta), body=raw["body"], dirty=False)

    def __repr__(self) -> str:
        body = self.body
        if len(body) > 10:
            body = f"{body[:5]}...{body[-5:]}"
        return f"Note(id={self.id}, body={body!r})"
