"""Conversation data: messages, sessions and slash commands."""

import time
import uuid
from dataclasses import asdict, dataclass, field


@dataclass
class Message:
    """One chat turn. Notices are client announcements, never sent to the model."""

    role: str
    content: str
    is_streaming: bool = False
    model: str | None = None
    is_notice: bool = False

    def to_api(self) -> dict:
        return {"role": self.role, "content": self.content}

    @classmethod
    def from_dict(cls, data: dict) -> "Message":
        return cls(
            role=data["role"],
            content=data.get("content") or "",
            is_streaming=bool(data.get("is_streaming", False)),
            model=data.get("model"),
            is_notice=bool(data.get("is_notice", False)),
        )


@dataclass
class Session:
    """A persisted conversation."""

    id: str
    title: str
    created_at: float
    updated_at: float
    messages: list[Message] = field(default_factory=list)
    model: str = ""

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "Session":
        return cls(
            id=data["id"],
            title=str(data.get("title") or ""),
            created_at=float(data["created_at"]),
            updated_at=float(data["updated_at"]),
            messages=[Message.from_dict(m) for m in data.get("messages", [])],
            model=data.get("model", ""),
        )


@dataclass(frozen=True)
class Command:
    name: str
    description: str
    usage: str | None = None


def generate_session_id() -> str:
    """Unique, time-ordered id: <epoch millis>-<9 random chars>"""
    return f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:9]}"
