from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Literal, Tuple

Role = Literal["system", "user", "assistant"]
ROLES: Tuple[str, ...] = ("system", "user", "assistant")


@dataclass(frozen=True)
class Message:
    """
    One conversation turn.
    images holds data-URIs (``data:image/png;base64,...``) in the order the
    user attached them; providers translate them to their own encoding.
    """
    role: Role
    content: str
    images: Tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        if self.role not in ROLES:
            raise ValueError(f"Unknown message role '{self.role}' (expected one of {list(ROLES)}).")
        # Accept any sequence from callers but store an immutable tuple
        object.__setattr__(self, "images", tuple(self.images or ()))

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "Message":
        return cls(
            role=str(raw.get("role", "user")).lower(),  # type: ignore[arg-type]
            content=str(raw.get("content") or ""),
            images=tuple(raw.get("images") or ()),
        )

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"role": self.role, "content": self.content}
        if self.images:
            out["images"] = list(self.images)
        return out


def as_messages(items: Iterable[Any]) -> List[Message]:
    # Callers may hand over plain dicts (web/IPC payloads) or Message objects
    return [m if isinstance(m, Message) else Message.from_dict(m) for m in items]
