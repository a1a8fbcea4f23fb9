"""Conversation history — the bounded, role-tagged message log sent to the model.

A History is an immutable value: every append returns a new History, so a
unit's conversation can be threaded through phases without any shared
mutable state.
"""

from dataclasses import dataclass
from typing import Iterator, Literal

Role = Literal["system", "user", "assistant"]
VALID_ROLES = {"system", "user", "assistant"}

DEFAULT_MAX_MESSAGES = 20
MIN_MAX_MESSAGES = 3  # system + latest user + its reply


@dataclass(frozen=True)
class Message:
    role: Role
    content: str

    def __post_init__(self):
        if self.role not in VALID_ROLES:
            raise ValueError(f"Invalid role '{self.role}'. Must be one of: {VALID_ROLES}")
        if not isinstance(self.content, str):
            raise ValueError("Message content must be a string.")

    def to_dict(self) -> dict:
        return {"role": self.role, "content": self.content}


class History:
    """Ordered message log with at most one (leading) system message and a length cap."""

    def __init__(self, messages=(), max_length: int = DEFAULT_MAX_MESSAGES):
        if max_length < MIN_MAX_MESSAGES:
            raise ValueError(f"max_length must be at least {MIN_MAX_MESSAGES}, got {max_length}.")
        self.max_length = max_length
        self._messages: tuple[Message, ...] = ()
        for message in messages:
            self._messages = self._appended(message)

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(self._messages)

    def __getitem__(self, index):
        return self._messages[index]

    def __eq__(self, other) -> bool:
        if not isinstance(other, History):
            return NotImplemented
        return self._messages == other._messages

    def __repr__(self) -> str:
        return f"History({len(self)} messages, max_length={self.max_length})"

    @property
    def messages(self) -> tuple[Message, ...]:
        return self._messages

    @property
    def system_message(self) -> Message | None:
        if self._messages and self._messages[0].role == "system":
            return self._messages[0]
        return None

    def has_system_message(self) -> bool:
        return self.system_message is not None

    def with_system(self, content: str) -> "History":
        """Return a copy with a system message placed first.

        Raises ValueError if a system message is already present.
        """
        if self.has_system_message():
            raise ValueError("History already has a system message.")
        return self._derive((Message("system", content),) + self._messages)

    def append(self, message: Message) -> "History":
        """Return a copy with ``message`` appended and the length cap enforced."""
        return self._derive(self._appended(message))

    def to_payload(self) -> list[dict]:
        """Serialise to the ``messages`` list of a chat-completions request."""
        return [m.to_dict() for m in self._messages]

    # --- internals ---

    def _derive(self, messages: tuple[Message, ...]) -> "History":
        clone = History(max_length=self.max_length)
        clone._messages = _evict(messages, self.max_length)
        return clone

    def _appended(self, message: Message) -> tuple[Message, ...]:
        if message.role == "system":
            if self._messages:
                raise ValueError(
                    "System messages may only start an empty history; use with_system()."
                )
            return (message,)
        return _evict(self._messages + (message,), self.max_length)


def _evict(messages: tuple[Message, ...], max_length: int) -> tuple[Message, ...]:
    """Drop the oldest non-system messages until the cap holds.

    The system message and the most recent user message are never evicted.
    """
    kept = list(messages)
    while len(kept) > max_length:
        last_user = max(
            (i for i, m in enumerate(kept) if m.role == "user"), default=-1
        )
        victim = next(
            i for i, m in enumerate(kept) if m.role != "system" and i != last_user
        )
        del kept[victim]
    return tuple(kept)
