"""Ordered conversation log of one session."""

from typing import Any, Iterable, Iterator

from ..models import ConversationEntry, EntryType


class Conversation:
    """
    Append-only list of provider-specific messages.

    Entry content is opaque here: each capability provider decides what a
    message looks like and reads it back through ``messages()``.
    """

    def __init__(self, entries: Iterable[ConversationEntry] | None = None):
        self._entries: list[ConversationEntry] = list(entries or [])

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[ConversationEntry]:
        return iter(self._entries)

    @property
    def entries(self) -> list[ConversationEntry]:
        return list(self._entries)

    @property
    def last(self) -> ConversationEntry | None:
        return self._entries[-1] if self._entries else None

    def add(self, content: Any, entry_type: EntryType) -> ConversationEntry:
        entry = ConversationEntry(content=content, type=entry_type)
        self._entries.append(entry)
        return entry

    def add_user_input(self, content: Any) -> ConversationEntry:
        return self.add(content, EntryType.USER_INPUT)

    def add_model_response(self, content: Any) -> ConversationEntry:
        return self.add(content, EntryType.MODEL_RESPONSE)

    def add_function_call(self, content: Any) -> ConversationEntry:
        return self.add(content, EntryType.FUNCTION_CALL)

    def add_function_result(self, content: Any) -> ConversationEntry:
        return self.add(content, EntryType.FUNCTION_RESULT)

    def messages(self) -> list[Any]:
        """Raw provider messages in order."""
        return [entry.content for entry in self._entries]

    def trim(self, max_entries: int) -> None:
        """
        Keep the last max_entries entries, then drop leading entries until
        the log starts with user input. A non-positive limit empties the log.
        """
        if max_entries <= 0:
            self._entries = []
            return

        kept = self._entries[-max_entries:]
        start = 0
        while start < len(kept) and kept[start].type != EntryType.USER_INPUT:
            start += 1
        self._entries = kept[start:]

    def to_list(self) -> list[dict[str, Any]]:
        return [entry.to_dict() for entry in self._entries]

    @classmethod
    def from_list(cls, data: Iterable[dict[str, Any]]) -> "Conversation":
        return cls(ConversationEntry.from_dict(item) for item in data)
