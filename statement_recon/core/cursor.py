"""
Immutable forward-only cursor over normalized statement lines.
"""
from dataclasses import dataclass, replace
from typing import Callable, Optional, Tuple


@dataclass(frozen=True)
class LineCursor:
    """A position in a sequence of lines. Every move returns a new cursor."""
    lines: Tuple[str, ...]
    position: int = 0

    @property
    def exhausted(self) -> bool:
        return self.position >= len(self.lines)

    @property
    def current(self) -> Optional[str]:
        if self.exhausted:
            return None
        return self.lines[self.position]

    def peek(self, offset: int = 1) -> Optional[str]:
        index = self.position + offset
        if 0 <= index < len(self.lines):
            return self.lines[index]
        return None

    def advance(self, steps: int = 1) -> "LineCursor":
        return replace(self, position=min(self.position + steps, len(self.lines)))

    def seek(self, position: int) -> "LineCursor":
        return replace(self, position=max(0, min(position, len(self.lines))))

    def find(self, predicate: Callable[[str], bool]) -> Optional["LineCursor"]:
        """Cursor at the first line from here satisfying predicate, or None."""
        for index in range(self.position, len(self.lines)):
            if predicate(self.lines[index]):
                return self.seek(index)
        return None

    def skip_while(self, predicate: Callable[[str], bool]) -> "LineCursor":
        cursor = self
        while not cursor.exhausted and predicate(cursor.current):
            cursor = cursor.advance()
        return cursor
