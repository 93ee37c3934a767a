"""Undo/Redo history for MindCanvas."""

from copy import deepcopy
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from mindcanvas.model import Node

HISTORY_CAPACITY = 50

HistoryEntry = Tuple[Node, ...]
MapSettings = Dict[str, str]


class HistoryManager:
    """Bounded list of full node snapshots with a current-index pointer.

    ``checkpoint`` drops any redo entries beyond the index, appends a deep
    copy and evicts the oldest entry once ``capacity`` is exceeded. Each
    entry may also carry the map-wide settings (theme, layout, node style)
    active when it was recorded.
    """

    def __init__(self, capacity: int = HISTORY_CAPACITY):
        if capacity < 1:
            raise ValueError("history capacity must be at least 1")
        self.capacity = capacity
        self._entries: List[HistoryEntry] = []
        self._settings: List[MapSettings] = []
        self._index = -1

        # Callbacks
        self.on_state_changed: Optional[Callable[[], None]] = None

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def index(self) -> int:
        return self._index

    @property
    def can_undo(self) -> bool:
        """Check if undo is available."""
        return self._index > 0

    @property
    def can_redo(self) -> bool:
        """Check if redo is available."""
        return self._index < len(self._entries) - 1

    @property
    def current(self) -> Optional[HistoryEntry]:
        if self._index < 0:
            return None
        return self._entries[self._index]

    @property
    def current_settings(self) -> MapSettings:
        """Map settings recorded with the current entry."""
        if self._index < 0:
            return {}
        return dict(self._settings[self._index])

    def checkpoint(self, nodes: Iterable[Node], settings: Optional[MapSettings] = None):
        """Record the given collection as the newest entry."""
        del self._entries[self._index + 1:]
        del self._settings[self._index + 1:]
        self._entries.append(tuple(deepcopy(n) for n in nodes))
        self._settings.append(dict(settings or {}))
        self._index += 1

        while len(self._entries) > self.capacity:
            self._entries.pop(0)
            self._settings.pop(0)
            self._index -= 1

        self._notify_changed()

    def undo(self) -> Optional[HistoryEntry]:
        """Step back; returns a fresh copy of the snapshot to restore."""
        if not self.can_undo:
            return None
        self._index -= 1
        self._notify_changed()
        return self._copy_current()

    def redo(self) -> Optional[HistoryEntry]:
        """Step forward; returns a fresh copy of the snapshot to restore."""
        if not self.can_redo:
            return None
        self._index += 1
        self._notify_changed()
        return self._copy_current()

    def clear(self):
        """Clear all history."""
        self._entries.clear()
        self._settings.clear()
        self._index = -1
        self._notify_changed()

    def _copy_current(self) -> HistoryEntry:
        # Entries are never handed out directly so restores cannot mutate them.
        return tuple(deepcopy(n) for n in self._entries[self._index])

    def _notify_changed(self):
        """Notify that undo/redo state changed."""
        if self.on_state_changed:
            self.on_state_changed()
