"""Named key/value areas standing in for browser local and session storage."""

from __future__ import annotations

from typing import Any

USER_DATA_MARKERS = ("user", "auth")


class KeyValueStore:
    def __init__(self, name: str) -> None:
        self.name = name
        self._items: dict[str, Any] = {}

    def __len__(self) -> int:
        return len(self._items)

    def get(self, key: str, default: Any = None) -> Any:
        return self._items.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._items[key] = value

    def remove(self, key: str) -> bool:
        return self._items.pop(key, None) is not None

    def keys(self) -> list[str]:
        return list(self._items)

    def items(self) -> dict[str, Any]:
        return dict(self._items)

    def clear(self, *, keep_user_data: bool = False) -> int:
        """Remove keys and return how many went.

        With ``keep_user_data`` keys mentioning ``user`` or ``auth`` survive.
        """
        if not keep_user_data:
            removed = len(self._items)
            self._items.clear()
            return removed
        doomed = [
            key for key in self._items
            if not any(marker in key.lower() for marker in USER_DATA_MARKERS)
        ]
        for key in doomed:
            del self._items[key]
        return len(doomed)
