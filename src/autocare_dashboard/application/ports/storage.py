from __future__ import annotations

from typing import Protocol


class KeyValueStore(Protocol):
    """String key-value persistence. Implementations raise ``StorageError``."""

    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str) -> None: ...

    async def remove(self, key: str) -> None: ...

    async def keys(self, prefix: str) -> list[str]: ...
