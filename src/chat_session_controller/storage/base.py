"""Abstract base class for key-value stores.

The controller only needs a tiny persistence surface: remembering which
session was active last, and caching session metadata.  Values are always
UTF-8 strings (typically JSON).

Classes
-------
- KeyValueStore  — abstract base for all stores
"""
from __future__ import annotations

from abc import ABC, abstractmethod


class KeyValueStore(ABC):
    """Protocol for async reading and writing of string values by key.

    All methods are coroutines (``async def``).  Implementations should use
    ``asyncio.Lock`` for in-process safety where needed.
    """

    @abstractmethod
    async def get(self, key: str) -> str | None:
        """Return the value stored under ``key``, or None if absent.

        Parameters
        ----------
        key:
            The key to look up.

        Returns
        -------
        str | None
            The previously stored value, or None.
        """

    @abstractmethod
    async def set(self, key: str, value: str) -> None:
        """Persist ``value`` under ``key``, overwriting any previous value.

        Parameters
        ----------
        key:
            Storage key.
        value:
            UTF-8 string to persist.
        """

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Remove the entry for ``key``.

        Returns
        -------
        bool
            True if the entry existed and was deleted, False otherwise.
        """


__all__ = ["KeyValueStore"]
