"""Cache interface (port) for best-effort result acceleration.

Implementations must never raise from an operation: an unavailable backend
behaves like an always-empty cache.
"""
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, List, Mapping, Optional, Sequence


class ICacheStore(ABC):
    """Abstract interface for a namespaced TTL key-value store."""

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        pass

    @abstractmethod
    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        pass

    @abstractmethod
    async def delete(self, key: str) -> bool:
        pass

    @abstractmethod
    async def exists(self, key: str) -> bool:
        pass

    @abstractmethod
    async def mget(self, keys: Sequence[str]) -> List[Optional[Any]]:
        pass

    @abstractmethod
    async def mset(self, mapping: Mapping[str, Any], ttl: Optional[int] = None) -> bool:
        pass

    @abstractmethod
    async def increment(self, key: str, amount: int = 1, ttl: Optional[int] = None) -> Optional[int]:
        pass

    @abstractmethod
    async def get_ttl(self, key: str) -> Optional[int]:
        pass

    @abstractmethod
    async def get_or_set(
        self,
        key: str,
        producer: Callable[[], Awaitable[Any]],
        ttl: Optional[int] = None
    ) -> Any:
        """Return the cached value, or compute, store and return a fresh one.

        Exceptions raised by ``producer`` propagate unchanged.
        """
        pass

    @abstractmethod
    async def flush(self, pattern: str = "*") -> bool:
        pass

    @abstractmethod
    def is_healthy(self) -> bool:
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close any open connections."""
        pass
