"""
Contract: Cache

Cache com TTL. Puramente otimização: um miss nunca é erro.
"""

from abc import ABC, abstractmethod
from typing import Any


class ICache(ABC):
    """Port: Cache"""

    @abstractmethod
    def get(self, key: str) -> Any | None:
        ...

    @abstractmethod
    def set(self, key: str, value: Any, ttl_seconds: int | None = None) -> None:
        ...

    @abstractmethod
    def delete(self, key: str) -> bool:
        ...

    @abstractmethod
    def clear(self) -> None:
        ...
