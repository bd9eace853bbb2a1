"""
Config store interface for validation config overrides.

A store holds one raw override per scope (a scheme id, or the global
scope). Raw values are whatever was written: a mapping or a JSON string.
Parsing and fallback happen in the resolver, not here.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional


class ConfigStore(ABC):
    """Keyed storage for partial validation configs."""

    @abstractmethod
    def get(self, scope: str) -> Optional[Any]:
        """Raw stored override for a scope, or None."""
        ...

    @abstractmethod
    def set(self, scope: str, partial: dict) -> None:
        ...


class InMemoryConfigStore(ConfigStore):

    def __init__(self, initial: Optional[dict[str, Any]] = None):
        self._data: dict[str, Any] = dict(initial or {})

    def get(self, scope: str) -> Optional[Any]:
        return self._data.get(scope)

    def set(self, scope: str, partial: dict) -> None:
        self._data[scope] = dict(partial)
