"""Aliases from external identifiers to canonical module names."""

from typing import Optional

__all__ = ["AliasTable"]


class AliasTable:
    """Maps an identifier used to load a module externally to the module's own name.

    Example:
        >>> aliases = AliasTable()
        >>> aliases.add("myapp.greeting", "greeting")
        >>> aliases.canonical("myapp.greeting")   # "greeting"
        >>> aliases.canonical("greeting")         # "greeting"
    """

    def __init__(self):
        self._aliases: dict[str, str] = {}

    def add(self, identifier: str, canonical_name: str):
        self._aliases[identifier] = canonical_name

    def get(self, identifier: str) -> Optional[str]:
        return self._aliases.get(identifier)

    def canonical(self, name: str) -> str:
        return self._aliases.get(name, name)

    def __contains__(self, identifier: str) -> bool:
        return identifier in self._aliases

    def items(self):
        return self._aliases.items()
