"""Registration and introspection of module definitions."""

import logging
from collections.abc import Sequence
from typing import Any, Callable, Iterator, Optional

from module_library.domain import Module, Reset, Specifier, as_specifier
from module_library.errors import DefinitionError, ResolutionError

__all__ = ["ModuleRegistry", "inferred_name"]

logger = logging.getLogger(__name__)


def inferred_name(factory: Callable) -> str:
    """Derive a module name from a factory, removing any 'make_' prefix.

    Example:
        >>> inferred_name(make_database)  # Returns "database"
        >>> inferred_name(Database)       # Returns "Database"
    """
    name = factory.__name__
    if name.startswith("make_"):
        return name[5:]
    return name


class ModuleRegistry:
    """Modules keyed by name.

    A registry is shared by reference between a scope and every scope cloned
    from it, so all of them see the same definitions.
    """

    def __init__(self):
        self._modules: dict[str, Module] = {}

    def define(
        self,
        name: str,
        dependencies: Sequence[Any] = (),
        factory: Optional[Callable] = None,
    ) -> Module:
        """Validate and store a module definition.

        Redefining a name replaces the previous definition. Instances already
        cached under that name are left alone; resetting them is up to the caller.

        Args:
            name: Non-empty module name.
            dependencies: Names, module handles, collectives or inline factories.
            factory: Callable receiving one resolved value per dependency.

        Returns:
            The stored :class:`Module`, usable as a dependency elsewhere.

        Raises:
            DefinitionError: If any of the arguments is malformed.
        """
        if not isinstance(name, str) or not name:
            raise DefinitionError(
                f"library.define expects a name as the first argument, but you passed {name!r}"
            )
        if not callable(factory):
            raise DefinitionError(
                f"library.define needs some kind of function for {name!r} but you gave it {factory!r}"
            )
        if isinstance(dependencies, (str, bytes)) or not isinstance(dependencies, Sequence):
            raise DefinitionError(
                f"You passed {dependencies!r} to library.define in between the name and the function, "
                f"but that's not a list of dependencies. We were expecting a list of dependencies for {name!r}."
            )

        module = Module(name, _module_dependencies(name, dependencies), factory)
        if name in self._modules:
            logger.debug("Redefining module %s", name)
        else:
            logger.debug("Defining module %s", name)
        self._modules[name] = module
        return module

    def add(self, module: Module):
        """Register an already built module, as handed over by an external loader."""
        self._modules[module.name] = module

    def get(self, name: str) -> Optional[Module]:
        return self._modules.get(name)

    def names(self) -> list[str]:
        return list(self._modules)

    def __contains__(self, name: str) -> bool:
        return name in self._modules

    def __iter__(self) -> Iterator[Module]:
        return iter(list(self._modules.values()))

    def __len__(self) -> int:
        return len(self._modules)


def _module_dependencies(name: str, dependencies: Sequence[Any]) -> tuple[Specifier, ...]:
    specifiers = []
    for position, dependency in enumerate(dependencies):
        try:
            specifier = as_specifier(dependency)
        except ResolutionError as e:
            raise DefinitionError(f"Dependency #{position} of {name!r} is malformed: {e}") from e
        if isinstance(specifier, Reset):
            raise DefinitionError(
                f"Dependency #{position} of {name!r} is library.reset({specifier.name!r}), "
                "but resets can only be passed to library.using"
            )
        specifiers.append(specifier)
    return tuple(specifiers)
