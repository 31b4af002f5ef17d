"""Domain models used throughout the library.

Dependency specifiers form a small tagged variant. Call sites are allowed to
use the loose vocabulary (a string names a module, a module handle stands for
its name, a callable is an inline factory); :func:`as_specifier` turns that
into one of the explicit cases so resolution is a single case analysis.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Union
from uuid import UUID

from module_library.errors import ResolutionError

__all__ = [
    "Named",
    "Collective",
    "Reset",
    "Inline",
    "Specifier",
    "Module",
    "SingletonEntry",
    "LoadedValue",
    "LoadedModule",
    "LoadResult",
    "as_specifier",
    "describe",
]


@dataclass(frozen=True)
class Named:
    """Refers to a module (or external identifier) by name."""

    name: str


@dataclass(frozen=True, eq=False)
class Collective:
    """Shared state template, deep-copied each time a factory declaring it runs.

    Compared by identity: two collectives built from equal templates are
    still different collectives.
    """

    template: Any


@dataclass(frozen=True)
class Reset:
    """Asks ``using`` to invalidate ``name`` and everything that depends on it."""

    name: str


@dataclass(frozen=True)
class Inline:
    """An ad-hoc zero argument producer passed at a call site."""

    factory: Callable[[], Any]


Specifier = Union[Named, Collective, Reset, Inline]


@dataclass(frozen=True)
class Module:
    """A named unit of work.

    Attributes:
        name: Unique key within a registry.
        dependencies: Specifiers resolved, in order, into the factory's arguments.
        factory: Callable receiving one value per dependency and returning the instance.
    """

    name: str
    dependencies: tuple[Specifier, ...]
    factory: Callable = field(repr=False)


@dataclass(frozen=True)
class SingletonEntry:
    """A memoised instance.

    Attributes:
        instance: The value returned by the factory or the external loader.
        id: Identifier of this instance, used only for diagnostics.
        sequence: Process-wide creation order, used by overlay caches to ignore
            entries their parent created after the fork.
    """

    instance: Any
    id: UUID
    sequence: int

    @property
    def short_id(self) -> str:
        return self.id.hex[:4]


@dataclass(frozen=True)
class LoadedValue:
    """An external loader result that is an ordinary value, cached as is."""

    value: Any


@dataclass(frozen=True)
class LoadedModule:
    """An external loader result that is itself a module definition."""

    module: Module

    @property
    def canonical_name(self) -> str:
        return self.module.name


LoadResult = Union[LoadedValue, LoadedModule]


def as_specifier(value: Any) -> Specifier:
    """Normalise a call site dependency into an explicit specifier.

    Example:
        >>> as_specifier("turtle")          # Named("turtle")
        >>> as_specifier(turtle_module)     # Named("turtle")
        >>> as_specifier(lambda: 42)        # Inline(<lambda>)
    """
    if isinstance(value, (Named, Collective, Reset, Inline)):
        return value
    if isinstance(value, str):
        return Named(value)
    if isinstance(value, Module):
        return Named(value.name)
    if callable(value):
        return Inline(value)
    raise ResolutionError(
        f"You asked for a module by the name of {value!r} but, uh... that's not really a name. "
        "Expected a module name, a module, library.collective(...), library.reset(...) or a function."
    )


def describe(specifier: Specifier) -> str:
    if isinstance(specifier, Named):
        return specifier.name
    if isinstance(specifier, Reset):
        return f"reset({specifier.name})"
    if isinstance(specifier, Collective):
        return f"collective({specifier.template!r})"
    return f"inline({getattr(specifier.factory, '__name__', specifier.factory)!r})"
