"""Module library: named singletons with dependency injection.

Modules are registered under a name with the names of the modules they need,
and built lazily, at most once per scope, the first time something asks for
them. Collectives give a module fresh shared state each time it is built, and
resets build a module (and everything depending on it) again in a new scope,
leaving the original scope untouched. Names with no definition are handed to
an external loader, by default :func:`importlib.import_module`.

Basic Usage:
    >>> from module_library import Library
    >>>
    >>> library = Library()
    >>> library.define("turtle", lambda: "in the sun")
    >>> library.define("rider", ["turtle"], lambda turtle: "rider rides " + turtle)
    >>> library.using(["rider"], print)
    rider rides in the sun

Python modules share one process-wide library through :func:`library_for`::

    library = library_for(__name__)

The package consists of:
    - library: scopes, resolution and the public operations
    - registry: module definitions
    - singleton_cache: per-scope memoised instances
    - collective: fresh copies of shared state templates
    - aliases: external identifier to module name mapping
    - closure: reset propagation
    - loaders: external loaders
    - domain: dependency specifiers and other models
    - errors: library exceptions
"""

import threading
from typing import Optional

from module_library.domain import (
    Collective,
    Inline,
    LoadedModule,
    LoadedValue,
    Module,
    Named,
    Reset,
)
from module_library.errors import DefinitionError, DependencyError, ResolutionError
from module_library.library import Library
from module_library.loaders import import_loader, mapping_loader

__all__ = [
    "Library",
    "Module",
    "Named",
    "Collective",
    "Reset",
    "Inline",
    "LoadedValue",
    "LoadedModule",
    "DependencyError",
    "DefinitionError",
    "ResolutionError",
    "import_loader",
    "mapping_loader",
    "get_default_library",
    "library_for",
]

_default_library: Optional[Library] = None
_namespaces: dict[str, Library] = {}
_lock = threading.Lock()


def get_default_library() -> Library:
    """Return the process-wide root library, creating it on first use."""
    global _default_library
    with _lock:
        if _default_library is None:
            _default_library = Library()
        return _default_library


def library_for(namespace: str, package: Optional[str] = None) -> Library:
    """Return the library scope for a Python module.

    The first call for ``namespace`` clones the default library, with a loader
    resolving relative identifiers against ``package`` (by default the package
    containing ``namespace``). Later calls return the same scope.

    Example:
        >>> library = library_for(__name__)
        >>> library.using([".greeting"], ...)  # a sibling module
    """
    root = get_default_library()
    with _lock:
        library = _namespaces.get(namespace)
        if library is None:
            if package is None:
                package = namespace.rpartition(".")[0] or None
            library = root.clone(import_loader(package))
            _namespaces[namespace] = library
        return library
