"""External loaders and the bridge that consults them.

When a name has no definition, the library hands it to a loader. A loader is
any callable taking an identifier and returning a :class:`LoadedValue`, a
:class:`LoadedModule` or ``None``, and raising :class:`ModuleNotFoundError`
(or another :class:`ImportError`) when it has never heard of the identifier.
"""

import importlib
import inspect
import logging
import re
from typing import Any, Callable, Optional

from module_library.domain import LoadedModule, LoadedValue, LoadResult, Module
from module_library.errors import ResolutionError

__all__ = ["Loader", "import_loader", "mapping_loader", "load_external"]

logger = logging.getLogger(__name__)

Loader = Callable[[str], Optional[LoadResult]]

MODULE_ATTRIBUTE = "__library_module__"


def import_loader(package: Optional[str] = None) -> Loader:
    """Load identifiers as Python modules with :func:`importlib.import_module`.

    A Python module publishes a library module by assigning it to
    ``__library_module__``::

        __library_module__ = library.define("greeting", [], make_greeting)

    Any other Python module is handed back as a plain value.

    Args:
        package: Anchor for relative identifiers such as ``".greeting"``.
    """

    def load(identifier: str) -> LoadResult:
        if identifier.startswith(".") and package is None:
            raise ResolutionError(
                f"Cannot load the relative identifier {identifier!r} without a package to "
                "resolve it against. Use library_for(__name__) or import_loader(package)."
            )
        python_module = importlib.import_module(identifier, package)
        published = getattr(python_module, MODULE_ATTRIBUTE, None)
        if isinstance(published, Module):
            return LoadedModule(published)
        if inspect.ismodule(python_module) and not _public_names(python_module):
            raise ResolutionError(
                f"The {identifier} module has nothing in it. "
                f"Did you forget to assign {MODULE_ATTRIBUTE} = library.define(...)?"
            )
        return LoadedValue(python_module)

    return load


def mapping_loader(mapping: dict[str, Any]) -> Loader:
    """Serve identifiers out of a dictionary; handy for tests and plugin tables."""

    def load(identifier: str) -> LoadResult:
        try:
            value = mapping[identifier]
        except KeyError:
            raise ModuleNotFoundError(f"Cannot find module '{identifier}'", name=identifier) from None
        if isinstance(value, Module):
            return LoadedModule(value)
        return LoadedValue(value)

    return load


def load_external(
    loader: Loader,
    identifier: str,
    known_modules: list[str],
    for_name: Optional[str] = None,
) -> Optional[LoadResult]:
    """Invoke ``loader``, adding hints to not-found errors.

    The error is raised again as the same class, chained from the original.
    Errors whose class takes other constructor arguments get the hints added
    to their own message instead.

    Raises:
        ImportError: If the loader cannot find ``identifier``.
    """
    logger.debug("Loading %s externally", identifier)
    try:
        return loader(identifier)
    except ImportError as e:
        message = str(e)
        if for_name:
            message += f". We were trying to load it for {for_name}"
        not_found = isinstance(e, ModuleNotFoundError)
        if not_found and re.search(r"[A-Z]", identifier):
            message += f" (is '{identifier}' capitalized right? usually modules are lowercase.)"
        elif not_found and not re.search(r"[./]", identifier):
            message += " (is it installed? is it on the Python path?)"
        message += f". The library knows about modules {known_modules}"
        enriched = _with_message(e, message)
        if enriched is e:
            raise
        raise enriched from e


def _public_names(python_module) -> list[str]:
    return [name for name in vars(python_module) if not name.startswith("_")]


def _with_message(error: ImportError, message: str) -> ImportError:
    try:
        return type(error)(message, name=error.name, path=error.path)
    except TypeError:
        error.msg = message
        return error
