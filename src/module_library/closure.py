"""Reset propagation.

Resetting a module has to reset every module built on top of it, otherwise
those would keep holding on to the stale instance. The closure is found by
repeatedly scanning the registry for modules that name something already
marked for reset, until a full scan adds nothing.
"""

import logging
from collections.abc import Iterable

from module_library.aliases import AliasTable
from module_library.domain import Named
from module_library.errors import ResolutionError
from module_library.registry import ModuleRegistry
from module_library.singleton_cache import SingletonCache

__all__ = ["reset_closure"]

logger = logging.getLogger(__name__)


def reset_closure(
    roots: Iterable[str],
    registry: ModuleRegistry,
    aliases: AliasTable,
    cache: SingletonCache,
) -> list[str]:
    """Compute the names to invalidate together with ``roots``.

    Names are compared after mapping them through the alias table, so a
    module known under its canonical name and depended on through an
    external identifier is one identity. Collectives and inline factories
    are never expanded; they cannot depend on anything.

    Args:
        roots: Names passed to ``library.reset``.
        registry: Definitions to scan.
        aliases: External identifier to canonical name mapping.
        cache: Used to accept roots that were only ever loaded externally.

    Returns:
        The roots followed by every transitive dependent, in discovery order.

    Raises:
        ResolutionError: If a root is neither defined, aliased nor cached.
    """
    roots = list(roots)
    found: list[str] = []
    visited: set[str] = set()

    for root in roots:
        if root not in registry and root not in aliases and root not in cache:
            raise ResolutionError(
                f"Trying to figure out what depends on {root!r}, but that doesn't seem like "
                f"a module name we know about. The library knows about modules {registry.names()}"
            )
        canonical = aliases.canonical(root)
        if canonical not in visited:
            visited.add(canonical)
            found.append(root)

    added = True
    while added:
        added = False
        for module in registry:
            if module.name in visited:
                continue
            if any(
                isinstance(dependency, Named) and aliases.canonical(dependency.name) in visited
                for dependency in module.dependencies
            ):
                visited.add(module.name)
                found.append(module.name)
                added = True

    logger.debug("Reset of %s invalidates %s", list(roots), found)
    return found
