"""Scopes, resolution and the public operations of the library.

A :class:`Library` is a scope: a registry of module definitions and an alias
table, both shared with every scope cloned from it, plus a cache of the
singletons built so far. Asking for a reset never touches an existing scope;
``using`` forks a child whose cache hides the reset modules and everything
depending on them, and runs the consumer against that child.
"""

import functools
import inspect
import json
import logging
import re
import threading
import uuid
from collections.abc import Sequence
from typing import Any, Callable, Iterable, Optional, TypeVar

from module_library.aliases import AliasTable
from module_library.closure import reset_closure
from module_library.collective import collective, fresh_copy
from module_library.domain import (
    Collective,
    Inline,
    LoadedModule,
    LoadedValue,
    Module,
    Named,
    Reset,
    Specifier,
    as_specifier,
    describe,
)
from module_library.errors import DefinitionError, ResolutionError
from module_library.loaders import Loader, import_loader, load_external
from module_library.registry import ModuleRegistry, inferred_name
from module_library.singleton_cache import SingletonCache

__all__ = ["Library"]

logger = logging.getLogger(__name__)

R = TypeVar("R")


class Library:
    """A dependency injection scope.

    Attributes:
        id: Diagnostic tag, ``library@xxxx``.
        root: The scope at the top of this scope's tree.
        parent: The scope this one was cloned from, if any.
        children: Scopes cloned from this one.
        resets: Names reset to produce this scope.
        registry: Module definitions, shared by the whole tree.
        aliases: External identifier aliases, shared by the whole tree.
        singletons: Cache of built instances.
        loader: Consulted for names with no definition.

    Example:
        >>> library = Library()
        >>> library.define("turtle", lambda: "in the sun")
        >>> library.define("rider", ["turtle"], lambda turtle: "rider rides " + turtle)
        >>> library.using(["rider"], lambda rider: rider)
        'rider rides in the sun'
    """

    def __init__(self, loader: Optional[Loader] = None):
        self.id = f"library@{uuid.uuid4().hex[:4]}"
        self.root = self
        self.parent: Optional[Library] = None
        self.children: list[Library] = []
        self.resets: tuple[str, ...] = ()
        self.registry = ModuleRegistry()
        self.aliases = AliasTable()
        self.singletons = SingletonCache()
        self.loader = loader or import_loader()
        self._lock = threading.RLock()

    # Definitions

    def define(
        self,
        name: str,
        dependencies: Any = (),
        factory: Optional[Callable] = None,
    ) -> Module:
        """Register a module.

        The dependency list may be left out: ``define("foo", make_foo)``.

        Returns:
            The :class:`Module`, which can be used as a dependency in place of its name.

        Raises:
            DefinitionError: If the name, dependencies or factory are malformed.
        """
        if factory is None and callable(dependencies):
            dependencies, factory = (), dependencies
        with self._lock:
            return self.registry.define(name, dependencies, factory)

    def provides(self, name: Optional[str] = None, dependencies: Sequence[Any] = ()) -> Callable:
        """Decorator to register a function as a module factory.

        Args:
            name: Module name; defaults to the function name with any ``make_`` prefix removed.
            dependencies: Dependencies passed to the function, in order.

        Example:
            @library.provides(dependencies=["turtle"])
            def make_rider(turtle):
                return "rider rides " + turtle
        """

        def decorator(factory):
            self.define(name or inferred_name(factory), dependencies, factory)
            return factory

        return decorator

    def export(self, name: str, dependencies: Any = (), factory: Optional[Callable] = None) -> Any:
        """Define a module and build it straight away.

        Returns:
            The new instance, which is also cached in this scope.
        """
        module = self.define(name, dependencies, factory)
        with self._lock:
            return self._generate(module, ())

    @staticmethod
    def collective(template: Any) -> Collective:
        return collective(template)

    @staticmethod
    def reset(name: Any) -> Reset:
        """Mark ``name`` for reset. Only meaningful in the dependencies passed to :meth:`using`."""
        if isinstance(name, Module):
            name = name.name
        return Reset(name)

    # Using

    def using(self, dependencies: Sequence[Any], consumer: Callable[..., R]) -> R:
        """Resolve ``dependencies`` and call ``consumer`` with them.

        Any :meth:`reset` among the dependencies makes the resolution happen in
        a new child scope where the reset modules, and every module depending on
        them, are built again. This scope is left untouched.

        Raises:
            ResolutionError: If a dependency cannot be resolved. The consumer is
                not called in that case.
        """
        if isinstance(dependencies, (str, bytes)) or not isinstance(dependencies, Sequence):
            raise ResolutionError(
                f"library.using expects a list of dependencies, but you passed {dependencies!r}"
            )
        if not callable(consumer):
            raise ResolutionError(
                f"library.using needs a function to call with {list(dependencies)!r}, "
                f"but you gave it {consumer!r}"
            )

        specifiers = []
        resets = []
        for position, dependency in enumerate(dependencies):
            if dependency is None:
                raise ResolutionError(
                    f"Dependency #{position} of {list(dependencies)!r} passed to library.using is None"
                )
            specifier = as_specifier(dependency)
            if isinstance(specifier, Reset):
                resets.append(specifier.name)
                specifier = Named(specifier.name)
            specifiers.append(specifier)

        with self._lock:
            library = self
            if resets:
                self._load_unknown(resets)
                library = self.clone_and_reset(
                    reset_closure(resets, self.registry, self.aliases, self.singletons)
                )
            arguments = [library._resolve(specifier, None, ()) for specifier in specifiers]

        return consumer(*arguments)

    def test(self, dependencies: Sequence[Any]) -> Callable:
        """Decorator turning a function of resolved dependencies into a test function.

        The decorated function takes no arguments, so test runners will not try
        to supply the dependencies themselves.

        Example:
            @library.test(["rider"])
            def test_rider_rides(rider):
                assert rider == "rider rides in the sun"

        Raises:
            DefinitionError: If the function does not take one argument per dependency.
        """
        dependencies = list(dependencies)

        def decorator(run_test):
            expected = len(dependencies)
            parameters = inspect.signature(run_test).parameters.values()
            takes_varargs = any(p.kind is p.VAR_POSITIONAL for p in parameters)
            accepted = sum(1 for p in parameters if p.kind in (p.POSITIONAL_ONLY, p.POSITIONAL_OR_KEYWORD))
            if not takes_varargs and accepted != expected:
                raise DefinitionError(
                    f"Your test function {run_test.__name__} should take {expected} arguments, "
                    f"one for each of the {expected} dependencies provided ({dependencies}), "
                    f"but it takes {accepted}"
                )

            @functools.wraps(run_test)
            def run():
                return self.using(dependencies, run_test)

            del run.__wrapped__
            run.__signature__ = inspect.Signature()
            return run

        return decorator

    # Resolution

    def _resolve(self, specifier: Specifier, for_name: Optional[str], resolving: tuple[str, ...]) -> Any:
        if isinstance(specifier, Collective):
            return fresh_copy(specifier)
        if isinstance(specifier, Inline):
            return specifier.factory()
        if isinstance(specifier, Named):
            return self._get_singleton(specifier.name, for_name, resolving)
        raise ResolutionError(
            f"{describe(specifier)} can only be passed to library.using, not resolved on its own"
        )

    def _get_singleton(self, name: str, for_name: Optional[str], resolving: tuple[str, ...]) -> Any:
        entry = self.singletons.entry(name)
        if entry is not None:
            return entry.instance

        module = self.registry.get(name)
        if module is not None:
            return self._generate(module, resolving)

        alias = self.aliases.get(name)
        if alias is not None:
            return self._get_singleton(alias, for_name, resolving)

        return self._load(name, for_name, resolving)

    def _load_unknown(self, names: list[str]):
        """Load reset targets nothing has asked for yet, so their dependents can be found."""
        for name in names:
            if name not in self.registry and name not in self.aliases and name not in self.singletons:
                self._load(name, None, ())

    def _generate(self, module: Module, resolving: tuple[str, ...]) -> Any:
        if module.name in resolving:
            chain = " -> ".join(resolving[resolving.index(module.name):] + (module.name,))
            raise ResolutionError(f"Circular dependency: {chain}")

        arguments = [
            self._resolve(dependency, module.name, resolving + (module.name,))
            for dependency in module.dependencies
        ]
        instance = module.factory(*arguments)
        if instance is None:
            raise ResolutionError(f"The factory for {module.name} didn't return anything.")

        entry = self.singletons.store(module.name, instance)
        logger.debug("Built %s@%s in %s", module.name, entry.short_id, self.id)
        return instance

    def _load(self, identifier: str, for_name: Optional[str], resolving: tuple[str, ...]) -> Any:
        result = load_external(self.loader, identifier, self.registry.names(), for_name)

        if result is None:
            raise ResolutionError(
                f"You don't seem to have ever mentioned a {identifier} module to {self.id}. "
                f"The library knows about modules {self.registry.names()}"
            )

        if isinstance(result, LoadedModule):
            module = result.module
            if module.name not in self.registry:
                self.registry.add(module)
            if module.name != identifier:
                if not re.search(r"[./]", identifier):
                    logger.warning(
                        "The external module %s returned a library module called %s",
                        identifier,
                        module.name,
                    )
                self.aliases.add(identifier, module.name)
                return self._get_singleton(module.name, for_name, resolving)
            return self._generate(self.registry.get(module.name), resolving)

        if isinstance(result, LoadedValue):
            self.singletons.store(identifier, result.value)
            return result.value

        raise ResolutionError(
            f"The loader returned {result!r} for {identifier}; "
            "expected LoadedValue, LoadedModule or None"
        )

    # Scopes

    def clone(self, loader: Optional[Loader] = None) -> "Library":
        """Create a child scope sharing this scope's registry, aliases and cache."""
        child = Library(loader or self.loader)
        child.parent = self
        child.root = self.root
        child.registry = self.registry
        child.aliases = self.aliases
        child.singletons = self.singletons
        child._lock = self._lock
        self.children.append(child)
        return child

    def clone_and_reset(self, names: Iterable[str]) -> "Library":
        """Create a child scope whose cache no longer holds ``names`` or their alias targets.

        Returns this scope unchanged if ``names`` is empty. Dependents are not
        added here; :meth:`using` computes them before calling this.
        """
        names = list(names)
        if not names:
            return self

        cleared = set(names)
        cleared.update(self.aliases.get(name) for name in names if name in self.aliases)

        with self._lock:
            child = self.clone()
            child.resets = tuple(names)
            child.singletons = self.singletons.overlay(cleared)
        logger.debug("Forked %s from %s resetting %s", child.id, self.id, names)
        return child

    # Debugging

    def dump(self) -> dict[str, Any]:
        """Describe this scope and the scopes cloned from it.

        Returns:
            ``{"id", "root", "modules", "singletons", "children"}``. Singletons
            are labelled ``name@id``, with `` [reset]`` for the names reset to
            reach the scope. Child scopes only list singletons that differ from
            their parent's, and ``children`` is left out when there are none.
        """
        report = self._dump(True)
        logger.debug("library %s", json.dumps(report, indent=2))
        return report

    def _dump(self, is_root: bool) -> dict[str, Any]:
        labels = []
        for name in self.singletons.names():
            entry = self.singletons.entry(name)
            if self.parent is not None:
                parent_entry = self.parent.singletons.entry(name)
                if parent_entry is not None and parent_entry.instance is entry.instance:
                    continue
            label = f"{name}@{entry.short_id}"
            if name in self.resets:
                label += " [reset]"
            labels.append(label)

        report: dict[str, Any] = {"id": self.id}
        if is_root:
            report["root"] = True
            report["modules"] = self.registry.names()
        report["singletons"] = labels

        children = [child._dump(False) for child in self.children]
        if children:
            report["children"] = children
        return report

    def __repr__(self):
        return f"<Library {self.id}>"
