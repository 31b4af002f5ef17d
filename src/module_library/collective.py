"""Fresh copies of shared state templates."""

import copy
from typing import Any

from module_library.domain import Collective

__all__ = ["collective", "fresh_copy"]


def collective(template: Any) -> Collective:
    """Wrap ``template`` so every factory run that declares it gets its own deep copy.

    All the values built inside one factory run share that copy; when the
    factory runs again, after a reset, it starts over from the pristine template.

    Example:
        >>> library.define("bird", [collective({"nests": []})], make_bird)
    """
    return Collective(template)


def fresh_copy(specifier: Collective) -> Any:
    return copy.deepcopy(specifier.template)
