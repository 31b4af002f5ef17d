__all__ = ["DependencyError", "DefinitionError", "ResolutionError"]


class DependencyError(Exception):
    """Raised when a module's dependency cannot be resolved or is misdeclared."""

    pass


class DefinitionError(DependencyError):
    """Raised by ``define`` when the name, dependency list or factory is malformed."""

    pass


class ResolutionError(DependencyError):
    """Raised when a dependency specifier cannot be turned into a value."""

    pass
