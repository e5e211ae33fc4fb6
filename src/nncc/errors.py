"""Fatal compile errors.

Every failure in the compiler is terminal for the whole compilation: nothing
here is meant to be caught and retried. The `kind` tag lets a driver report
the failure class without string matching on the message.
"""

from __future__ import annotations


class CompileError(ValueError):
    """Base class for all compile aborts."""

    kind = "compile"

    def __init__(self, message: str, *, node: str | None = None) -> None:
        self.node = node
        if node is not None:
            message = f"{node}: {message}"
        super().__init__(message)


class MalformedAttributeError(CompileError):
    """Attribute has the wrong declared type or carries no value."""

    kind = "malformed-attribute"


class UnknownAttributeError(CompileError):
    kind = "unknown-attribute"


class ArityError(CompileError):
    kind = "arity"


class TypeConstraintError(CompileError):
    kind = "type-constraint"


class ShapeError(CompileError):
    kind = "shape"


class UnimplementedError(CompileError):
    """Valid input that the compiler does not support (yet)."""

    kind = "unimplemented"


class UnknownOperatorError(CompileError):
    kind = "unknown-operator"


class DuplicateNameError(CompileError):
    """A node or tensor name is already used in the graph."""

    kind = "duplicate-name"
