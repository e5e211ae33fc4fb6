"""Operator registry: ONNX operator name -> Node implementation class."""

from __future__ import annotations

from typing import Callable, TypeVar

from nncc.errors import UnknownOperatorError
from nncc.ir.node import Node

N = TypeVar("N", bound=type[Node])

OPERATORS: dict[str, type[Node]] = {}


def register_operator(op_type: str) -> Callable[[N], N]:
    """Class decorator adding a Node subclass to `OPERATORS` under `op_type`."""

    def wrap(cls: N) -> N:
        if op_type in OPERATORS:
            raise ValueError(f"Operator {op_type!r} registered twice")
        cls.op_type = op_type
        OPERATORS[op_type] = cls
        return cls

    return wrap


def create_node(op_type: str, name: str) -> Node:
    """Instantiate the implementation of `op_type`.

    Raises:
        UnknownOperatorError: If no implementation is registered.
    """
    cls = OPERATORS.get(op_type)
    if cls is None:
        raise UnknownOperatorError(
            f"Unimplemented operator {op_type!r}. Available: {sorted(OPERATORS)}",
            node=name,
        )
    return cls(name=name)
