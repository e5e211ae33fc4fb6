from __future__ import annotations

from dataclasses import dataclass
from typing import TextIO

from nncc.ir.node import Node, close_loops, emit, open_loops, subscript
from nncc.ir.tensor import Tensor
from nncc.ops.registry import register_operator


@register_operator("Relu")
@dataclass(slots=True, eq=False)
class Relu(Node):
    """Elementwise ReLU: output spec equals input spec. Takes no attributes."""

    def resolve(self) -> None:
        self.require_arity(1)
        x = self.inputs[0]
        self.register_input(x, "X")
        self.require_plain_float(x, "X")

        out = Tensor(name=f"{self.name}_output", shape=x.shape, dtype=x.dtype)
        self.register_output(out, "Y")
        self.resolved = True

    def print(self, dst: TextIO) -> None:
        x = self.inputs[0]
        indices = [f"i{i}" for i in range(x.rank)]
        idxs = subscript(indices)

        emit(dst, 1, "/* Relu */")
        depth = open_loops(dst, 1, indices, x.shape)
        emit(dst, depth, f"Y{idxs} = X{idxs} > 0 ? X{idxs} : 0;")
        close_loops(dst, depth, len(indices))
