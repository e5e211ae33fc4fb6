"""C code generation: turns a resolved graph into one translation unit.

Layout of the generated file:
1. Header comment and includes.
2. One `static const` array per constant tensor used by any node.
3. One `static` buffer per intermediate tensor (node outputs that are not
   graph outputs).
4. One `static void node_<name>(...)` per node. Its parameter names are the
   symbolic names the node registered, so the body printed by `Node.print`
   compiles against them.
5. The entry function: graph inputs (const), then graph outputs.
"""

from __future__ import annotations

import io
import logging
import math
import re
from dataclasses import dataclass, field

from nncc.config import CodegenConfig
from nncc.ir import Graph, Node, Tensor
from nncc.ir.dtypes import DType, float64
from nncc.ir.node import emit

logger = logging.getLogger(__name__)


def c_literal(value: object, dtype: DType, precision: int = 9) -> str:
    """Format one element as a C literal of `dtype`."""
    if dtype.kind == "bool":
        return "true" if value else "false"
    if dtype.kind == "int":
        return str(int(value))
    v = float(value)
    if math.isnan(v):
        return "NAN"
    if math.isinf(v):
        return "INFINITY" if v > 0 else "-INFINITY"
    text = format(v, f".{17 if dtype == float64 else precision}g")
    if "." not in text and "e" not in text:
        text += ".0"
    return text + ("f" if dtype.c_name == "float" else "")


def declaration(tensor: Tensor, name: str, *, const: bool = False) -> str:
    dims = "".join(f"[{d}]" for d in tensor.shape)
    prefix = "const " if const else ""
    return f"{prefix}{tensor.dtype.c_name} {name}{dims}"


@dataclass
class CodegenPass:
    """Emits C source for a resolved graph."""

    config: CodegenConfig = field(default_factory=CodegenConfig)

    def run(self, graph: Graph) -> str:
        unresolved = [n.name for n in graph.nodes if not n.resolved]
        if unresolved:
            raise ValueError(f"Nodes {unresolved} are not resolved. Run ResolvePass first.")

        outputs = graph.outputs or [t for n in graph.nodes for t in n.outputs if not t.users]
        if not outputs:
            raise ValueError(f"Graph {graph.name!r} has no outputs")

        symbols = self._symbols(graph)
        constants = self._constants(graph)
        intermediates = [t for n in graph.nodes for t in n.outputs if t not in outputs]

        buf = io.StringIO()
        emit(buf, 0, f"/* Generated by nncc from graph {graph.name!r}. */")
        emit(buf, 0, "#include <math.h>")
        emit(buf, 0, "#include <stdbool.h>")
        emit(buf, 0, "#include <stdint.h>")
        emit(buf)

        for t in constants:
            values = ", ".join(
                c_literal(v, t.dtype, self.config.float_precision) for v in t.data.reshape(-1).tolist()
            )
            emit(buf, 0, f"static {declaration(t, self._symbol(symbols, t), const=True)} = {{{values}}};")
        if constants:
            emit(buf)

        for t in intermediates:
            emit(buf, 0, f"static {declaration(t, self._symbol(symbols, t))};")
        if intermediates:
            emit(buf)

        for node in graph.nodes:
            self._emit_node(buf, node)

        params = [declaration(t, self._symbol(symbols, t), const=True) for t in graph.inputs]
        params += [declaration(t, self._symbol(symbols, t)) for t in outputs]
        emit(buf, 0, f"void {self.config.entry_name}( {', '.join(params)} )")
        emit(buf, 0, "{")
        for node in graph.nodes:
            args = ", ".join(self._symbol(symbols, t) for t, _ in node.params)
            emit(buf, 1, f"{self._function_name(node)}( {args} );")
        emit(buf, 0, "}")

        source = buf.getvalue()
        graph.attrs["source"] = source
        logger.info(
            "generated %d lines for graph %r (%d nodes, %d constants)",
            source.count("\n"), graph.name, len(graph.nodes), len(constants),
        )
        return source

    def _function_name(self, node: Node) -> str:
        return self.config.node_prefix + _sanitize(node.name)

    def _emit_node(self, buf: io.StringIO, node: Node) -> None:
        params = [declaration(t, name, const=True) for t, name in node.input_params]
        params += [declaration(t, name) for t, name in node.output_params]
        emit(buf, 0, "/*")
        emit(buf, 0, f" * Operand:        {node.op_type}")
        emit(buf, 0, f" * Name in source: {node.name}")
        emit(buf, 0, " */")
        emit(buf, 0, f"static void {self._function_name(node)}( {', '.join(params)} )")
        emit(buf, 0, "{")
        node.print(buf)
        emit(buf, 0, "}")
        emit(buf)

    def _symbols(self, graph: Graph) -> dict[int, str]:
        tensors: list[Tensor] = list(graph.inputs)
        for node in graph.nodes:
            tensors.extend(t for t, _ in node.params)

        symbols: dict[int, str] = {}
        taken: set[str] = set()
        for t in tensors:
            if id(t) in symbols:
                continue
            base = sym = self.config.tensor_prefix + _sanitize(t.name)
            n = 1
            # distinct tensors may sanitize to the same identifier
            while sym in taken:
                n += 1
                sym = f"{base}_{n}"
            taken.add(sym)
            symbols[id(t)] = sym
        return symbols

    @staticmethod
    def _symbol(symbols: dict[int, str], tensor: Tensor) -> str:
        try:
            return symbols[id(tensor)]
        except KeyError:
            raise ValueError(f"Tensor {tensor.name!r} is not used by any node") from None

    @staticmethod
    def _constants(graph: Graph) -> list[Tensor]:
        seen: set[int] = set()
        constants: list[Tensor] = []
        for node in graph.nodes:
            for t, _ in node.params:
                if t.is_const and id(t) not in seen:
                    seen.add(id(t))
                    constants.append(t)
        return constants


def _sanitize(name: str) -> str:
    return re.sub(r"\W", "_", name, flags=re.ASCII)
