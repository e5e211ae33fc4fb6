"""nncc: neural network graph -> standalone C compiler.

Each operator node goes through three phases: attribute binding, resolution
(shape/type inference and constant folding) and code emission. Passes over
a `Graph` drive those phases and assemble one C translation unit.
"""

from .ir import Attribute, AttributeType, DType, Graph, Node, NodeDescriptor, Tensor, float32, is_splat
from .errors import CompileError
from .config import CodegenConfig
from .ops import OPERATORS, create_node
from .passes import CodegenPass, ResolvePass

__all__ = [
    "Attribute",
    "AttributeType",
    "DType",
    "Graph",
    "Node",
    "NodeDescriptor",
    "Tensor",
    "float32",
    "is_splat",
    "CompileError",
    "CodegenConfig",
    "OPERATORS",
    "create_node",
    "CodegenPass",
    "ResolvePass",
    "compile_graph",
]


def compile_graph(graph: Graph, config: CodegenConfig | None = None) -> str:
    """Resolve any pending nodes of `graph` and return the generated C source."""
    ResolvePass().run(graph)
    return CodegenPass(config or CodegenConfig()).run(graph)
