from .codegen import CodegenPass, c_literal
from .resolve import ResolvePass

__all__ = [
    "CodegenPass",
    "ResolvePass",
    "c_literal",
]
