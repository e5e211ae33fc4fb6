from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class CodegenConfig:
    """Configuration for C code generation.

    Attributes:
        entry_name: Name of the generated entry function.
        node_prefix: Prefix of the per-node function names.
        tensor_prefix: Prefix of the C identifiers of graph tensors.
        float_precision: Significant digits when printing `float` constants.
                         `double` constants always use 17.
    """

    entry_name: str = "entry"
    node_prefix: str = "node_"
    tensor_prefix: str = "tensor_"
    float_precision: int = 9

    def __post_init__(self) -> None:
        for field_name in ("entry_name", "node_prefix", "tensor_prefix"):
            value = getattr(self, field_name)
            if not value.isidentifier():
                raise ValueError(f"{field_name} must be a C identifier, got {value!r}")
        if self.float_precision < 1:
            raise ValueError(f"float_precision must be >= 1, got {self.float_precision}")
