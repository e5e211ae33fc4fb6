from .registry import OPERATORS, create_node, register_operator
from .batchnorm import BatchNormalization, BatchNormalizationAttributes
from .relu import Relu

__all__ = [
    "OPERATORS",
    "create_node",
    "register_operator",
    "BatchNormalization",
    "BatchNormalizationAttributes",
    "Relu",
]
