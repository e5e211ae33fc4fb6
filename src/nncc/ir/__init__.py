from .dtypes import DType, float16, float32, float64, int32, int64
from .tensor import Tensor, is_splat
from .attributes import Attribute, AttributeType, NodeDescriptor
from .node import Node
from .graph import Graph

__all__ = [
	"DType",
	"float16",
	"float32",
	"float64",
	"int32",
	"int64",
	"Tensor",
	"is_splat",
	"Attribute",
	"AttributeType",
	"NodeDescriptor",
	"Node",
	"Graph",
]
