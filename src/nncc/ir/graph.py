from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Sequence

from nncc.errors import DuplicateNameError
from nncc.ops.registry import create_node

from .attributes import Attribute, NodeDescriptor
from .dtypes import DType, float32
from .node import Node
from .tensor import Tensor, as_shape

logger = logging.getLogger(__name__)


@dataclass
class Graph:
	"""A simple, explicit graph container.

	Design choices:
	- Nodes are appended in creation order, which is also the topological
	  order (a node can only consume tensors that already exist).
	- Each node is parsed and resolved as it is added, so its outputs exist
	  before the next node is built.
	- Code emission is a separate pass over the resolved nodes.
	"""

	name: str = "graph"
	nodes: list[Node] = field(default_factory=list)
	tensors: list[Tensor] = field(default_factory=list)
	inputs: list[Tensor] = field(default_factory=list)
	outputs: list[Tensor] = field(default_factory=list)
	attrs: dict[str, object] = field(default_factory=dict)
	_name_counters: dict[str, int] = field(default_factory=dict)

	def _fresh_name(self, prefix: str) -> str:
		n = self._name_counters.get(prefix, 0) + 1
		self._name_counters[prefix] = n
		return f"{prefix}{n}"

	def _check_unique(self, name: str) -> None:
		if any(t.name == name for t in self.tensors):
			raise DuplicateNameError(f"Graph {self.name!r} already has a tensor named {name!r}")

	def input(self, name: str, shape: tuple[int, ...], dtype: DType = float32) -> Tensor:
		self._check_unique(name)
		t = Tensor(name=name, shape=as_shape(shape), dtype=dtype)
		self.tensors.append(t)
		self.inputs.append(t)
		return t

	def constant(self, name: str, values: object, dtype: DType = float32) -> Tensor:
		self._check_unique(name)
		t = Tensor.constant(name, values, dtype)
		self.tensors.append(t)
		return t

	def add_node(
		self,
		op_type: str,
		inputs: Sequence[Tensor],
		attributes: Iterable[Attribute] = (),
		*,
		name: str | None = None,
		output_name: str | None = None,
	) -> Tensor:
		"""Build, parse and resolve one node; return its primary output."""
		node_name = name or self._fresh_name(op_type.lower())
		if any(n.name == node_name for n in self.nodes):
			raise DuplicateNameError(f"Graph {self.name!r} already has a node named {node_name!r}")

		node = create_node(op_type, node_name)
		descriptor = NodeDescriptor(op_type=op_type, name=node_name, attributes=tuple(attributes), inputs=list(inputs))
		node.inputs = list(descriptor.inputs)

		logger.debug("parsing attributes of %s", node.label)
		node.parse_attributes(descriptor)
		logger.debug("resolving %s", node.label)
		node.resolve()

		if output_name is not None:
			node.outputs[0].name = output_name
		for out in node.outputs:
			self._check_unique(out.name)

		# only wire the node in once every phase has succeeded
		for t in node.inputs:
			t.add_user(node)
		self.tensors.extend(node.outputs)

		self.nodes.append(node)
		return node.outputs[0]

	def mark_output(self, tensor: Tensor) -> None:
		if tensor not in self.tensors:
			raise ValueError(f"Tensor {tensor.name!r} does not belong to graph {self.name!r}")
		if tensor.is_const or tensor in self.inputs:
			raise ValueError(f"Tensor {tensor.name!r} is not computed by the graph")
		if tensor not in self.outputs:
			self.outputs.append(tensor)

	def summary(self) -> str:
		lines: list[str] = [f"Graph(name={self.name!r}, nodes={len(self.nodes)}, tensors={len(self.tensors)})"]
		for node in self.nodes:
			ins = ", ".join(f"{t.name}:{t.shape}" for t in node.inputs)
			outs = ", ".join(f"{t.name}:{t.shape}" for t in node.outputs)
			lines.append(f"- {node.name}: {node.op_type}({ins}) -> {outs}")
		return "\n".join(lines)
