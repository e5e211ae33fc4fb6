from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, ClassVar, Sequence, TextIO

from nncc.errors import ArityError, TypeConstraintError, UnknownAttributeError

from .tensor import Tensor

if TYPE_CHECKING:
	from .attributes import NodeDescriptor


INDENT = "\t"
INDEX_TYPE = "int32_t"


@dataclass(slots=True, eq=False)
class Node:
	"""Base class of all operator nodes.

	Every operator kind implements the same three phases, called exactly once
	each and in this order:

	1. `parse_attributes(descriptor)` binds the node's configuration.
	2. `resolve()` checks inputs, folds constants and creates the outputs.
	3. `print(dst)` writes the C statements of the node body.

	Inputs are borrowed from the loader or from producing nodes. Outputs are
	created by `resolve()` and owned by the node. Every tensor the generated
	code touches is registered under the symbolic name that `print()` uses,
	so the driver can declare matching function parameters.
	"""

	op_type: ClassVar[str] = ""

	name: str
	inputs: list[Tensor] = field(default_factory=list)
	outputs: list[Tensor] = field(default_factory=list)
	input_params: list[tuple[Tensor, str]] = field(default_factory=list)
	output_params: list[tuple[Tensor, str]] = field(default_factory=list)
	resolved: bool = False

	@property
	def label(self) -> str:
		return f"{self.op_type} {self.name}"

	def parse_attributes(self, descriptor: NodeDescriptor) -> None:
		for attr in descriptor.attributes:
			raise UnknownAttributeError(f"Unknown attribute {attr.name!r}", node=self.label)

	def resolve(self) -> None:
		raise NotImplementedError

	def print(self, dst: TextIO) -> None:
		raise NotImplementedError

	def register_input(self, tensor: Tensor, name: str) -> None:
		self.input_params.append((tensor, name))

	def register_output(self, tensor: Tensor, name: str) -> None:
		tensor.producer = self
		self.outputs.append(tensor)
		self.output_params.append((tensor, name))

	@property
	def params(self) -> list[tuple[Tensor, str]]:
		"""All registered tensors in parameter order: inputs, then outputs."""
		return self.input_params + self.output_params

	def require_arity(self, count: int) -> None:
		if len(self.inputs) != count:
			raise ArityError(
				f"wrong number of inputs: expected {count}, got {len(self.inputs)}",
				node=self.label,
			)

	def require_plain_float(self, tensor: Tensor, role: str) -> None:
		if not tensor.dtype.is_float:
			raise TypeConstraintError(
				f"input {role!r} ({tensor.name}) must be floating point, got {tensor.dtype}",
				node=self.label,
			)


def emit(dst: TextIO, depth: int = 0, text: str = "") -> None:
	"""Write one line of source at the given nesting depth."""
	if text:
		dst.write(INDENT * depth + text + "\n")
	else:
		dst.write("\n")


def open_loops(dst: TextIO, depth: int, indices: Sequence[str], bounds: Sequence[int]) -> int:
	"""Open one counted loop per (index, bound) pair. Returns the new depth."""
	for idx, bound in zip(indices, bounds):
		emit(dst, depth, f"for( {INDEX_TYPE} {idx}=0; {idx}<{bound}; {idx}++ ) {{")
		depth += 1
	return depth


def close_loops(dst: TextIO, depth: int, count: int) -> int:
	for _ in range(count):
		depth -= 1
		emit(dst, depth, "}")
	return depth


def subscript(indices: Sequence[str]) -> str:
	return "".join(f"[{idx}]" for idx in indices)
