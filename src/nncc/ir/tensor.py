from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Iterable

import numpy as np

from nncc.errors import UnimplementedError

from .dtypes import DType, float32

if TYPE_CHECKING:
	from .node import Node


Shape = tuple[int, ...]


@dataclass(slots=True, eq=False)
class Tensor:
	"""A typed, shaped value in the graph.

	A Tensor is either runtime-only (`data is None`) or constant-backed, in
	which case it owns a numpy buffer of exactly `shape` and `dtype`. Like an
	SSA value it has at most one producer node and a list of consuming nodes.
	"""

	name: str
	shape: Shape
	dtype: DType = float32
	data: np.ndarray | None = None
	producer: Node | None = None
	users: list[Node] = field(default_factory=list)

	def __post_init__(self) -> None:
		self.shape = as_shape(self.shape)
		if not self.shape:
			raise ValueError(f"Tensor {self.name!r} must have rank >= 1")
		if any(d <= 0 for d in self.shape):
			raise ValueError(f"Tensor {self.name!r} has non-positive dimension in {self.shape}")
		if self.data is not None:
			if self.data.shape != self.shape:
				raise ValueError(
					f"Tensor {self.name!r}: buffer shape {self.data.shape} != {self.shape}"
				)
			if self.data.dtype != self.dtype.numpy:
				raise ValueError(
					f"Tensor {self.name!r}: buffer dtype {self.data.dtype} != {self.dtype}"
				)

	@classmethod
	def constant(cls, name: str, values: object, dtype: DType = float32) -> Tensor:
		"""Build a constant tensor owning a copy of `values`."""
		data = np.array(values, dtype=dtype.numpy)
		if data.ndim == 0:
			data = data.reshape(1)
		return cls(name=name, shape=data.shape, dtype=dtype, data=data)

	@property
	def is_const(self) -> bool:
		return self.data is not None

	def add_user(self, node: Node) -> None:
		self.users.append(node)

	@property
	def rank(self) -> int:
		return len(self.shape)

	@property
	def numel(self) -> int:
		n = 1
		for dim in self.shape:
			n *= dim
		return n

	def _buffer(self) -> np.ndarray:
		if self.data is None:
			raise ValueError(f"Tensor {self.name!r} is not constant")
		return self.data

	def __getitem__(self, index):
		return self._buffer()[index]

	def __setitem__(self, index, value) -> None:
		self._buffer()[index] = value

	def __repr__(self) -> str:  # pragma: no cover
		const = ", const" if self.is_const else ""
		return f"Tensor(name={self.name!r}, shape={self.shape}, dtype={self.dtype}{const})"


def as_shape(dims: Iterable[int]) -> Shape:
	return tuple(int(d) for d in dims)


def is_splat(tensor: Tensor, value: float) -> bool:
	"""Return True iff `tensor` is constant and every element equals `value`.

	Non-constant tensors are never splats; their contents are not looked at.
	"""
	if not tensor.dtype.is_float:
		raise UnimplementedError(f"splat test on non-floating tensor {tensor.name!r} ({tensor.dtype})")
	if tensor.data is None:
		return False
	return bool(np.all(tensor.data == tensor.dtype.numpy.type(value)))
