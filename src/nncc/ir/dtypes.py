from __future__ import annotations

from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True, slots=True)
class DType:
	"""Scalar element type of a tensor.

	`c_name` is the spelling used in generated source; `kind` is one of
	"float", "int" or "bool".
	"""

	name: str
	itemsize: int
	c_name: str
	kind: str

	@property
	def is_float(self) -> bool:
		"""True for the plain floating-point family (half, single, double)."""
		return self.kind == "float"

	@property
	def numpy(self) -> np.dtype:
		return np.dtype(self.name)

	def __str__(self) -> str:  # pragma: no cover
		return self.name


float16 = DType("float16", 2, "_Float16", "float")
float32 = DType("float32", 4, "float", "float")
float64 = DType("float64", 8, "double", "float")
int8 = DType("int8", 1, "int8_t", "int")
uint8 = DType("uint8", 1, "uint8_t", "int")
int32 = DType("int32", 4, "int32_t", "int")
int64 = DType("int64", 8, "int64_t", "int")
bool_ = DType("bool", 1, "bool", "bool")

ALL_DTYPES = (float16, float32, float64, int8, uint8, int32, int64, bool_)

_BY_NUMPY = {d.numpy: d for d in ALL_DTYPES}


def dtype_from_numpy(dtype: np.dtype | type) -> DType:
	try:
		return _BY_NUMPY[np.dtype(dtype)]
	except KeyError:
		raise ValueError(f"Unsupported numpy dtype: {np.dtype(dtype)}") from None
