from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Sequence

from nncc.errors import MalformedAttributeError

if TYPE_CHECKING:
	from .tensor import Tensor


class AttributeType(enum.Enum):
	"""Declared type of a node attribute, as recorded by the graph exporter."""

	FLOAT = "float"
	INT = "int"
	STRING = "string"
	FLOATS = "floats"
	INTS = "ints"


@dataclass(frozen=True, slots=True)
class Attribute:
	"""One (name, declared type, value) triple. `value` is None when missing."""

	name: str
	type: AttributeType
	value: object = None

	@classmethod
	def floating(cls, name: str, value: float) -> Attribute:
		return cls(name, AttributeType.FLOAT, value)

	@classmethod
	def integer(cls, name: str, value: int) -> Attribute:
		return cls(name, AttributeType.INT, value)


@dataclass(slots=True)
class NodeDescriptor:
	"""What the loader knows about a node before it is compiled."""

	op_type: str
	name: str
	attributes: Sequence[Attribute] = ()
	inputs: list[Tensor] = field(default_factory=list)


def _check(attr: Attribute, expected: AttributeType, node: str | None) -> None:
	if attr.type is not expected:
		raise MalformedAttributeError(
			f"Bad attribute {attr.name!r}: expected {expected.value}, got {attr.type.value}",
			node=node,
		)
	if attr.value is None:
		raise MalformedAttributeError(f"Bad attribute {attr.name!r}: no value", node=node)


def parse_float(attr: Attribute, *, node: str | None = None) -> float:
	_check(attr, AttributeType.FLOAT, node)
	if isinstance(attr.value, bool) or not isinstance(attr.value, (int, float)):
		raise MalformedAttributeError(f"Bad attribute {attr.name!r}: {attr.value!r} is not a float", node=node)
	return float(attr.value)


def parse_int(attr: Attribute, *, node: str | None = None) -> int:
	_check(attr, AttributeType.INT, node)
	if isinstance(attr.value, bool) or not isinstance(attr.value, int):
		raise MalformedAttributeError(f"Bad attribute {attr.name!r}: {attr.value!r} is not an int", node=node)
	return attr.value
