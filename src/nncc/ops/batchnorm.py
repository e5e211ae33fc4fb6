"""BatchNormalization (inference form).

Computes, per channel `c`:

    tmp_X  = (X - mean[c]) / sqrt(var[c] + epsilon)
    output = tmp_X * scale[c] + bias[c]

as described in https://arxiv.org/abs/1502.03167. Running statistics are
never updated; the optional training outputs are not produced.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TextIO

import numpy as np

from nncc.errors import ShapeError, UnimplementedError, UnknownAttributeError
from nncc.ir.attributes import NodeDescriptor, parse_float, parse_int
from nncc.ir.node import Node, close_loops, emit, open_loops, subscript
from nncc.ir.tensor import Tensor, is_splat
from nncc.ops.registry import register_operator

logger = logging.getLogger(__name__)

INPUT_ROLES = ("X", "scale", "bias", "mean", "var")


@dataclass(frozen=True, slots=True)
class BatchNormalizationAttributes:
    """Bound attributes of one BatchNormalization node.

    `momentum` only matters for training. It is kept so that graphs exported
    with training metadata still parse.
    """

    epsilon: float = 1e-5
    momentum: float = 0.9


@register_operator("BatchNormalization")
@dataclass(slots=True, eq=False)
class BatchNormalization(Node):
    attrs: BatchNormalizationAttributes = field(default_factory=BatchNormalizationAttributes)

    X: Tensor | None = None
    scale: Tensor | None = None
    bias: Tensor | None = None
    mean: Tensor | None = None
    var: Tensor | None = None

    # var already holds sqrt(var + epsilon)
    sqrt_var_offline: bool = False

    def parse_attributes(self, descriptor: NodeDescriptor) -> None:
        values: dict[str, float] = {}
        for attr in descriptor.attributes:
            if attr.name == "epsilon":
                values["epsilon"] = parse_float(attr, node=self.label)
            elif attr.name == "momentum":
                values["momentum"] = parse_float(attr, node=self.label)
            elif attr.name == "spatial":
                # Removed in opset 9, older exporters still write it.
                if parse_int(attr, node=self.label) != 1:
                    raise UnimplementedError(
                        "non-default value for 'spatial' attribute not implemented",
                        node=self.label,
                    )
            else:
                raise UnknownAttributeError(f"Unknown attribute {attr.name!r}", node=self.label)
        self.attrs = BatchNormalizationAttributes(**values)

    def resolve(self) -> None:
        self.require_arity(5)

        self.X, self.scale, self.bias, self.mean, self.var = self.inputs
        for tensor, role in zip(self.inputs, INPUT_ROLES):
            self.register_input(tensor, role)

        for tensor, role in zip(self.inputs, INPUT_ROLES):
            self.require_plain_float(tensor, role)
        self._check_shapes()

        # scale and bias are mandatory inputs, but exporters often fill them
        # with ones and zeros.
        if is_splat(self.scale, 1.0):
            logger.debug("%s: scale is all ones, dropping multiplication", self.label)
            self.scale = None
        if is_splat(self.bias, 0.0):
            logger.debug("%s: bias is all zeros, dropping addition", self.label)
            self.bias = None
        if self.var.is_const:
            self._fold_sqrt_var()
            self.sqrt_var_offline = True

        out = Tensor(name=f"{self.name}_output", shape=self.X.shape, dtype=self.X.dtype)
        self.register_output(out, "output")
        self.resolved = True

    def _check_shapes(self) -> None:
        x = self.X
        if x.rank < 2:
            raise ShapeError(f"input 'X' must have rank >= 2, got shape {x.shape}", node=self.label)
        channels = x.shape[1]
        for tensor, role in ((self.scale, "scale"), (self.bias, "bias"), (self.mean, "mean"), (self.var, "var")):
            if tensor.numel != channels:
                raise ShapeError(
                    f"input {role!r} must hold {channels} elements (one per channel), got shape {tensor.shape}",
                    node=self.label,
                )

    def _fold_sqrt_var(self) -> None:
        """Replace `var` by a constant holding the whole denominator.

        The fold writes into a node-owned copy, so other consumers of the
        shared variance tensor keep seeing the unfolded values.
        """
        var = self.var
        eps = var.dtype.numpy.type(self.attrs.epsilon)
        folded = Tensor.constant(f"{self.name}_{var.name}_sqrt", np.sqrt(var.data + eps), var.dtype)
        self.input_params = [
            (folded, role) if role == "var" else (tensor, role) for tensor, role in self.input_params
        ]
        self.var = folded
        logger.debug("%s: folded sqrt(var + epsilon) into %s", self.label, folded.name)

    def print(self, dst: TextIO) -> None:
        x = self.X
        ctype = x.dtype.c_name

        emit(dst, 1, "/* BatchNormalization")
        emit(dst, 1, f" * epsilon = {self.attrs.epsilon!r}")
        emit(dst, 1, f" * momentum = {self.attrs.momentum!r}")
        emit(dst, 1, " */")
        emit(dst)

        if not self.sqrt_var_offline:
            emit(dst, 1, f"{ctype} epsilon = {self.attrs.epsilon!r};")

        indices = ["b", "c"] + [f"i{i}" for i in range(2, x.rank)]
        idxs = subscript(indices)
        depth = open_loops(dst, 1, indices, x.shape)

        if self.sqrt_var_offline:
            denominator = "var[c]"
        else:
            denominator = "sqrt( var[c] + epsilon )"
        emit(dst, depth, f"{ctype} tmp_X = ( X{idxs} - mean[c] ) / {denominator};")

        value = "tmp_X"
        if self.scale is not None:
            value += " * scale[c]"
        if self.bias is not None:
            value += " + bias[c]"
        emit(dst, depth, f"output{idxs} = {value};")

        close_loops(dst, depth, len(indices))
