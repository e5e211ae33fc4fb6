import io
import logging

import numpy as np
import pytest

from nncc.errors import (
    ArityError,
    CompileError,
    MalformedAttributeError,
    ShapeError,
    TypeConstraintError,
    UnimplementedError,
    UnknownAttributeError,
)
from nncc.ir import Attribute, AttributeType, NodeDescriptor, Tensor
from nncc.ir.dtypes import float64, int32
from nncc.ops import BatchNormalization, BatchNormalizationAttributes


def make_node(inputs, attributes=(), name="bn") -> BatchNormalization:
    node = BatchNormalization(name=name, inputs=list(inputs))
    node.parse_attributes(NodeDescriptor("BatchNormalization", name, attributes, list(inputs)))
    return node


def resolved(inputs, attributes=()) -> BatchNormalization:
    node = make_node(inputs, attributes)
    node.resolve()
    return node


def emitted(node: BatchNormalization) -> str:
    dst = io.StringIO()
    node.print(dst)
    return dst.getvalue()


def runtime_inputs(shape=(1, 2, 3, 3)):
    channels = shape[1]
    return [
        Tensor(name="x", shape=shape),
        Tensor(name="scale", shape=(channels,)),
        Tensor(name="bias", shape=(channels,)),
        Tensor(name="mean", shape=(channels,)),
        Tensor(name="var", shape=(channels,)),
    ]


# =============================================================================
# Attributes
# =============================================================================


class TestAttributes:
    def test_defaults(self):
        node = make_node(runtime_inputs())
        assert node.attrs == BatchNormalizationAttributes(epsilon=1e-5, momentum=0.9)

    def test_epsilon_and_momentum(self):
        node = make_node(
            runtime_inputs(),
            [Attribute.floating("epsilon", 1e-3), Attribute.floating("momentum", 0.99)],
        )
        assert node.attrs.epsilon == 1e-3
        assert node.attrs.momentum == 0.99

    def test_configuration_is_per_node(self):
        a = make_node(runtime_inputs(), [Attribute.floating("epsilon", 0.1)], name="a")
        b = make_node(runtime_inputs(), name="b")
        assert a.attrs.epsilon == 0.1
        assert b.attrs.epsilon == 1e-5

    def test_spatial_one_is_accepted(self):
        node = make_node(runtime_inputs(), [Attribute.integer("spatial", 1)])
        assert node.attrs == BatchNormalizationAttributes()

    def test_spatial_zero_is_unimplemented(self):
        with pytest.raises(UnimplementedError):
            make_node(runtime_inputs(), [Attribute.integer("spatial", 0)])

    @pytest.mark.parametrize("name", ["training_mode", "Epsilon", "axis"])
    def test_unknown_attribute(self, name):
        with pytest.raises(UnknownAttributeError):
            make_node(runtime_inputs(), [Attribute.floating(name, 1.0)])

    def test_wrong_declared_type(self):
        with pytest.raises(MalformedAttributeError):
            make_node(runtime_inputs(), [Attribute("epsilon", AttributeType.INT, 1)])

    def test_missing_value(self):
        with pytest.raises(MalformedAttributeError):
            make_node(runtime_inputs(), [Attribute("momentum", AttributeType.FLOAT)])


# =============================================================================
# Resolution
# =============================================================================


class TestResolve:
    @pytest.mark.parametrize("count", [4, 6])
    def test_arity(self, count):
        inputs = (runtime_inputs() * 2)[:count]
        with pytest.raises(ArityError):
            resolved(inputs, [Attribute.floating("epsilon", 0.5)])

    @pytest.mark.parametrize("role", range(5))
    def test_every_input_must_be_floating_point(self, role):
        inputs = runtime_inputs()
        bad = inputs[role]
        inputs[role] = Tensor(name=bad.name, shape=bad.shape, dtype=int32)
        with pytest.raises(TypeConstraintError):
            resolved(inputs)

    def test_constant_integer_scale_is_a_type_error(self):
        inputs = runtime_inputs()
        inputs[1] = Tensor.constant("scale", [1, 1], int32)
        with pytest.raises(TypeConstraintError):
            resolved(inputs)

    def test_rank_one_input_is_rejected(self):
        inputs = runtime_inputs()
        inputs[0] = Tensor(name="x", shape=(2,))
        with pytest.raises(ShapeError):
            resolved(inputs)

    def test_per_channel_size_must_match(self):
        inputs = runtime_inputs()
        inputs[3] = Tensor(name="mean", shape=(3,))
        with pytest.raises(ShapeError):
            resolved(inputs)

    def test_errors_are_compile_errors(self):
        with pytest.raises(CompileError) as info:
            resolved(runtime_inputs()[:4])
        assert info.value.kind == "arity"
        assert "BatchNormalization bn" in str(info.value)

    def test_registers_inputs_and_output(self):
        inputs = runtime_inputs()
        node = resolved(inputs)
        assert [name for _, name in node.input_params] == ["X", "scale", "bias", "mean", "var"]
        assert [t for t, _ in node.input_params] == inputs
        (out, name), = node.output_params
        assert name == "output"
        assert out.shape == inputs[0].shape
        assert out.dtype == inputs[0].dtype
        assert out.producer is node
        assert node.outputs == [out]
        assert node.resolved

    def test_output_follows_double_input(self):
        inputs = [Tensor(name=t.name, shape=t.shape, dtype=float64) for t in runtime_inputs()]
        node = resolved(inputs)
        assert node.outputs[0].dtype == float64

    def test_scale_of_ones_is_dropped(self):
        inputs = runtime_inputs()
        inputs[1] = Tensor.constant("scale", [1.0, 1.0])
        node = resolved(inputs)
        assert node.scale is None
        assert node.bias is inputs[2]

    def test_bias_of_zeros_is_dropped(self):
        inputs = runtime_inputs()
        inputs[2] = Tensor.constant("bias", [0.0, 0.0])
        node = resolved(inputs)
        assert node.bias is None
        assert node.scale is inputs[1]

    def test_non_splat_constants_are_kept(self):
        inputs = runtime_inputs()
        inputs[1] = Tensor.constant("scale", [1.0, 2.0])
        inputs[2] = Tensor.constant("bias", [0.0, 0.5])
        node = resolved(inputs)
        assert node.scale is inputs[1]
        assert node.bias is inputs[2]

    def test_constant_variance_is_folded(self):
        inputs = runtime_inputs()
        var = Tensor.constant("var", [4.0, 0.25])
        inputs[4] = var
        node = resolved(inputs, [Attribute.floating("epsilon", 1e-5)])

        assert node.sqrt_var_offline
        expected = np.sqrt(np.array([4.0, 0.25], dtype=np.float32) + np.float32(1e-5))
        np.testing.assert_allclose(node.var.data, expected, rtol=1e-7)
        assert node.var.data.dtype == np.float32
        # registered under the same symbolic name
        assert dict((n, t) for t, n in node.input_params)["var"] is node.var

    def test_fold_leaves_the_shared_tensor_alone(self):
        var = Tensor.constant("var", [4.0, 9.0])
        first = runtime_inputs()
        second = runtime_inputs()
        first[4] = var
        second[4] = var
        a = resolved(first)
        b = resolved(second)

        np.testing.assert_array_equal(var.data, [4.0, 9.0])
        np.testing.assert_allclose(a.var.data, np.sqrt([4.0 + 1e-5, 9.0 + 1e-5]), rtol=1e-6)
        np.testing.assert_allclose(b.var.data, a.var.data)

    def test_runtime_variance_is_not_folded(self):
        node = resolved(runtime_inputs())
        assert not node.sqrt_var_offline
        assert node.var.data is None


# =============================================================================
# Emission
# =============================================================================


def loop_lines(text: str) -> list[str]:
    return [line for line in text.splitlines() if line.lstrip().startswith("for(")]


class TestPrint:
    @pytest.mark.parametrize("shape", [(1, 2), (2, 2, 5), (1, 2, 3, 3), (1, 2, 2, 2, 2)])
    def test_loop_depth_equals_rank(self, shape):
        text = emitted(resolved(runtime_inputs(shape)))
        loops = loop_lines(text)
        assert len(loops) == len(shape)
        for depth, (line, bound) in enumerate(zip(loops, shape), start=1):
            assert line.startswith("\t" * depth + "for(")
            assert f"<{bound};" in line
        assert text.count("}\n") == len(shape)

    def test_index_variables_in_loop_order(self):
        text = emitted(resolved(runtime_inputs((1, 2, 3, 4))))
        assert [line.split()[2].split("=")[0] for line in loop_lines(text)] == ["b", "c", "i2", "i3"]
        assert "X[b][c][i2][i3]" in text
        assert "output[b][c][i2][i3] = " in text

    def test_traceability_comment(self):
        node = resolved(runtime_inputs(), [Attribute.floating("epsilon", 0.001), Attribute.floating("momentum", 0.5)])
        text = emitted(node)
        assert " * epsilon = 0.001\n" in text
        assert " * momentum = 0.5\n" in text

    def test_runtime_variance(self):
        text = emitted(resolved(runtime_inputs()))
        assert text.count("float epsilon = 1e-05;") == 1
        assert "sqrt( var[c] + epsilon )" in text
        assert "output[b][c][i2][i3] = tmp_X * scale[c] + bias[c];" in text

    def test_folded_variance_has_no_runtime_sqrt(self):
        inputs = runtime_inputs()
        inputs[4] = Tensor.constant("var", [1.0, 2.0])
        text = emitted(resolved(inputs))
        assert "sqrt" not in text
        assert "epsilon =" in text  # only in the comment
        assert " epsilon = 1e-05;" not in text
        assert "/ var[c];" in text

    def test_double_uses_double(self):
        inputs = [Tensor(name=t.name, shape=t.shape, dtype=float64) for t in runtime_inputs()]
        text = emitted(resolved(inputs))
        assert "double epsilon" in text
        assert "double tmp_X" in text

    def test_scenario_a(self):
        inputs = [
            Tensor(name="x", shape=(1, 1)),
            Tensor.constant("scale", [2.0]),
            Tensor.constant("bias", [0.0]),
            Tensor.constant("mean", [1.0]),
            Tensor.constant("var", [4.0]),
        ]
        node = resolved(inputs, [Attribute.floating("epsilon", 1e-5)])
        assert node.bias is None
        assert node.scale is inputs[1]
        assert float(node.var[0]) == pytest.approx(2.0000025, rel=1e-6)

        assert emitted(node) == (
            "\t/* BatchNormalization\n"
            "\t * epsilon = 1e-05\n"
            "\t * momentum = 0.9\n"
            "\t */\n"
            "\n"
            "\tfor( int32_t b=0; b<1; b++ ) {\n"
            "\t\tfor( int32_t c=0; c<1; c++ ) {\n"
            "\t\t\tfloat tmp_X = ( X[b][c] - mean[c] ) / var[c];\n"
            "\t\t\toutput[b][c] = tmp_X * scale[c];\n"
            "\t\t}\n"
            "\t}\n"
        )

    def test_scenario_b(self):
        inputs = [
            Tensor(name="x", shape=(1, 2, 2)),
            Tensor.constant("scale", [1.0, 1.0]),
            Tensor.constant("bias", [0.5, 0.5]),
            Tensor.constant("mean", [0.0, 1.0]),
            Tensor(name="var", shape=(2,)),
        ]
        text = emitted(resolved(inputs))
        assert "scale[c]" not in text
        assert "output[b][c][i2] = tmp_X + bias[c];" in text
        assert "float tmp_X = ( X[b][c][i2] - mean[c] ) / sqrt( var[c] + epsilon );" in text
        assert text.count("epsilon = 1e-05;") == 1


def test_simplifications_are_logged(caplog):
    caplog.set_level(logging.DEBUG, logger="nncc")
    inputs = [
        Tensor(name="x", shape=(1, 1)),
        Tensor.constant("scale", [1.0]),
        Tensor.constant("bias", [0.0]),
        Tensor(name="mean", shape=(1,)),
        Tensor.constant("var", [1.0]),
    ]
    resolved(inputs)
    assert "scale is all ones" in caplog.text
    assert "bias is all zeros" in caplog.text
    assert "folded sqrt(var + epsilon) into bn_var_sqrt" in caplog.text
