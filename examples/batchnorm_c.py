from __future__ import annotations

import logging
import sys
from pathlib import Path

repo_root = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(repo_root / "src"))

import numpy as np

from nncc import CodegenConfig, compile_graph
from nncc.ir import Attribute, Graph


def build_conv_block(channels: int = 4, size: int = 8) -> Graph:
    rng = np.random.default_rng(0)
    g = Graph(name="bn_relu")
    x = g.input("x", (1, channels, size, size))
    scale = g.constant("scale", np.ones(channels))
    bias = g.constant("bias", rng.standard_normal(channels))
    mean = g.constant("mean", rng.standard_normal(channels))
    var = g.constant("var", rng.uniform(0.5, 2.0, channels))

    h = g.add_node(
        "BatchNormalization",
        [x, scale, bias, mean, var],
        [Attribute.floating("epsilon", 1e-3), Attribute.integer("spatial", 1)],
        name="bn1",
    )
    y = g.add_node("Relu", [h], name="relu1", output_name="y")
    g.mark_output(y)
    return g


def main() -> None:
    logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")

    print("Building graph...")
    g = build_conv_block()
    print(g.summary())

    print("\nGenerating C...")
    source = compile_graph(g, CodegenConfig(entry_name="bn_relu"))
    print(source)


if __name__ == "__main__":
    main()
