from __future__ import annotations

import logging
from dataclasses import dataclass

from nncc.ir import Graph

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ResolvePass:
    """Resolves every node that has not been resolved yet, in graph order.

    `Graph.add_node` already resolves nodes as they are built. This pass is
    for graphs whose node list was assembled by hand.
    """

    def run(self, graph: Graph) -> None:
        for node in graph.nodes:
            if node.resolved:
                continue
            logger.debug("resolving %s", node.label)
            node.resolve()
            for out in node.outputs:
                if out not in graph.tensors:
                    graph.tensors.append(out)
        graph.attrs["resolved"] = True
