from __future__ import annotations

import logging
from typing import Callable, Optional

from .schemas import BranchNode, SimplexIteration

IterationSink = Callable[[SimplexIteration], None]
NodeSink = Callable[[BranchNode], None]

logger = logging.getLogger(__name__)


class Tracer:
    """Fan-out point for per-pivot and per-node events.

    Algorithms call ``iteration``/``node`` once per step; the events go to the
    optional user callbacks and to the debug log.
    """

    def __init__(self, on_iteration: Optional[IterationSink] = None, on_node: Optional[NodeSink] = None) -> None:
        self.on_iteration = on_iteration
        self.on_node = on_node

    def iteration(self, step: SimplexIteration) -> None:
        logger.debug(
            "phase %d iteration %d: %s (objective %.6g)",
            step.phase,
            step.number,
            step.description,
            step.objective_value,
        )
        if self.on_iteration is not None:
            self.on_iteration(step)

    def node(self, node: BranchNode) -> None:
        logger.debug(
            "node %d (level %d, parent %s): %s bound=%s %s",
            node.id,
            node.level,
            node.parent_id,
            node.status,
            node.bound,
            node.notes,
        )
        if self.on_node is not None:
            self.on_node(node)


NULL_TRACER = Tracer()
