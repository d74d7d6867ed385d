"""Control node handlers - Start, Wait, End."""

from core.logging import get_logger
from services.execution.models import NodeResult, NodeStep

logger = get_logger(__name__)


async def handle_start(step: NodeStep, *, database) -> NodeResult:
    """Entry node: log and move on immediately."""
    await database.append_log(step.execution.id, step.node.id, "start", {"message": "Workflow started"})
    return NodeResult(next_node_id=step.node.next_node_id)


async def handle_wait(step: NodeStep, *, database) -> NodeResult:
    """Hold the execution for the configured days and hours.

    Args:
        step: Current step; ``step.config`` is a WaitConfig

    Returns:
        NodeResult to the next node with ``delay_ms`` set
    """
    config = step.config
    delay_ms = config.delay_ms
    await database.append_log(step.execution.id, step.node.id, "wait", {
        "days": config.days,
        "hours": config.hours,
        "delay_ms": delay_ms,
    })
    return NodeResult(next_node_id=step.node.next_node_id, delay_ms=delay_ms)


async def handle_end(step: NodeStep, *, database) -> NodeResult:
    await database.append_log(step.execution.id, step.node.id, "end", {"message": "Workflow completed"})
    return NodeResult(next_node_id=None, completed=True)
