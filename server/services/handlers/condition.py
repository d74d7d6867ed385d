"""Condition node handler - branch on interaction history."""

from core.logging import get_logger
from services.execution.conditions import ConditionEvaluator
from services.execution.models import NodeResult, NodeStep

logger = get_logger(__name__)


async def handle_condition(step: NodeStep, *, database, evaluator: ConditionEvaluator) -> NodeResult:
    """Route to ``true_node_id`` or ``false_node_id`` with no delay."""
    config = step.config
    result = await evaluator.evaluate(step.contact.id, config, step.now)

    await database.append_log(step.execution.id, step.node.id, "condition_eval", {
        "channel": config.channel,
        "event_type": config.event_type,
        "result": result,
    })

    next_node_id = step.node.true_node_id if result else step.node.false_node_id
    return NodeResult(next_node_id=next_node_id)
