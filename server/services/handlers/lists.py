"""Action node handler - prospect list membership."""

from constants import ACTION_ADD_TO_LIST, ACTION_REMOVE_FROM_LIST
from core.logging import get_logger
from services.execution.models import NodeResult, NodeStep

logger = get_logger(__name__)


async def handle_action(step: NodeStep, *, database) -> NodeResult:
    """Copy the contact into a list or remove it from one.

    An unrecognized action (or one missing its list) is logged and passed
    through; it never blocks the execution.
    """
    config = step.config
    execution_id, node_id = step.execution.id, step.node.id

    if config.action == ACTION_ADD_TO_LIST and config.list_id:
        item_id = await database.add_to_list(config.list_id, step.user_id, step.contact)
        await database.append_log(execution_id, node_id, "action_add_to_list",
                                  {"list_id": config.list_id, "item_id": item_id})
    elif config.action == ACTION_REMOVE_FROM_LIST and config.list_id:
        removed = await database.remove_from_list(config.list_id, step.contact.id)
        await database.append_log(execution_id, node_id, "action_remove_from_list",
                                  {"list_id": config.list_id, "removed": removed})
    else:
        logger.warning("Unknown list action", node_id=node_id, action=config.action)
        await database.append_log(execution_id, node_id, "action_unknown", {"config": step.node.config or {}})

    return NodeResult(next_node_id=step.node.next_node_id)
