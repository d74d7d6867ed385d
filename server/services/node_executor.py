"""Node Processor - Single node step with handler dispatch.

Uses a registry pattern for clean handler dispatch without if-else chains.
"""

import random
from datetime import datetime
from functools import partial
from typing import Dict, Callable, Optional, TYPE_CHECKING

from pydantic import ValidationError

from core.logging import get_logger
from constants import (
    ALL_NODE_TYPES,
    NODE_ACTION,
    NODE_CONDITION,
    NODE_END,
    NODE_SEND_EMAIL,
    NODE_SEND_LINKEDIN,
    NODE_SEND_WHATSAPP,
    NODE_START,
    NODE_WAIT,
)
from models.contact import ContactSnapshot
from models.database import Workflow, WorkflowExecution, WorkflowNode
from models.nodes import parse_node_config
from services.execution.conditions import ConditionEvaluator
from services.execution.exceptions import InvalidNodeConfigError
from services.execution.models import NodeResult, NodeStep
from services.handlers import (
    handle_start, handle_wait, handle_end,
    handle_send_email, handle_send_linkedin, handle_send_whatsapp,
    handle_condition, handle_action,
)

if TYPE_CHECKING:
    from core.config import Settings
    from core.database import Database
    from services.messaging import MessageSender

logger = get_logger(__name__)


class NodeProcessor:
    """Executes one node of one execution using registry-based dispatch."""

    def __init__(
        self,
        database: "Database",
        sender: "MessageSender",
        settings: "Settings",
        evaluator: Optional[ConditionEvaluator] = None,
        rng: Optional[random.Random] = None,
    ):
        self.database = database
        self.sender = sender
        self.settings = settings
        self.evaluator = evaluator or ConditionEvaluator(database)
        self.rng = rng or random.Random()
        self._handlers = self._build_handler_registry()

        missing = ALL_NODE_TYPES - set(self._handlers)
        if missing:
            raise RuntimeError(f"No handler registered for node types: {sorted(missing)}")

    def _build_handler_registry(self) -> Dict[str, Callable]:
        """Build handler registry with service dependencies bound via partial."""
        send_deps = dict(database=self.database, sender=self.sender, settings=self.settings, rng=self.rng)
        return {
            # Workflow control
            NODE_START: partial(handle_start, database=self.database),
            NODE_WAIT: partial(handle_wait, database=self.database),
            NODE_END: partial(handle_end, database=self.database),
            # Outreach
            NODE_SEND_EMAIL: partial(handle_send_email, **send_deps),
            NODE_SEND_LINKEDIN: partial(handle_send_linkedin, **send_deps),
            NODE_SEND_WHATSAPP: partial(handle_send_whatsapp, **send_deps),
            # Branching and lists
            NODE_CONDITION: partial(handle_condition, database=self.database, evaluator=self.evaluator),
            NODE_ACTION: partial(handle_action, database=self.database),
        }

    async def process(
        self,
        execution: WorkflowExecution,
        node: WorkflowNode,
        contact: ContactSnapshot,
        workflow: Workflow,
        now: datetime,
    ) -> NodeResult:
        """Run the handler for ``node`` and return where the execution goes next.

        Raises:
            InvalidNodeConfigError: The node's config fails validation
            ProviderUnavailableError: A messaging provider could not be reached
        """
        handler = self._handlers.get(node.type)
        if handler is None:
            logger.warning("Unknown node type, passing through", node_id=node.id, node_type=node.type)
            await self.database.append_log(execution.id, node.id, "unknown_node_type", {"type": node.type})
            return NodeResult(next_node_id=node.next_node_id)

        try:
            config = parse_node_config(node.type, node.config)
        except ValidationError as e:
            raise InvalidNodeConfigError(node.id, node.type, str(e)) from e

        step = NodeStep(
            execution=execution,
            node=node,
            config=config,
            contact=contact,
            workflow=workflow,
            now=now,
        )
        logger.debug("Processing node", execution_id=execution.id, node_id=node.id, node_type=node.type)
        return await handler(step)
