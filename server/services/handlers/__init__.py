"""Node handlers package.

One module per node category:
- control.py: Start, Wait, End
- messaging.py: Send Email, Send LinkedIn, Send WhatsApp
- condition.py: Condition (interaction-history branching)
- lists.py: Action (prospect list membership)

Every handler takes a NodeStep plus keyword-only service dependencies (bound
with functools.partial by NodeProcessor) and returns a NodeResult.
"""

# Control handlers
from .control import (
    handle_start,
    handle_wait,
    handle_end,
)

# Send handlers
from .messaging import (
    handle_send_email,
    handle_send_linkedin,
    handle_send_whatsapp,
)

# Branching and list handlers
from .condition import handle_condition
from .lists import handle_action

__all__ = [
    'handle_start',
    'handle_wait',
    'handle_end',
    'handle_send_email',
    'handle_send_linkedin',
    'handle_send_whatsapp',
    'handle_condition',
    'handle_action',
]
