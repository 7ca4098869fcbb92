"""Task/subtask status machine using transitions library.

Every WorkItem moves between todo, in-progress and done through explicit
triggers. Any state may reach any other:
- start:    -> in-progress
- complete: -> done (stamps completedAt)
- reopen:   -> todo

Every transition refreshes updatedAt. completedAt is left in place when an
item leaves done so the last completion time is kept.

Usage:
    from productive.model.fsm import StatusFSM, set_status

    StatusFSM(item).complete()
    set_status(item, "in-progress")
"""

import logging
from typing import Callable

from transitions import Machine, MachineError

from productive.lib.constants import ITEM_STATUSES
from productive.lib.timestamps import now_iso
from productive.model.tree import ModelError, WorkItem

logger = logging.getLogger(__name__)


STATES = list(ITEM_STATUSES)

TRANSITIONS = [
    {"trigger": "start", "source": "*", "dest": "in-progress"},
    {"trigger": "complete", "source": "*", "dest": "done"},
    {"trigger": "reopen", "source": "*", "dest": "todo"},
]

# Destination -> trigger, so callers can ask for a status by name
TRIGGER_FOR = {t["dest"]: t["trigger"] for t in TRANSITIONS}


class InvalidTransition(ModelError):
    """Raised when a status change is not allowed."""

    def __init__(self, from_state: str, to_state: str, item_id: str = ""):
        self.from_state = from_state
        self.to_state = to_state
        self.item_id = item_id
        super().__init__(f"Cannot move {item_id or 'item'} from '{from_state}' to '{to_state}'")


class StatusFSM:
    """State machine bound to one WorkItem.

    The item stays the source of truth: the machine starts from item.status
    and writes every change back onto the item.
    """

    def __init__(self, item: WorkItem, on_transition: Callable[[str, str, str], None] | None = None):
        """Initialize FSM for a work item.

        Args:
            item: Task or subtask whose status is managed
            on_transition: Optional callback(from_state, to_state, trigger) called after transitions
        """
        self.item = item
        self.on_transition = on_transition

        initial = item.status
        if initial not in STATES:
            logger.warning(f"[FSM] {item.id}: Unknown status '{initial}', defaulting to 'todo'")
            initial = "todo"

        self.machine = Machine(
            model=self,
            states=STATES,
            transitions=TRANSITIONS,
            initial=initial,
            auto_transitions=False,
            send_event=True,
            after_state_change="on_state_change",
        )

    def on_state_change(self, event) -> None:
        """Write the new status and timestamps back onto the item."""
        from_state = event.transition.source
        to_state = event.transition.dest
        trigger = event.event.name
        stamp = now_iso()

        self.item.status = to_state
        self.item.updated_at = stamp
        if to_state == "done":
            self.item.completed_at = stamp

        logger.info(f"[FSM] {self.item.id}: {from_state} -> {to_state} ({trigger})")

        if self.on_transition:
            self.on_transition(from_state, to_state, trigger)

    def can(self, trigger: str) -> bool:
        return trigger in self.machine.get_triggers(self.state)


def set_status(item: WorkItem, new_status: str) -> WorkItem:
    """Move item to new_status through the matching trigger.

    Raises:
        InvalidTransition: new_status is not a known status or the machine refused
    """
    trigger = TRIGGER_FOR.get(new_status)
    if trigger is None:
        raise InvalidTransition(item.status, new_status, item.id)

    fsm = StatusFSM(item)
    try:
        getattr(fsm, trigger)()
    except MachineError as e:
        raise InvalidTransition(item.status, new_status, item.id) from e
    return item
