"""Contract status state machine"""

from ...models import Contract

DRAFT = "draft"
SENT = "sent"
SIGNED = "signed"
DECLINED = "declined"
EXPIRED = "expired"

# draft -> signed covers a manual (drawn) signature without a provider request
ALLOWED_TRANSITIONS: dict[str, frozenset] = {
    DRAFT: frozenset({SENT, SIGNED}),
    SENT: frozenset({SIGNED, DECLINED, EXPIRED}),
    SIGNED: frozenset(),
    DECLINED: frozenset(),
    EXPIRED: frozenset(),
}

CLIENT_VISIBLE_STATUSES = (SENT, SIGNED)


class InvalidTransitionError(Exception):
    def __init__(self, current: str, target: str):
        super().__init__(f"Cannot move contract from '{current}' to '{target}'")
        self.current = current
        self.target = target


def can_transition(current: str, target: str) -> bool:
    return current == target or target in ALLOWED_TRANSITIONS.get(current, frozenset())


def transition(contract: Contract, target: str) -> bool:
    """
    Move a contract to `target`.

    Returns True when the status changed and False for a repeat of the
    current status. Raises InvalidTransitionError for any other move.
    """
    current = contract.status or DRAFT
    if current == target:
        return False
    if not can_transition(current, target):
        raise InvalidTransitionError(current, target)
    contract.status = target
    return True
