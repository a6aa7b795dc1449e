"""Offer state machine - validates negotiation transitions per actor.

Pending offers are answered by the farmer (accept, reject, counter) or
withdrawn by the buyer. A countered offer stays open: the farmer may
answer it again and the buyer may take or refuse the counter price.
Accepted and rejected are terminal.
"""

from krishisetu.domain.enums import OfferActor, OfferStatus, TransactionStatus


class InvalidTransitionError(Exception):
    """Raised when a status transition is not allowed."""

    def __init__(self, current_status, target_status, reason: str):
        self.current_status = current_status
        self.target_status = target_status
        self.reason = reason
        super().__init__(
            f"Invalid transition from {current_status.value} to {target_status.value}: {reason}"
        )


# ---------------------------------------------------------------------------
# Transition map: from_status -> {to_status: set_of_allowed_actors}
# ---------------------------------------------------------------------------

S = OfferStatus
A = OfferActor

TRANSITION_MAP: dict[OfferStatus, dict[OfferStatus, set[OfferActor]]] = {
    S.PENDING: {
        S.ACCEPTED: {A.FARMER},
        S.REJECTED: {A.FARMER, A.BUYER},
        S.COUNTERED: {A.FARMER},
    },
    S.COUNTERED: {
        S.ACCEPTED: {A.FARMER, A.BUYER},
        S.REJECTED: {A.FARMER, A.BUYER},
        S.COUNTERED: {A.FARMER},
    },
    S.ACCEPTED: {},
    S.REJECTED: {},
}

TERMINAL_STATES: set[OfferStatus] = {
    s for s, targets in TRANSITION_MAP.items() if not targets
}

# Settlement: only the farmer closes out a confirmed transaction
TRANSACTION_TRANSITIONS: dict[TransactionStatus, set[TransactionStatus]] = {
    TransactionStatus.CONFIRMED: {TransactionStatus.COMPLETED, TransactionStatus.CANCELLED},
    TransactionStatus.COMPLETED: set(),
    TransactionStatus.CANCELLED: set(),
}


class OfferStateMachine:
    """Validates offer status transitions."""

    def validate_transition(
        self,
        current_status: OfferStatus,
        target_status: OfferStatus,
        actor: OfferActor,
    ) -> bool:
        """Return True if the transition is valid. Raise InvalidTransitionError if not."""
        current_status = OfferStatus(current_status)
        target_status = OfferStatus(target_status)
        actor = OfferActor(actor)

        allowed_targets = TRANSITION_MAP[current_status]
        if not allowed_targets:
            raise InvalidTransitionError(
                current_status,
                target_status,
                f"Offer is already {current_status.value}",
            )

        if target_status not in allowed_targets:
            raise InvalidTransitionError(
                current_status,
                target_status,
                f"Transition from {current_status.value} to {target_status.value} is not allowed",
            )

        allowed_actors = allowed_targets[target_status]
        if actor not in allowed_actors:
            raise InvalidTransitionError(
                current_status,
                target_status,
                f"Actor {actor.value} is not permitted for this transition "
                f"(allowed: {', '.join(sorted(a.value for a in allowed_actors))})",
            )

        return True

    def get_allowed_transitions(
        self,
        current_status: OfferStatus,
        actor: OfferActor,
    ) -> list[OfferStatus]:
        """Return the statuses this actor may move the offer to."""
        return [
            target
            for target, actors in TRANSITION_MAP[OfferStatus(current_status)].items()
            if OfferActor(actor) in actors
        ]

    def validate_transaction_transition(
        self,
        current_status: TransactionStatus,
        target_status: TransactionStatus,
    ) -> bool:
        current_status = TransactionStatus(current_status)
        target_status = TransactionStatus(target_status)
        if target_status not in TRANSACTION_TRANSITIONS[current_status]:
            raise InvalidTransitionError(
                current_status,
                target_status,
                f"Transaction is {current_status.value}",
            )
        return True
