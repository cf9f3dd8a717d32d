from __future__ import annotations


class SchedulingError(Exception):
    """Base class for recoverable review-scheduling errors."""


class MemberNotFound(SchedulingError):
    def __init__(self, member_id: int) -> None:
        super().__init__(f"Member not found: {member_id}")
        self.member_id = member_id


class CardNotFound(SchedulingError):
    """Raised for cards that do not exist or belong to another member."""

    def __init__(self, card_id: int) -> None:
        super().__init__(f"Card not found: {card_id}")
        self.card_id = card_id


class UnrecognizedOutcome(SchedulingError, ValueError):
    def __init__(self, label: object) -> None:
        super().__init__(f"Unrecognized review outcome: {label!r}")
        self.label = label


class ConcurrentModification(SchedulingError):
    """The review record changed between read and conditional write."""

    def __init__(self, member_id: int, card_id: int) -> None:
        super().__init__(
            f"Review record for member {member_id}, card {card_id} was modified concurrently"
        )
        self.member_id = member_id
        self.card_id = card_id
