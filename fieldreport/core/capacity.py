"""Participant capacity of a submission.

A submission declares ``participant_count``; the number of participant rows
must never exceed it. The state here is always built from a count that was
just read from the database; it is never carried across a mutation.
"""

from __future__ import annotations

from dataclasses import dataclass


def can_add_more(total_count: int, declared_capacity: int) -> bool:
    return total_count < declared_capacity


@dataclass(frozen=True, slots=True)
class CapacityState:
    total_count: int
    capacity: int

    @property
    def can_add_more(self) -> bool:
        return can_add_more(self.total_count, self.capacity)

    @property
    def limit_reached(self) -> bool:
        return not self.can_add_more

    @property
    def remaining(self) -> int:
        return max(self.capacity - self.total_count, 0)

    def as_dict(self) -> dict:
        return {
            "total_count": self.total_count,
            "capacity": self.capacity,
            "remaining": self.remaining,
            "can_add_more": self.can_add_more,
        }
