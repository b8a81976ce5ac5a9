"""
Authenticated caller as seen by the scheduling engine.

The engine never authenticates; it receives an Actor from the caller layer
and consults only the role's capabilities and the actor's identity. Services
ask capability questions ("may this actor auto-confirm?") instead of
comparing role names, so adding a staff role is one entry in
ROLE_CAPABILITIES.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Union


class Role(str, Enum):
    PATIENT = "patient"
    DOCTOR = "doctor"
    ASSISTANT = "assistant"
    ADMIN = "admin"


@dataclass(frozen=True)
class RoleCapabilities:
    """What a role may do, independent of any particular appointment."""

    can_auto_confirm: bool = False
    """Bookings made by this role skip the pending step."""

    is_staff: bool = False
    """May confirm, cancel and reschedule any appointment."""

    books_for_others: bool = False
    """May book on behalf of a patient other than themselves."""

    is_practitioner: bool = False
    """Acts as the doctor on appointments booked with them."""


ROLE_CAPABILITIES: Dict[Role, RoleCapabilities] = {
    Role.PATIENT: RoleCapabilities(),
    Role.DOCTOR: RoleCapabilities(books_for_others=True, is_practitioner=True),
    Role.ASSISTANT: RoleCapabilities(can_auto_confirm=True, is_staff=True, books_for_others=True),
    Role.ADMIN: RoleCapabilities(can_auto_confirm=True, is_staff=True, books_for_others=True),
}


@dataclass(frozen=True)
class Actor:
    """An authenticated caller: identity plus role."""

    actor_id: str
    role: Role

    def __post_init__(self) -> None:
        if not isinstance(self.role, Role):
            # Accept plain role strings from the caller layer
            object.__setattr__(self, "role", Role(self.role))

    @property
    def capabilities(self) -> RoleCapabilities:
        return ROLE_CAPABILITIES[self.role]

    def is_patient(self, patient_id: str) -> bool:
        """Check if this actor is the given patient."""
        return self.actor_id == patient_id

    def is_doctor(self, doctor_id: str) -> bool:
        """Check if this actor is the given doctor acting as a practitioner."""
        return self.capabilities.is_practitioner and self.actor_id == doctor_id

    @classmethod
    def of(cls, actor_id: str, role: Union[Role, str]) -> "Actor":
        return cls(actor_id=actor_id, role=Role(role))

    def __repr__(self) -> str:
        return f"Actor(actor_id='{self.actor_id}', role='{self.role.value}')"
