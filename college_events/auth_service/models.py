"""
Identity types shared by the auth and events services.

Accounts live in two tables: students in `users`, organisers in
`organisers`. Once authenticated, the role travels inside the token as
a Claims object.
"""

from dataclasses import dataclass
from enum import Enum


class Role(str, Enum):
    STUDENT = "student"
    ORGANISER = "organiser"


@dataclass(frozen=True)
class Claims:
    """Identity asserted by a verified session token."""

    account_id: int
    email: str
    role: Role

    @property
    def is_student(self) -> bool:
        return self.role is Role.STUDENT

    @property
    def is_organiser(self) -> bool:
        return self.role is Role.ORGANISER
