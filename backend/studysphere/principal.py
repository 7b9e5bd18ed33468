"""Authenticated actors: the tutor, student or admin making a request."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Union

Role = Literal["tutor", "student", "admin"]


@dataclass(frozen=True)
class Tutor:
    id: str

    @property
    def role(self) -> Role:
        return "tutor"


@dataclass(frozen=True)
class Student:
    id: str

    @property
    def role(self) -> Role:
        return "student"


@dataclass(frozen=True)
class Admin:
    id: str

    @property
    def role(self) -> Role:
        return "admin"


Actor = Union[Tutor, Student, Admin]


def actor_from_claims(user_id: str, role: str) -> Actor:
    """Build the actor for a token's ``sub`` and ``role`` claims."""
    match role:
        case "tutor":
            return Tutor(user_id)
        case "student":
            return Student(user_id)
        case "admin":
            return Admin(user_id)
    raise ValueError(f"Unknown role: {role}")
