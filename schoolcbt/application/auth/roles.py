from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Tuple


class Role(str, enum.Enum):
    STUDENT = "student"
    TEACHER = "teacher"
    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"


class Capability(str, enum.Enum):
    TAKE_TESTS = "take_tests"
    AUTHOR_TESTS = "author_tests"
    MANAGE_QUESTIONS = "manage_questions"
    APPROVE_TESTS = "approve_tests"
    SCHEDULE_TESTS = "schedule_tests"
    DELETE_TESTS = "delete_tests"
    VIEW_RESULTS = "view_results"
    MANAGE_RESULTS = "manage_results"
    MANAGE_USERS = "manage_users"
    MANAGE_CLASSES = "manage_classes"
    MANAGE_SESSIONS = "manage_sessions"


ROLE_CAPABILITIES: Dict[Role, FrozenSet[Capability]] = {
    Role.STUDENT: frozenset({Capability.TAKE_TESTS}),
    Role.TEACHER: frozenset({
        Capability.AUTHOR_TESTS,
        Capability.MANAGE_QUESTIONS,
        Capability.VIEW_RESULTS,
    }),
    Role.ADMIN: frozenset({
        Capability.APPROVE_TESTS,
        Capability.SCHEDULE_TESTS,
        Capability.DELETE_TESTS,
        Capability.VIEW_RESULTS,
        Capability.MANAGE_RESULTS,
        Capability.MANAGE_USERS,
        Capability.MANAGE_CLASSES,
        Capability.MANAGE_SESSIONS,
    }),
    Role.SUPER_ADMIN: frozenset(Capability),
}


SubjectClass = Tuple[str, str]


@dataclass(frozen=True)
class AuthContext:
    """
    Identity of the caller for a single request.

    Built once from the bearer token and handed to every operation that
    needs to know who is acting, instead of re-reading the user per check.
    """
    user_id: int
    username: str
    role: Role
    teaching: FrozenSet[SubjectClass] = field(default_factory=frozenset)
    enrolled: FrozenSet[SubjectClass] = field(default_factory=frozenset)

    @property
    def capabilities(self) -> FrozenSet[Capability]:
        return ROLE_CAPABILITIES[self.role]

    def can(self, capability: Capability) -> bool:
        return capability in self.capabilities

    @property
    def is_admin(self) -> bool:
        return self.role in (Role.ADMIN, Role.SUPER_ADMIN)

    def teaches(self, subject: str, class_name: str) -> bool:
        return (subject, class_name) in self.teaching

    def is_enrolled(self, subject: str, class_name: str) -> bool:
        return (subject, class_name) in self.enrolled
