"""Factory functions for creating test records.

Database factories create a model instance, add it to the session, and
flush so that generated fields (id, created_at, etc.) are populated. Domain
builders create plain workflow objects for tests that need no database.
All fields have sensible defaults but can be overridden via keyword
arguments.

Usage::

    from tests.factories import create_category, create_course

    def test_something(db_session):
        category = create_category(db_session, excuse_window_hours=24)
        course = create_course(db_session, category=category)
        assert course.category_id == category.id
"""

import uuid
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Set, Tuple
from uuid import UUID

from sqlalchemy.orm import Session

from coursehub.core.approval import ChainStep, RoleGrant
from coursehub.core.enrollment import CourseInfo, CourseStatus, Enrollment
from coursehub.db.models import ApprovalChainStep, Course, CourseCategory, Role


NOW = datetime(2026, 3, 2, 9, 0, 0)

_counter = 0


def _next_id() -> int:
    """Return a monotonically increasing integer for unique default values."""
    global _counter
    _counter += 1
    return _counter


# ---------------------------------------------------------------------------
# Role
# ---------------------------------------------------------------------------


def create_role(
    session: Session,
    *,
    name: Optional[str] = None,
    organization_id: Optional[UUID] = None,
    applies_to_all_organizations: bool = False,
) -> Role:
    n = _next_id()
    role = Role(
        name=name or f"role-{n}",
        organization_id=organization_id,
        applies_to_all_organizations=applies_to_all_organizations,
    )
    session.add(role)
    session.flush()
    return role


# ---------------------------------------------------------------------------
# Category and approval chain
# ---------------------------------------------------------------------------


def create_category(
    session: Session,
    *,
    name: Optional[str] = None,
    excuse_window_hours: Optional[int] = None,
) -> CourseCategory:
    n = _next_id()
    category = CourseCategory(
        name=name or f"Test Category {n}",
        excuse_window_hours=excuse_window_hours,
    )
    session.add(category)
    session.flush()
    return category


def create_chain_step(
    session: Session,
    category: CourseCategory,
    order: int,
    *,
    head: bool = False,
    final: bool = False,
    role: Optional[Role] = None,
) -> ApprovalChainStep:
    step = ApprovalChainStep(
        category_id=category.id,
        approval_order=order,
        is_head_approval=head,
        is_final=final,
        role_id=role.id if role else None,
    )
    session.add(step)
    session.flush()
    return step


# ---------------------------------------------------------------------------
# Course
# ---------------------------------------------------------------------------


def create_course(
    session: Session,
    *,
    category: Optional[CourseCategory] = None,
    name: Optional[str] = None,
    status: str = "published",
    start_at: Optional[datetime] = None,
    available_seats: int = 20,
) -> Course:
    if category is None:
        category = create_category(session)
    n = _next_id()
    course = Course(
        category_id=category.id,
        name=name or f"Test Course {n}",
        code=f"C-{n}",
        status=status,
        start_at=start_at if start_at is not None else NOW + timedelta(days=7),
        available_seats=available_seats,
    )
    session.add(course)
    session.flush()
    return course


# ---------------------------------------------------------------------------
# Domain builders
# ---------------------------------------------------------------------------


def chain_step(
    order: int,
    *,
    category_id: Optional[UUID] = None,
    head: bool = False,
    final: bool = False,
    role_id: Optional[UUID] = None,
) -> ChainStep:
    return ChainStep(
        id=uuid.uuid4(),
        category_id=category_id,
        order=order,
        is_head_approval=head,
        is_final=final,
        role_id=role_id,
    )


def build_enrollment(
    *,
    course_id: Optional[UUID] = None,
    user_id: Optional[UUID] = None,
    organization_id: Optional[UUID] = None,
) -> Enrollment:
    return Enrollment(
        id=uuid.uuid4(),
        course_id=course_id or uuid.uuid4(),
        user_id=user_id or uuid.uuid4(),
        organization_id=organization_id,
        enrolled_at=NOW,
    )


def course_info(
    *,
    category_id: Optional[UUID] = None,
    status: CourseStatus = CourseStatus.PUBLISHED,
    start_at: Optional[datetime] = None,
    available_seats: int = 20,
    excuse_window_hours: Optional[int] = None,
) -> CourseInfo:
    return CourseInfo(
        id=uuid.uuid4(),
        category_id=category_id or uuid.uuid4(),
        status=status,
        start_at=start_at if start_at is not None else NOW + timedelta(days=7),
        available_seats=available_seats,
        excuse_window_hours=excuse_window_hours,
        name="Leadership Basics",
    )


# ---------------------------------------------------------------------------
# Collaborators
# ---------------------------------------------------------------------------


class FakeIdentity:
    """Role grants kept in a dictionary."""

    def __init__(self):
        self.grants: Dict[UUID, List[RoleGrant]] = {}

    def grant(
        self,
        user_id: UUID,
        role_id: UUID,
        organization_id: Optional[UUID] = None,
        applies_to_all_organizations: bool = False,
    ) -> None:
        self.grants.setdefault(user_id, []).append(
            RoleGrant(role_id, organization_id, applies_to_all_organizations)
        )

    def role_grants(self, user_id: UUID) -> List[RoleGrant]:
        return list(self.grants.get(user_id, []))


class FakeDirectory:
    """Organization directory with explicit headship pairs."""

    def __init__(self):
        self.organizations: Dict[UUID, UUID] = {}
        self.heads: Set[Tuple[UUID, UUID]] = set()
        self.emails: Dict[UUID, str] = {}

    def add_user(
        self,
        user_id: UUID,
        organization_id: Optional[UUID] = None,
        head_id: Optional[UUID] = None,
        email: Optional[str] = None,
    ) -> None:
        if organization_id is not None:
            self.organizations[user_id] = organization_id
        if head_id is not None:
            self.heads.add((head_id, user_id))
        self.emails[user_id] = email if email is not None else f"user-{_next_id()}@example.com"

    def organization_of(self, user_id: UUID) -> Optional[UUID]:
        return self.organizations.get(user_id)

    def is_head_of(self, actor_id: UUID, user_id: UUID) -> bool:
        return (actor_id, user_id) in self.heads

    def email_of(self, user_id: UUID) -> Optional[str]:
        return self.emails.get(user_id)

    def display_name_of(self, user_id: UUID) -> str:
        return f"User {str(user_id)[:8]}"
