"""Contracts of the collaborators the enrollment workflow depends on.

The workflow is written entirely against these interfaces: persistence,
identity (role grants), the organization directory, and e-mail dispatch.
"""

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from typing import Iterable, List, Optional, Protocol, Set
from uuid import UUID

from coursehub.core.approval.authority import RoleGrant
from coursehub.core.approval.chain import ChainStep
from coursehub.core.enrollment.models import (
    ApprovalStep,
    AttendanceRecord,
    CourseInfo,
    Enrollment,
)
from coursehub.core.notifications.tracker import NotificationKind


class EnrollmentRepository(ABC):
    """Abstract persistence collaborator.

    ``locked`` is the transaction boundary: everything saved inside it is
    committed together when the block exits normally and discarded when it
    raises. Two ``locked`` blocks on the same enrollment never interleave, and
    neither do two ``locked_course`` blocks on the same course.
    """

    @abstractmethod
    def locked(self, enrollment_id: UUID) -> AbstractContextManager:
        """Serialize writers of one enrollment and scope one transaction."""
        pass

    @abstractmethod
    def transaction(self) -> AbstractContextManager:
        """Scope a transaction that does not lock an existing enrollment."""
        pass

    @abstractmethod
    def locked_course(self, course_id: UUID) -> AbstractContextManager:
        """Serialize admissions to one course and scope one transaction.

        Duplicate and seat checks made inside the block see every enrollment
        committed by an earlier holder of the same course.
        """
        pass

    @abstractmethod
    def load_enrollment(self, enrollment_id: UUID) -> Enrollment:
        """Load an enrollment with its approval steps.

        Raises:
            EnrollmentNotFound: If no such enrollment exists
        """
        pass

    @abstractmethod
    def find_enrollment(self, course_id: UUID, user_id: UUID) -> Optional[Enrollment]:
        pass

    @abstractmethod
    def list_pending_enrollments(self, course_id: Optional[UUID] = None) -> List[Enrollment]:
        pass

    @abstractmethod
    def list_enrollments(self, course_id: UUID) -> List[Enrollment]:
        pass

    @abstractmethod
    def count_active_enrollments(self, course_id: UUID) -> int:
        """Enrollments that hold a seat (pending or approved)."""
        pass

    @abstractmethod
    def add_enrollment(self, enrollment: Enrollment) -> None:
        pass

    @abstractmethod
    def save_enrollment(self, enrollment: Enrollment, steps: Iterable[ApprovalStep]) -> None:
        """Persist an enrollment and its steps.

        Raises:
            OptimisticConflict: If the stored version moved since loading
        """
        pass

    @abstractmethod
    def load_chain(self, category_id: UUID) -> List[ChainStep]:
        """Chain steps defined for a category (empty when none)."""
        pass

    @abstractmethod
    def known_role_ids(self) -> Set[UUID]:
        pass

    @abstractmethod
    def load_course(self, course_id: UUID) -> CourseInfo:
        pass

    @abstractmethod
    def open_attendance(self, enrollment_id: UUID) -> List[AttendanceRecord]:
        pass

    @abstractmethod
    def list_attendance(self, enrollment_id: UUID) -> List[AttendanceRecord]:
        pass

    @abstractmethod
    def load_attendance(self, attendance_id: UUID) -> AttendanceRecord:
        pass

    @abstractmethod
    def save_attendance(self, record: AttendanceRecord) -> None:
        pass


class IdentityProvider(Protocol):
    def role_grants(self, user_id: UUID) -> List[RoleGrant]:
        """Roles held by ``user_id`` with their organizational scope."""
        ...


class Directory(Protocol):
    def organization_of(self, user_id: UUID) -> Optional[UUID]:
        ...

    def is_head_of(self, actor_id: UUID, user_id: UUID) -> bool:
        """Whether ``actor_id`` heads a department ``user_id`` belongs to."""
        ...

    def email_of(self, user_id: UUID) -> Optional[str]:
        ...

    def display_name_of(self, user_id: UUID) -> str:
        ...


class EmailDispatcher(Protocol):
    def dispatch(self, enrollment_id: UUID, kind: NotificationKind) -> None:
        """Queue an automatic enrollment e-mail of ``kind``."""
        ...
