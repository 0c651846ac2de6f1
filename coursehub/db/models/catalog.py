"""Course catalog models: roles, categories, approval chains and courses."""

import uuid
from datetime import datetime
from sqlalchemy import (
    Column, String, DateTime, Boolean, Integer, ForeignKey, Uuid, UniqueConstraint,
)

from coursehub.db.base import Base


class Role(Base):
    """
    An approver role.

    Roles are scoped to one organization unless they apply to all of them.
    """
    __tablename__ = "roles"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(100), nullable=False, unique=True)
    organization_id = Column(Uuid(as_uuid=True), nullable=True, index=True)
    applies_to_all_organizations = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    def __repr__(self) -> str:
        return f"<Role {self.name}>"


class CourseCategory(Base):
    __tablename__ = "course_categories"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False, unique=True)
    organization_id = Column(Uuid(as_uuid=True), nullable=True, index=True)

    # Hours before course start after which enrollees can no longer excuse themselves
    excuse_window_hours = Column(Integer, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self) -> str:
        return f"<CourseCategory {self.name}>"


class ApprovalChainStep(Base):
    """
    One step of a category's approval chain.

    Head approval steps carry no role; every other step names the role
    whose holders may resolve it.
    """
    __tablename__ = "approval_chain_steps"
    __table_args__ = (
        UniqueConstraint("category_id", "approval_order", name="uq_approval_chain_steps_category_order"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    category_id = Column(
        Uuid(as_uuid=True), ForeignKey("course_categories.id", ondelete="CASCADE"), nullable=False, index=True
    )
    approval_order = Column(Integer, nullable=False)
    is_head_approval = Column(Boolean, nullable=False, default=False)
    is_final = Column(Boolean, nullable=False, default=False)
    role_id = Column(Uuid(as_uuid=True), ForeignKey("roles.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    def __repr__(self) -> str:
        return f"<ApprovalChainStep {self.category_id}#{self.approval_order}>"


class Course(Base):
    __tablename__ = "courses"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    category_id = Column(Uuid(as_uuid=True), ForeignKey("course_categories.id"), nullable=False, index=True)
    organization_id = Column(Uuid(as_uuid=True), nullable=True, index=True)
    name = Column(String(255), nullable=False)
    code = Column(String(50), nullable=True)
    status = Column(String(50), nullable=False, default="draft", index=True)
    start_at = Column(DateTime, nullable=True)
    end_at = Column(DateTime, nullable=True)
    available_seats = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self) -> str:
        return f"<Course {self.name} [{self.status}]>"
