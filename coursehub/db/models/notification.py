"""Enrollment e-mail history."""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, DateTime, Boolean, ForeignKey, Text, Uuid

from coursehub.db.base import Base


class EnrollmentEmailHistory(Base):
    """
    Log of every enrollment e-mail delivery attempt, automatic or manual.
    """
    __tablename__ = "enrollment_email_history"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    enrollment_id = Column(
        Uuid(as_uuid=True), ForeignKey("course_enrollments.id", ondelete="CASCADE"), nullable=False, index=True
    )

    kind = Column(String(50), nullable=False)  # confirmation, final_approval, status
    recipient = Column(String(255), nullable=False)
    subject = Column(String(512), nullable=False)
    body = Column(Text, nullable=False)

    is_manual = Column(Boolean, nullable=False, default=False)
    is_success = Column(Boolean, nullable=False, default=True)
    error_message = Column(Text, nullable=True)
    sent_by = Column(String(255), nullable=False, default="system")
    sent_at = Column(DateTime, default=datetime.utcnow, index=True)

    def __repr__(self) -> str:
        return f"<EnrollmentEmailHistory {self.kind} to {self.recipient}>"
