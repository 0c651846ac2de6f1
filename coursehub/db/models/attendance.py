import uuid
from datetime import datetime
from sqlalchemy import Column, DateTime, ForeignKey, Uuid

from coursehub.db.base import Base


class CourseAttendance(Base):
    __tablename__ = "course_attendance"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    enrollment_id = Column(
        Uuid(as_uuid=True), ForeignKey("course_enrollments.id", ondelete="CASCADE"), nullable=False, index=True
    )
    checked_in_at = Column(DateTime, nullable=False)
    checked_out_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    def __repr__(self) -> str:
        return f"<CourseAttendance {self.enrollment_id} {self.checked_in_at}>"
