from sqlalchemy import Column, Integer, Boolean, Date, DateTime, ForeignKey, UniqueConstraint, func
from academy.database import Base


class ClassAttendance(Base):
    __tablename__ = "class_attendance"

    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    group_id = Column(Integer, ForeignKey("groups.id", ondelete="CASCADE"), nullable=False)
    session_date = Column(Date, nullable=False)
    present = Column(Boolean, nullable=False, default=True)
    participation = Column(Integer, nullable=True)  # 0-10, None = not assessed
    marked_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("student_id", "group_id", "session_date", name="uq_attendance_student_group_date"),
    )
