from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, ForeignKey, func
from academy.database import Base


class Group(Base):
    __tablename__ = "groups"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, unique=True, nullable=False)
    subject = Column(String, nullable=False, default="English Language Teaching")
    level = Column(String, nullable=False, default="beginner")  # beginner ... advanced
    description = Column(Text, nullable=True)
    teacher_id = Column(Integer, ForeignKey("users.id", use_alter=True, name="fk_groups_teacher_id"), nullable=True)
    max_students = Column(Integer, nullable=False, default=25)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
