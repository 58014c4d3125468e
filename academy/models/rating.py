# academy/models/rating.py
from sqlalchemy import Column, Integer, Float, DateTime, ForeignKey, UniqueConstraint, Index, func
from sqlalchemy.orm import relationship
from academy.database import Base


class Rating(Base):
    __tablename__ = "ratings"

    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    group_id = Column(Integer, ForeignKey("groups.id", ondelete="CASCADE"), nullable=False)

    # Components, 0-10 scale
    grades = Column(Float, nullable=False, default=0.0)
    attendance = Column(Float, nullable=False, default=0.0)
    homework_completion = Column(Float, nullable=False, default=0.0)
    class_participation = Column(Float, nullable=False, default=0.0)

    # Derived
    total_score = Column(Integer, nullable=False, default=0)
    rank_in_group = Column(Integer, nullable=False, default=0)  # 0 = never resolved

    # Raw counters
    total_homeworks = Column(Integer, nullable=False, default=0)
    completed_homeworks = Column(Integer, nullable=False, default=0)
    total_classes = Column(Integer, nullable=False, default=0)
    attended_classes = Column(Integer, nullable=False, default=0)
    participation_count = Column(Integer, nullable=False, default=0)
    average_grade = Column(Float, nullable=False, default=0.0)

    version = Column(Integer, nullable=False)
    last_updated = Column(DateTime(timezone=True), server_default=func.now())
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    monthly_stats = relationship(
        "RatingMonthlyStat",
        back_populates="rating",
        order_by="RatingMonthlyStat.id",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __table_args__ = (
        UniqueConstraint("student_id", "group_id", name="uq_rating_student_group"),
        Index("ix_ratings_group_total_score", "group_id", "total_score"),
    )
    __mapper_args__ = {"version_id_col": version}


class RatingMonthlyStat(Base):
    __tablename__ = "rating_monthly_stats"

    id = Column(Integer, primary_key=True, index=True)
    rating_id = Column(Integer, ForeignKey("ratings.id", ondelete="CASCADE"), nullable=False)
    month = Column(Integer, nullable=False)
    year = Column(Integer, nullable=False)
    grades = Column(Float, nullable=False)
    attendance = Column(Float, nullable=False)
    homework_completion = Column(Float, nullable=False)
    class_participation = Column(Float, nullable=False)
    total_score = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    rating = relationship("Rating", back_populates="monthly_stats")

    __table_args__ = (
        UniqueConstraint("rating_id", "month", "year", name="uq_rating_month_year"),
    )
