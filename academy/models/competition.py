from sqlalchemy import (
    Column, Integer, String, Text, Float, Boolean, DateTime, ForeignKey, JSON, Table, UniqueConstraint, func,
)
from sqlalchemy.orm import relationship
from academy.database import Base

competition_groups = Table(
    "competition_groups",
    Base.metadata,
    Column("competition_id", Integer, ForeignKey("competitions.id", ondelete="CASCADE"), primary_key=True),
    Column("group_id", Integer, ForeignKey("groups.id", ondelete="CASCADE"), primary_key=True),
)


class Competition(Base):
    __tablename__ = "competitions"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    start_date = Column(DateTime(timezone=True), nullable=False)
    end_date = Column(DateTime(timezone=True), nullable=False)
    rules = Column(JSON, nullable=False, default=list)
    prizes = Column(JSON, nullable=False, default=list)  # [{"position", "title", "points", "gift"}]
    created_by_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    is_cancelled = Column(Boolean, default=False)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    eligible_groups = relationship("Group", secondary=competition_groups, lazy="selectin")
    participants = relationship(
        "CompetitionParticipant", order_by="CompetitionParticipant.id", lazy="selectin",
        cascade="all, delete-orphan",
    )
    winners = relationship(
        "CompetitionWinner", order_by="CompetitionWinner.position", lazy="selectin",
        cascade="all, delete-orphan",
    )


class CompetitionParticipant(Base):
    __tablename__ = "competition_participants"

    id = Column(Integer, primary_key=True, index=True)
    competition_id = Column(Integer, ForeignKey("competitions.id", ondelete="CASCADE"), nullable=False)
    student_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    score = Column(Float, nullable=False, default=0.0)
    registered_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint("competition_id", "student_id", name="uq_participant_competition_student"),
    )


class CompetitionWinner(Base):
    __tablename__ = "competition_winners"

    id = Column(Integer, primary_key=True, index=True)
    competition_id = Column(Integer, ForeignKey("competitions.id", ondelete="CASCADE"), nullable=False)
    student_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    position = Column(Integer, nullable=False)
    prize = Column(String, nullable=True)
    points_awarded = Column(Integer, nullable=False, default=0)
    announced_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint("competition_id", "position", name="uq_winner_competition_position"),
    )
