from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, ForeignKey, UniqueConstraint, CheckConstraint, func
from academy.database import Base

REWARD_CATEGORIES = ("stationery", "books", "electronics", "certificates", "other")
CLAIM_STATUSES = ("pending", "delivered", "cancelled")


class Reward(Base):
    __tablename__ = "rewards"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    points_required = Column(Integer, nullable=False)
    order = Column(Integer, nullable=False, unique=True)  # position in the unlock chain
    category = Column(String, nullable=False, default="other")
    image = Column(String, nullable=True)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        CheckConstraint("points_required >= 1", name="ck_rewards_points_required_positive"),
    )


class RewardClaim(Base):
    __tablename__ = "reward_claims"

    id = Column(Integer, primary_key=True, index=True)
    reward_id = Column(Integer, ForeignKey("rewards.id", ondelete="CASCADE"), nullable=False)
    student_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    status = Column(String, nullable=False, default="pending")  # pending, delivered, cancelled
    points_spent = Column(Integer, nullable=False)
    claimed_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("reward_id", "student_id", name="uq_reward_claim_reward_student"),
    )
