# academy/services/rewards.py
import logging
from datetime import datetime, timezone
from typing import List

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from academy.core.concurrency import student_locks
from academy.core.errors import (
    AlreadyClaimed, InsufficientPoints, InvalidInput, NotFound, PreviousRewardRequired,
)
from academy.core.notifications import broker, POINTS_CHANGED, REWARD_CLAIMED
from academy.models.reward import Reward, RewardClaim, REWARD_CATEGORIES
from academy.models.user import User
from academy.services.points import apply_debit, current_balance

logger = logging.getLogger(__name__)

# Claim status moves forward only
STATUS_TRANSITIONS = {
    "pending": {"delivered", "cancelled"},
    "delivered": set(),
    "cancelled": set(),
}


async def _claim_for(db: AsyncSession, reward_id: int, student_id: int):
    return await db.scalar(
        select(RewardClaim)
        .where(RewardClaim.reward_id == reward_id)
        .where(RewardClaim.student_id == student_id)
    )


async def _previous_reward(db: AsyncSession, reward: Reward):
    return await db.scalar(
        select(Reward)
        .where(Reward.order == reward.order - 1)
        .where(Reward.is_active.is_(True))
    )


async def claim_reward(db: AsyncSession, student_id: int, reward_id: int) -> RewardClaim:
    """
    Claim a reward and pay for it in one transaction.

    Checks run in a fixed order and the first failure wins: reward exists,
    enough points, not claimed yet, previous reward in the chain claimed.
    """
    async with student_locks.hold(student_id):
        try:
            reward = await db.get(Reward, reward_id)
            if reward is None or not reward.is_active:
                raise NotFound("Reward not found")

            balance = await current_balance(db, student_id)
            if balance < reward.points_required:
                raise InsufficientPoints(
                    f"Insufficient points: have {balance}, need {reward.points_required}"
                )

            if await _claim_for(db, reward.id, student_id):
                raise AlreadyClaimed()

            previous = await _previous_reward(db, reward)
            if previous is not None and not await _claim_for(db, previous.id, student_id):
                raise PreviousRewardRequired(f"Claim \"{previous.title}\" first")

            claim = RewardClaim(
                reward_id=reward.id,
                student_id=student_id,
                status="pending",
                points_spent=reward.points_required,
                claimed_at=datetime.now(timezone.utc),
            )
            db.add(claim)
            try:
                await db.flush()
            except IntegrityError:
                raise AlreadyClaimed()

            # Fails with InsufficientPoints if the balance moved; the claim rolls back with it
            balance = await apply_debit(
                db, student_id, reward.points_required, "reward_claim",
                reference=f"reward:{reward.id}", reason=reward.title,
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise

    await db.refresh(claim)
    logger.info(
        "Student %s claimed reward %s (order=%s, -%d, balance=%d)",
        student_id, reward.id, reward.order, reward.points_required, balance,
    )
    broker.publish(student_id, REWARD_CLAIMED, {"reward_id": reward.id, "claim_id": claim.id, "status": claim.status})
    broker.publish(student_id, POINTS_CHANGED, {
        "delta": -reward.points_required, "balance": balance, "kind": "reward_claim",
    })
    return claim


async def update_claim_status(db: AsyncSession, claim_id: int, status: str) -> RewardClaim:
    claim = await db.get(RewardClaim, claim_id)
    if claim is None:
        raise NotFound("Claim not found")
    if status not in STATUS_TRANSITIONS:
        raise InvalidInput(f"Unknown claim status: {status}")
    if status not in STATUS_TRANSITIONS[claim.status]:
        raise InvalidInput(f"Cannot move claim from {claim.status} to {status}")

    claim.status = status
    claim.updated_at = datetime.now(timezone.utc)
    await db.commit()
    await db.refresh(claim)
    logger.info("Claim %s is now %s", claim.id, status)
    broker.publish(claim.student_id, REWARD_CLAIMED, {
        "reward_id": claim.reward_id, "claim_id": claim.id, "status": claim.status,
    })
    return claim


async def create_reward(
    db: AsyncSession,
    title: str,
    points_required: int,
    order: int,
    description: str | None = None,
    category: str = "other",
    image: str | None = None,
) -> Reward:
    if points_required < 1:
        raise InvalidInput("Points required must be at least 1")
    if category not in REWARD_CATEGORIES:
        raise InvalidInput(f"Unknown category: {category}")
    taken = await db.scalar(select(Reward.id).where(Reward.order == order))
    if taken:
        raise InvalidInput(f"A reward with order {order} already exists")

    reward = Reward(
        title=title,
        description=description,
        points_required=points_required,
        order=order,
        category=category,
        image=image,
        is_active=True,
    )
    db.add(reward)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise InvalidInput(f"A reward with order {order} already exists")
    await db.refresh(reward)
    return reward


async def list_rewards(db: AsyncSession, user: User) -> List[dict]:
    """Active rewards in chain order; students also get their claim state per reward."""
    result = await db.execute(
        select(Reward).where(Reward.is_active.is_(True)).order_by(Reward.order)
    )
    rewards = result.scalars().all()
    if user.role != "student":
        return [{"reward": reward} for reward in rewards]

    balance = await current_balance(db, user.id)
    claims = await db.execute(select(RewardClaim).where(RewardClaim.student_id == user.id))
    claimed = {claim.reward_id: claim for claim in claims.scalars().all()}
    claimed_orders = {reward.order for reward in rewards if reward.id in claimed}
    active_orders = {reward.order for reward in rewards}

    items = []
    for reward in rewards:
        claim = claimed.get(reward.id)
        previous_order = reward.order - 1
        unlocked = previous_order not in active_orders or previous_order in claimed_orders
        items.append({
            "reward": reward,
            "claimed": claim is not None,
            "claim_status": claim.status if claim else None,
            "unlocked": unlocked,
            "can_claim": claim is None and unlocked and balance >= reward.points_required,
        })
    return items


async def list_claims(db: AsyncSession, reward_id: int) -> List[RewardClaim]:
    if await db.get(Reward, reward_id) is None:
        raise NotFound("Reward not found")
    result = await db.execute(
        select(RewardClaim).where(RewardClaim.reward_id == reward_id).order_by(RewardClaim.id)
    )
    return result.scalars().all()
