import asyncio

import pytest
from sqlalchemy import select, func

from academy.core.errors import (
    AlreadyClaimed, InsufficientPoints, InvalidInput, NotFound, PreviousRewardRequired,
)
from academy.models.reward import RewardClaim
from academy.services.points import current_balance
from academy.services.rewards import claim_reward, create_reward, list_rewards, update_claim_status
from tests.conftest import make_user


@pytest.fixture
async def chain(db):
    """Notebook (order 1, 50 pts) unlocks Headphones (order 2, 30 pts)."""
    first = await create_reward(db, "Notebook", 50, 1, category="stationery")
    second = await create_reward(db, "Headphones", 30, 2, category="electronics")
    return first, second


async def test_chain_must_be_claimed_in_order(db, chain):
    first, second = chain
    student = await make_user(db, points=100)
    student_id, first_id, second_id = student.id, first.id, second.id

    with pytest.raises(PreviousRewardRequired):
        await claim_reward(db, student_id, second_id)
    assert await current_balance(db, student_id) == 100

    claim = await claim_reward(db, student_id, first_id)
    assert claim.status == "pending"
    assert claim.points_spent == 50
    assert await current_balance(db, student_id) == 50

    await claim_reward(db, student_id, second_id)
    assert await current_balance(db, student_id) == 20


async def test_reward_claimed_once(db, chain):
    first, _ = chain
    student = await make_user(db, points=200)
    student_id, first_id = student.id, first.id
    await claim_reward(db, student_id, first_id)

    with pytest.raises(AlreadyClaimed):
        await claim_reward(db, student_id, first_id)
    assert await current_balance(db, student_id) == 150


async def test_insufficient_points_is_checked_before_chain(db, chain):
    _, second = chain
    student = await make_user(db, points=10)

    with pytest.raises(InsufficientPoints):
        await claim_reward(db, student.id, second.id)


async def test_points_are_checked_before_duplicate_claim(db, chain):
    first, _ = chain
    student = await make_user(db, points=50)
    await claim_reward(db, student.id, first.id)

    with pytest.raises(InsufficientPoints):
        await claim_reward(db, student.id, first.id)


async def test_unknown_reward(db):
    student = await make_user(db, points=10)
    with pytest.raises(NotFound):
        await claim_reward(db, student.id, 12345)


async def test_failed_claim_leaves_nothing_behind(db, chain):
    _, second = chain
    student = await make_user(db, points=100)
    student_id = student.id

    with pytest.raises(PreviousRewardRequired):
        await claim_reward(db, student_id, second.id)

    claims = await db.scalar(select(func.count(RewardClaim.id)).where(RewardClaim.student_id == student_id))
    assert claims == 0


async def test_concurrent_claims_debit_once(db, session_factory, chain):
    first, _ = chain
    student = await make_user(db, points=120)

    async def claim():
        async with session_factory() as session:
            return await claim_reward(session, student.id, first.id)

    results = await asyncio.gather(claim(), claim(), claim(), return_exceptions=True)

    assert sum(1 for r in results if isinstance(r, RewardClaim)) == 1
    assert all(isinstance(r, (RewardClaim, AlreadyClaimed)) for r in results)
    assert await current_balance(db, student.id) == 70


async def test_claim_status_moves_forward_only(db, chain):
    first, _ = chain
    student = await make_user(db, points=50)
    claim = await claim_reward(db, student.id, first.id)

    delivered = await update_claim_status(db, claim.id, "delivered")
    assert delivered.status == "delivered"

    with pytest.raises(InvalidInput):
        await update_claim_status(db, claim.id, "cancelled")
    with pytest.raises(InvalidInput):
        await update_claim_status(db, claim.id, "pending")


async def test_cancelling_does_not_refund(db, chain):
    first, _ = chain
    student = await make_user(db, points=60)
    claim = await claim_reward(db, student.id, first.id)

    await update_claim_status(db, claim.id, "cancelled")

    assert await current_balance(db, student.id) == 10


async def test_reward_order_is_unique(db, chain):
    with pytest.raises(InvalidInput):
        await create_reward(db, "Another notebook", 10, 1)


async def test_list_rewards_for_student(db, chain):
    first, second = chain
    student = await make_user(db, points=60)

    before = await list_rewards(db, student)
    assert [(item["reward"].id, item["unlocked"], item["can_claim"]) for item in before] == [
        (first.id, True, True),
        (second.id, False, False),
    ]

    await claim_reward(db, student.id, first.id)
    after = await list_rewards(db, student)
    assert after[0]["claimed"] and after[0]["claim_status"] == "pending"
    assert after[1]["unlocked"] is True
    assert after[1]["can_claim"] is False  # 10 points left


async def test_list_rewards_for_staff(db, chain, teacher):
    items = await list_rewards(db, teacher)
    assert [item["reward"].order for item in items] == [1, 2]
    assert "claimed" not in items[0]
