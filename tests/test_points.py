import asyncio

import pytest
from sqlalchemy import select, func

from academy.core.errors import AlreadyCompleted, InsufficientPoints, InvalidInput, NotFound
from academy.core.notifications import broker, POINTS_CHANGED
from academy.models.points import CompletedBonusTask, PointTransaction
from academy.services.points import (
    bonus_leaderboard, complete_bonus_task, credit_points, current_balance, debit_points, list_achievements,
    list_bonus_tasks, point_history,
)
from tests.conftest import make_user


async def test_credit_and_debit(db):
    student = await make_user(db)

    assert await credit_points(db, student.id, 40, reason="Olympiad") == 40
    assert await debit_points(db, student.id, 15, reason="Correction") == 25
    assert await current_balance(db, student.id) == 25


async def test_debit_never_goes_negative(db):
    student = await make_user(db, points=10)
    student_id = student.id

    with pytest.raises(InsufficientPoints):
        await debit_points(db, student_id, 11, reason="Too much")

    assert await current_balance(db, student_id) == 10
    transactions = await db.scalar(select(func.count(PointTransaction.id)))
    assert transactions == 0


async def test_credit_rejects_bad_input(db):
    student = await make_user(db)
    student_id = student.id
    with pytest.raises(InvalidInput):
        await credit_points(db, student_id, 0)
    with pytest.raises(InvalidInput):
        await credit_points(db, student_id, 5, kind="gift")


async def test_balance_of_non_student(db, teacher):
    with pytest.raises(NotFound):
        await current_balance(db, teacher.id)
    with pytest.raises(NotFound):
        await credit_points(db, teacher.id, 5)


async def test_concurrent_debits_never_overdraw(db, session_factory):
    student = await make_user(db, points=100)

    async def spend():
        async with session_factory() as session:
            return await debit_points(session, student.id, 30, reason="Shop")

    results = await asyncio.gather(*(spend() for _ in range(5)), return_exceptions=True)

    succeeded = [r for r in results if isinstance(r, int)]
    rejected = [r for r in results if isinstance(r, InsufficientPoints)]
    assert len(succeeded) == 3
    assert len(rejected) == 2
    assert sorted(succeeded) == [10, 40, 70]
    assert await current_balance(db, student.id) == 10


async def test_history_matches_balance(db):
    student = await make_user(db)
    await credit_points(db, student.id, 20, reason="a")
    await credit_points(db, student.id, 5, kind="competition", reason="b")
    await debit_points(db, student.id, 12, reason="c")

    history = await point_history(db, student.id)

    assert [t.amount for t in history] == [-12, 5, 20]
    assert history[0].balance_after == 13
    assert sum(t.amount for t in history) == await current_balance(db, student.id)


async def test_credit_publishes_points_changed(db):
    student = await make_user(db)
    queue = broker.subscribe(student.id)
    try:
        await credit_points(db, student.id, 7, reason="Quiz")
        event = queue.get_nowait()
    finally:
        broker.unsubscribe(student.id, queue)
    assert event["type"] == POINTS_CHANGED
    assert event["data"] == {"delta": 7, "balance": 7, "kind": "adjustment"}


async def test_bonus_task_credits_once(db):
    student = await make_user(db)
    student_id = student.id

    result = await complete_bonus_task(db, student_id, 3, proof="Helped Bob")

    assert result.points_earned == 15
    assert result.total_points == 15
    assert [a.title for a in result.new_achievements] == ["First bonus task"]

    with pytest.raises(AlreadyCompleted):
        await complete_bonus_task(db, student_id, 3)
    assert await current_balance(db, student_id) == 15
    rows = await db.scalar(
        select(func.count(CompletedBonusTask.id)).where(CompletedBonusTask.user_id == student_id)
    )
    assert rows == 1


async def test_bonus_task_concurrent_duplicates(db, session_factory):
    student = await make_user(db)

    async def complete():
        async with session_factory() as session:
            return await complete_bonus_task(session, student.id, 4)

    results = await asyncio.gather(complete(), complete(), return_exceptions=True)

    assert sum(1 for r in results if isinstance(r, AlreadyCompleted)) == 1
    assert await current_balance(db, student.id) == 50


async def test_unknown_bonus_task(db):
    student = await make_user(db)
    with pytest.raises(NotFound):
        await complete_bonus_task(db, student.id, 999)


async def test_achievements_fire_on_milestones_only(db):
    student = await make_user(db)
    earned_at = {}
    for count, task_id in enumerate(range(1, 12), start=1):
        result = await complete_bonus_task(db, student.id, task_id)
        if result.new_achievements:
            earned_at[count] = [a.title for a in result.new_achievements]

    assert earned_at == {
        1: ["First bonus task"],
        5: ["Active learner"],
        10: ["Bonus master"],
    }
    assert len(await list_achievements(db, student.id)) == 3


async def test_list_bonus_tasks_marks_completed(db):
    student = await make_user(db)
    await complete_bonus_task(db, student.id, 2)

    listing = await list_bonus_tasks(db, student.id)

    assert listing["total_available"] == 12
    assert listing["total_completed"] == 1
    assert listing["total_points"] == 25
    done = [task["id"] for task in listing["tasks"] if task["completed"]]
    assert done == [2]


async def test_leaderboard_orders_by_points(db):
    low = await make_user(db, first_name="Low")
    high = await make_user(db, first_name="High")
    await complete_bonus_task(db, low.id, 1)
    await complete_bonus_task(db, high.id, 4)
    await complete_bonus_task(db, high.id, 1)

    board = await bonus_leaderboard(db, limit=5)

    assert [entry["student_id"] for entry in board] == [high.id, low.id]
    assert board[0]["points"] == 60
    assert board[0]["completed_tasks"] == 2
    assert board[1]["rank"] == 2
