# academy/services/points.py
"""
Points ledger: the only code that changes ``User.points``.

Balance changes are single conditional UPDATE statements, so a debit can never
pass the ``points >= amount`` check against a stale balance. Each movement is
also written to ``point_transactions``.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import select, update, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from academy.core.concurrency import student_locks
from academy.core.errors import AlreadyCompleted, InsufficientPoints, InvalidInput, NotFound
from academy.core.notifications import broker, POINTS_CHANGED
from academy.data.bonus_tasks import bonus_tasks, bonus_tasks_by_id, achievement_milestones
from academy.models.points import Achievement, CompletedBonusTask, PointTransaction
from academy.models.user import User

logger = logging.getLogger(__name__)

CREDIT_KINDS = ("bonus_task", "competition", "adjustment")


@dataclass
class BonusTaskResult:
    points_earned: int
    total_points: int
    new_achievements: List[Achievement] = field(default_factory=list)


async def current_balance(db: AsyncSession, student_id: int) -> int:
    balance = await db.scalar(
        select(User.points).where(User.id == student_id).where(User.role == "student")
    )
    if balance is None:
        raise NotFound("Student not found")
    return balance


async def apply_credit(
    db: AsyncSession,
    student_id: int,
    amount: int,
    kind: str,
    reference: Optional[str] = None,
    reason: Optional[str] = None,
) -> int:
    """Credit inside the caller's transaction. The caller holds the student lock and commits."""
    if amount < 1:
        raise InvalidInput("Credit amount must be at least 1")
    result = await db.execute(
        update(User)
        .where(User.id == student_id)
        .where(User.role == "student")
        .values(points=User.points + amount)
        .returning(User.points)
        .execution_options(synchronize_session=False)
    )
    balance = result.scalar_one_or_none()
    if balance is None:
        raise NotFound("Student not found")
    db.add(PointTransaction(
        user_id=student_id,
        amount=amount,
        kind=kind,
        reference=reference,
        reason=reason,
        balance_after=balance,
        created_at=datetime.now(timezone.utc),
    ))
    return balance


async def apply_debit(
    db: AsyncSession,
    student_id: int,
    amount: int,
    kind: str,
    reference: Optional[str] = None,
    reason: Optional[str] = None,
) -> int:
    """Debit inside the caller's transaction; rejected without touching the balance if it would go negative."""
    if amount < 1:
        raise InvalidInput("Debit amount must be at least 1")
    result = await db.execute(
        update(User)
        .where(User.id == student_id)
        .where(User.role == "student")
        .where(User.points >= amount)
        .values(points=User.points - amount)
        .returning(User.points)
        .execution_options(synchronize_session=False)
    )
    balance = result.scalar_one_or_none()
    if balance is None:
        available = await current_balance(db, student_id)
        raise InsufficientPoints(f"Insufficient points: have {available}, need {amount}")
    db.add(PointTransaction(
        user_id=student_id,
        amount=-amount,
        kind=kind,
        reference=reference,
        reason=reason,
        balance_after=balance,
        created_at=datetime.now(timezone.utc),
    ))
    return balance


async def credit_points(
    db: AsyncSession,
    student_id: int,
    amount: int,
    kind: str = "adjustment",
    reference: Optional[str] = None,
    reason: Optional[str] = None,
) -> int:
    if kind not in CREDIT_KINDS:
        raise InvalidInput(f"Unknown credit kind: {kind}")
    async with student_locks.hold(student_id):
        try:
            balance = await apply_credit(db, student_id, amount, kind, reference, reason)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

    logger.info("Credited %d points to student=%s (%s), balance=%d", amount, student_id, kind, balance)
    broker.publish(student_id, POINTS_CHANGED, {"delta": amount, "balance": balance, "kind": kind})
    return balance


async def debit_points(
    db: AsyncSession,
    student_id: int,
    amount: int,
    reason: str,
    reference: Optional[str] = None,
) -> int:
    async with student_locks.hold(student_id):
        try:
            balance = await apply_debit(db, student_id, amount, "adjustment", reference, reason)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

    logger.info("Debited %d points from student=%s, balance=%d", amount, student_id, balance)
    broker.publish(student_id, POINTS_CHANGED, {"delta": -amount, "balance": balance, "kind": "adjustment"})
    return balance


async def complete_bonus_task(
    db: AsyncSession,
    student_id: int,
    task_id: int,
    proof: Optional[str] = None,
    notes: Optional[str] = None,
) -> BonusTaskResult:
    """
    Record a bonus task completion, credit its points and award milestone
    achievements. A task id can be completed once per student.
    """
    task = bonus_tasks_by_id.get(task_id)
    if task is None:
        raise NotFound("Bonus task not found")

    async with student_locks.hold(student_id):
        try:
            await current_balance(db, student_id)
            already = await db.scalar(
                select(CompletedBonusTask.id)
                .where(CompletedBonusTask.user_id == student_id)
                .where(CompletedBonusTask.task_id == task_id)
            )
            if already:
                raise AlreadyCompleted()

            now = datetime.now(timezone.utc)
            db.add(CompletedBonusTask(
                user_id=student_id,
                task_id=task_id,
                proof=proof or "",
                notes=notes or "",
                points_earned=task["points"],
                completed_at=now,
            ))
            try:
                await db.flush()
            except IntegrityError:
                raise AlreadyCompleted()

            balance = await apply_credit(
                db, student_id, task["points"], "bonus_task",
                reference=f"bonus_task:{task_id}", reason=task["title"],
            )

            completed_count = await db.scalar(
                select(func.count(CompletedBonusTask.id)).where(CompletedBonusTask.user_id == student_id)
            )
            new_achievements = []
            # Equality, not >=, so each milestone fires exactly once
            milestone = achievement_milestones.get(completed_count)
            if milestone:
                title, description = milestone
                achievement = Achievement(user_id=student_id, title=title, description=description, earned_at=now)
                db.add(achievement)
                new_achievements.append(achievement)

            await db.commit()
        except Exception:
            await db.rollback()
            raise

    logger.info(
        "Student %s completed bonus task %s (+%d, balance=%d, achievements=%d)",
        student_id, task_id, task["points"], balance, len(new_achievements),
    )
    broker.publish(student_id, POINTS_CHANGED, {"delta": task["points"], "balance": balance, "kind": "bonus_task"})
    return BonusTaskResult(points_earned=task["points"], total_points=balance, new_achievements=new_achievements)


async def list_bonus_tasks(db: AsyncSession, student_id: int) -> dict:
    result = await db.execute(
        select(CompletedBonusTask).where(CompletedBonusTask.user_id == student_id)
    )
    completed = {ct.task_id: ct for ct in result.scalars().all()}
    tasks = [
        {
            **task,
            "completed": task["id"] in completed,
            "completed_at": completed[task["id"]].completed_at if task["id"] in completed else None,
        }
        for task in bonus_tasks
    ]
    return {
        "tasks": tasks,
        "total_available": len(bonus_tasks),
        "total_completed": len(completed),
        "total_points": sum(ct.points_earned for ct in completed.values()),
    }


async def bonus_leaderboard(db: AsyncSession, limit: int = 10) -> list[dict]:
    completed_counts = (
        select(CompletedBonusTask.user_id, func.count(CompletedBonusTask.id).label("completed"))
        .group_by(CompletedBonusTask.user_id)
        .subquery()
    )
    result = await db.execute(
        select(User, func.coalesce(completed_counts.c.completed, 0))
        .outerjoin(completed_counts, completed_counts.c.user_id == User.id)
        .where(User.role == "student")
        .order_by(User.points.desc(), User.id.asc())
        .limit(limit)
        .execution_options(populate_existing=True)
    )
    return [
        {
            "rank": position,
            "student_id": user.id,
            "name": user.full_name,
            "points": user.points,
            "completed_tasks": completed,
        }
        for position, (user, completed) in enumerate(result.all(), start=1)
    ]


async def point_history(db: AsyncSession, student_id: int) -> List[PointTransaction]:
    await current_balance(db, student_id)
    result = await db.execute(
        select(PointTransaction)
        .where(PointTransaction.user_id == student_id)
        .order_by(PointTransaction.id.desc())
    )
    return result.scalars().all()


async def list_achievements(db: AsyncSession, student_id: int) -> List[Achievement]:
    result = await db.execute(
        select(Achievement).where(Achievement.user_id == student_id).order_by(Achievement.id)
    )
    return result.scalars().all()
