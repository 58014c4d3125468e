# academy/services/rating.py
"""
Rating aggregation and group ranking.

A Rating is never edited field by field. Every grading or attendance event
re-derives the raw counters from homework submissions and attendance rows,
recomputes the four components and the weighted total, and then the whole
group is re-ranked.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Tuple

from sqlalchemy import select, func, case
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from academy.core.concurrency import rating_locks, group_locks, retry_on_conflict
from academy.core.errors import Conflict, InvalidInput, NotFound
from academy.core.notifications import broker, RANK_CHANGED
from academy.models.attendance import ClassAttendance
from academy.models.group import Group
from academy.models.homework import Homework, HomeworkSubmission
from academy.models.rating import Rating, RatingMonthlyStat
from academy.models.user import User

logger = logging.getLogger(__name__)

WEIGHTS = {
    "grades": Decimal("0.4"),
    "attendance": Decimal("0.25"),
    "homework_completion": Decimal("0.25"),
    "class_participation": Decimal("0.1"),
}
SCALE_MAX = 10


@dataclass(frozen=True)
class RatingFacts:
    total_homeworks: int = 0
    completed_homeworks: int = 0
    average_grade: float = 0.0
    total_classes: int = 0
    attended_classes: int = 0
    participation_count: int = 0
    class_participation: float = 0.0


def round_half_up(value, places: int = 0) -> Decimal:
    exponent = Decimal(1).scaleb(-places)
    return Decimal(str(value)).quantize(exponent, rounding=ROUND_HALF_UP)


def ratio_score(part: int, whole: int) -> int:
    """``part/whole`` on the 0-10 scale, rounded half-up."""
    return int((Decimal(part) * SCALE_MAX / Decimal(whole)).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def check_component(name: str, value) -> None:
    if value is None or not (0 <= value <= SCALE_MAX):
        raise InvalidInput(f"{name} must be between 0 and {SCALE_MAX}, got {value}")


def weighted_total(grades, attendance, homework_completion, class_participation) -> int:
    components = {
        "grades": grades,
        "attendance": attendance,
        "homework_completion": homework_completion,
        "class_participation": class_participation,
    }
    for name, value in components.items():
        check_component(name, value)
    total = sum(Decimal(str(value)) * WEIGHTS[name] for name, value in components.items())
    return int(round_half_up(total))


def validate_facts(facts: RatingFacts) -> None:
    counters = (
        ("total_homeworks", facts.total_homeworks),
        ("completed_homeworks", facts.completed_homeworks),
        ("total_classes", facts.total_classes),
        ("attended_classes", facts.attended_classes),
        ("participation_count", facts.participation_count),
    )
    for name, value in counters:
        if value < 0:
            raise InvalidInput(f"{name} cannot be negative")
    if facts.completed_homeworks > facts.total_homeworks:
        raise InvalidInput("completed_homeworks cannot exceed total_homeworks")
    if facts.attended_classes > facts.total_classes:
        raise InvalidInput("attended_classes cannot exceed total_classes")
    if facts.participation_count > facts.total_classes:
        raise InvalidInput("participation_count cannot exceed total_classes")
    check_component("average_grade", facts.average_grade)
    check_component("class_participation", facts.class_participation)


def apply_facts(rating: Rating, facts: RatingFacts) -> Rating:
    """Overwrite ``rating`` from a complete fact set. Pure apart from ``last_updated``."""
    validate_facts(facts)

    rating.total_homeworks = facts.total_homeworks
    rating.completed_homeworks = facts.completed_homeworks
    rating.total_classes = facts.total_classes
    rating.attended_classes = facts.attended_classes
    rating.participation_count = facts.participation_count
    rating.average_grade = facts.average_grade

    rating.grades = facts.average_grade
    rating.class_participation = facts.class_participation
    # With no homework or classes yet the ratio is undefined; keep the old value
    if facts.total_homeworks > 0:
        rating.homework_completion = ratio_score(facts.completed_homeworks, facts.total_homeworks)
    if facts.total_classes > 0:
        rating.attendance = ratio_score(facts.attended_classes, facts.total_classes)

    rating.total_score = weighted_total(
        rating.grades, rating.attendance, rating.homework_completion, rating.class_participation
    )
    rating.last_updated = datetime.now(timezone.utc)
    return rating


def new_rating(student_id: int, group_id: int) -> Rating:
    return Rating(
        student_id=student_id,
        group_id=group_id,
        grades=0.0,
        attendance=0.0,
        homework_completion=0.0,
        class_participation=0.0,
        total_score=0,
        rank_in_group=0,
        total_homeworks=0,
        completed_homeworks=0,
        total_classes=0,
        attended_classes=0,
        participation_count=0,
        average_grade=0.0,
        last_updated=datetime.now(timezone.utc),
        monthly_stats=[],
    )


async def collect_facts(db: AsyncSession, student_id: int, group_id: int) -> RatingFacts:
    """Read the authoritative homework and attendance records for one student in one group."""
    total_homeworks = await db.scalar(
        select(func.count(Homework.id))
        .where(Homework.group_id == group_id)
        .where(Homework.is_active.is_(True))
    )

    submissions = await db.execute(
        select(
            func.count(HomeworkSubmission.id),
            func.count(HomeworkSubmission.total_grade),
            func.sum(HomeworkSubmission.total_grade),
        )
        .join(Homework, Homework.id == HomeworkSubmission.homework_id)
        .where(HomeworkSubmission.student_id == student_id)
        .where(Homework.group_id == group_id)
        .where(Homework.is_active.is_(True))
    )
    completed, graded, grade_sum = submissions.one()
    # A graded 0 is a real grade and pulls the average down; only ungraded submissions are skipped
    average_grade = float(round_half_up(Decimal(str(grade_sum)) / graded, 2)) if graded else 0.0

    attendance = await db.execute(
        select(
            func.count(ClassAttendance.id),
            func.sum(case((ClassAttendance.present.is_(True), 1), else_=0)),
            func.count(ClassAttendance.participation),
            func.sum(ClassAttendance.participation),
        )
        .where(ClassAttendance.student_id == student_id)
        .where(ClassAttendance.group_id == group_id)
    )
    total_classes, attended, participation_count, participation_sum = attendance.one()
    class_participation = (
        float(round_half_up(Decimal(participation_sum) / participation_count))
        if participation_count else 0.0
    )

    return RatingFacts(
        total_homeworks=total_homeworks or 0,
        completed_homeworks=completed or 0,
        average_grade=average_grade,
        total_classes=total_classes or 0,
        attended_classes=attended or 0,
        participation_count=participation_count or 0,
        class_participation=class_participation,
    )


async def ensure_rating(db: AsyncSession, student_id: int, group_id: int) -> Rating:
    """Load the Rating row, creating it zeroed when the student belongs to the group."""
    result = await db.execute(
        select(Rating)
        .where(Rating.student_id == student_id)
        .where(Rating.group_id == group_id)
        .execution_options(populate_existing=True)
    )
    rating = result.scalar_one_or_none()
    if rating:
        return rating

    student = await db.scalar(
        select(User)
        .where(User.id == student_id)
        .where(User.role == "student")
        .where(User.group_id == group_id)
    )
    if student is None:
        raise NotFound("Rating not found and student is not a member of this group")

    rating = new_rating(student_id, group_id)
    db.add(rating)
    try:
        await db.flush()
    except IntegrityError:
        # Lost the insert race to another session; use its row
        await db.rollback()
        rating = await db.scalar(
            select(Rating)
            .where(Rating.student_id == student_id)
            .where(Rating.group_id == group_id)
        )
        if rating is None:
            raise
    return rating


async def drop_rating(db: AsyncSession, student_id: int, group_id: int) -> None:
    """Delete the student's rating for a group they are leaving. The caller commits."""
    rating = await db.scalar(
        select(Rating)
        .where(Rating.student_id == student_id)
        .where(Rating.group_id == group_id)
    )
    if rating is not None:
        await db.delete(rating)
        logger.info("Dropped rating student=%s group=%s", student_id, group_id)


async def recompute_rating(db: AsyncSession, student_id: int, group_id: int) -> Rating:
    """Rebuild one student's Rating from source records and persist it."""

    async def attempt() -> Rating:
        try:
            rating = await ensure_rating(db, student_id, group_id)
            facts = await collect_facts(db, student_id, group_id)
            apply_facts(rating, facts)
            await db.commit()
        except StaleDataError:
            raise
        except Exception:
            await db.rollback()
            raise
        return rating

    async with rating_locks.hold((student_id, group_id)):
        rating = await retry_on_conflict(db, attempt, what=f"rating student={student_id} group={group_id}")
        await db.refresh(rating)

    logger.info(
        "Recomputed rating student=%s group=%s total_score=%s", student_id, group_id, rating.total_score
    )
    return rating


async def resolve_group_ranking(db: AsyncSession, group_id: int) -> List[Rating]:
    """
    Rank every Rating in the group by total score, highest first.

    Ties keep insertion order (earlier rating id ranks higher) and every row
    gets a distinct position 1..N, so two equal scores never share a rank.
    """
    group = await db.get(Group, group_id)
    if group is None:
        raise NotFound("Group not found")

    async def attempt() -> Tuple[List[Rating], list]:
        result = await db.execute(
            select(Rating)
            .join(User, User.id == Rating.student_id)
            .where(Rating.group_id == group_id)
            .where(User.group_id == group_id)
            .order_by(Rating.total_score.desc(), Rating.id.asc())
            .execution_options(populate_existing=True)
        )
        ratings = list(result.scalars().all())
        moved = []
        for position, rating in enumerate(ratings, start=1):
            if rating.rank_in_group != position:
                moved.append((rating.student_id, rating.rank_in_group, position))
                rating.rank_in_group = position
        await db.commit()
        return ratings, moved

    async with group_locks.hold(group_id):
        ratings, moved = await retry_on_conflict(db, attempt, what=f"ranking group={group_id}")

    for student_id, old_rank, new_rank in moved:
        broker.publish(student_id, RANK_CHANGED, {
            "group_id": group_id,
            "old_rank": old_rank,
            "new_rank": new_rank,
        })
    logger.info("Resolved ranking group=%s rows=%d moved=%d", group_id, len(ratings), len(moved))
    return ratings


async def refresh_student_standing(db: AsyncSession, student_id: int, group_id: int) -> Tuple[Rating, List[Rating]]:
    """Grading/attendance hook: recompute the student's rating, then re-rank the group."""
    rating = await recompute_rating(db, student_id, group_id)
    ranking = await resolve_group_ranking(db, group_id)
    return rating, ranking


async def create_initial_rating(db: AsyncSession, student_id: int, group_id: int) -> Rating:
    """Zeroed rating for a student who just joined a group; no-op if one exists."""
    async with rating_locks.hold((student_id, group_id)):
        rating = await ensure_rating(db, student_id, group_id)
        await db.commit()
    return rating


async def snapshot_month(db: AsyncSession, group_id: int, month: int, year: int) -> int:
    """
    Close a period: store one monthly snapshot per Rating in the group.
    Existing snapshots for the period are left untouched.
    """
    if not 1 <= month <= 12:
        raise InvalidInput("month must be between 1 and 12")
    group = await db.get(Group, group_id)
    if group is None:
        raise NotFound("Group not found")

    async with group_locks.hold(group_id):
        ratings = (await db.execute(
            select(Rating).where(Rating.group_id == group_id).order_by(Rating.id)
        )).scalars().all()
        existing = set((await db.execute(
            select(RatingMonthlyStat.rating_id)
            .join(Rating, Rating.id == RatingMonthlyStat.rating_id)
            .where(Rating.group_id == group_id)
            .where(RatingMonthlyStat.month == month)
            .where(RatingMonthlyStat.year == year)
        )).scalars().all())

        created = 0
        for rating in ratings:
            if rating.id in existing:
                continue
            db.add(RatingMonthlyStat(
                rating_id=rating.id,
                month=month,
                year=year,
                grades=rating.grades,
                attendance=rating.attendance,
                homework_completion=rating.homework_completion,
                class_participation=rating.class_participation,
                total_score=rating.total_score,
            ))
            created += 1
        try:
            await db.commit()
        except IntegrityError:
            await db.rollback()
            raise Conflict(f"Snapshot for {month}/{year} was written concurrently")

    logger.info("Stored %d monthly snapshots for group=%s %02d/%d", created, group_id, month, year)
    return created
