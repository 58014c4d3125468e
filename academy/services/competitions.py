# academy/services/competitions.py
import logging
from contextlib import AsyncExitStack
from datetime import datetime
from typing import Iterable, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from academy.core.concurrency import student_locks
from academy.core.errors import AlreadyCompleted, InvalidInput, NotFound
from academy.core.notifications import broker, POINTS_CHANGED
from academy.models.competition import Competition, CompetitionParticipant, CompetitionWinner, competition_groups
from academy.models.group import Group
from academy.models.user import User
from academy.services.points import apply_credit
from academy.utils.dates import as_utc, utcnow

logger = logging.getLogger(__name__)


def competition_status(competition: Competition, now: Optional[datetime] = None) -> str:
    """upcoming / active / completed from the dates, unless cancelled."""
    if competition.is_cancelled:
        return "cancelled"
    now = now or utcnow()
    if now < as_utc(competition.start_date):
        return "upcoming"
    if now <= as_utc(competition.end_date):
        return "active"
    return "completed"


def prize_for(competition: Competition, position: int) -> dict:
    for prize in competition.prizes or []:
        if prize.get("position") == position:
            return prize
    return {}


async def _participant_ids(db: AsyncSession, competition_id: int) -> set:
    result = await db.execute(
        select(CompetitionParticipant.student_id).where(CompetitionParticipant.competition_id == competition_id)
    )
    return set(result.scalars().all())


async def get_competition(db: AsyncSession, competition_id: int) -> Competition:
    competition = await db.get(Competition, competition_id)
    if competition is None or not competition.is_active:
        raise NotFound("Competition not found")
    return competition


async def create_competition(
    db: AsyncSession,
    creator: User,
    title: str,
    start_date: datetime,
    end_date: datetime,
    eligible_group_ids: Iterable[int] = (),
    description: Optional[str] = None,
    rules: Optional[list] = None,
    prizes: Optional[list] = None,
) -> Competition:
    if as_utc(end_date) <= as_utc(start_date):
        raise InvalidInput("End date must be after start date")
    prizes = prizes or []
    positions = [prize["position"] for prize in prizes]
    if len(positions) != len(set(positions)):
        raise InvalidInput("Each prize position can only appear once")

    group_ids = set(eligible_group_ids)
    groups = []
    if group_ids:
        groups = (await db.execute(select(Group).where(Group.id.in_(group_ids)))).scalars().all()
        if len(groups) != len(group_ids):
            raise NotFound("One or more eligible groups not found")

    competition = Competition(
        title=title,
        description=description,
        start_date=start_date,
        end_date=end_date,
        rules=rules or [],
        prizes=prizes,
        created_by_id=creator.id,
        is_cancelled=False,
        is_active=True,
    )
    competition.eligible_groups = list(groups)
    competition.participants = []
    competition.winners = []
    db.add(competition)
    await db.commit()
    await db.refresh(competition)
    logger.info("Competition %s created by user=%s", competition.id, creator.id)
    return competition


async def list_competitions(db: AsyncSession, user: User) -> List[Competition]:
    query = select(Competition).where(Competition.is_active.is_(True)).order_by(Competition.start_date.desc())
    if user.role == "student":
        if user.group_id is None:
            return []
        query = query.join(
            competition_groups, competition_groups.c.competition_id == Competition.id
        ).where(competition_groups.c.group_id == user.group_id)
    result = await db.execute(query)
    return result.scalars().unique().all()


async def join_competition(db: AsyncSession, competition_id: int, student: User) -> CompetitionParticipant:
    competition = await get_competition(db, competition_id)
    if competition_status(competition) != "active":
        raise InvalidInput("Competition is not active")
    if student.group_id not in {group.id for group in competition.eligible_groups}:
        raise InvalidInput("Your group is not eligible for this competition")
    if student.id in await _participant_ids(db, competition.id):
        raise AlreadyCompleted("Already participating in this competition")

    participant = CompetitionParticipant(
        competition_id=competition.id,
        student_id=student.id,
        score=0.0,
        registered_at=utcnow(),
    )
    db.add(participant)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise AlreadyCompleted("Already participating in this competition")
    await db.refresh(participant)
    return participant


async def record_score(db: AsyncSession, competition_id: int, student_id: int, score: float) -> CompetitionParticipant:
    await get_competition(db, competition_id)
    participant = await db.scalar(
        select(CompetitionParticipant)
        .where(CompetitionParticipant.competition_id == competition_id)
        .where(CompetitionParticipant.student_id == student_id)
    )
    if participant is None:
        raise NotFound("Participant not found")
    if score < 0:
        raise InvalidInput("Score cannot be negative")
    participant.score = score
    await db.commit()
    await db.refresh(participant)
    return participant


async def announce_winners(
    db: AsyncSession, competition_id: int, placements: List[Tuple[int, int]]
) -> List[CompetitionWinner]:
    """
    Record winners as (student_id, position) pairs and credit each prize's
    points through the ledger. Either every placement lands or none does.
    """
    competition = await get_competition(db, competition_id)
    if competition.is_cancelled:
        raise InvalidInput("Competition was cancelled")
    if not placements:
        raise InvalidInput("No winners given")

    positions = [position for _, position in placements]
    if len(positions) != len(set(positions)):
        raise InvalidInput("Each position can only be awarded once")
    if any(position < 1 for position in positions):
        raise InvalidInput("Positions start at 1")

    participants = await _participant_ids(db, competition.id)
    awarded = set((await db.execute(
        select(CompetitionWinner.position).where(CompetitionWinner.competition_id == competition.id)
    )).scalars().all())
    for student_id, position in placements:
        if student_id not in participants:
            raise InvalidInput(f"Student {student_id} is not a participant")
        if position in awarded:
            raise AlreadyCompleted(f"Position {position} was already announced")

    credited = []
    async with AsyncExitStack() as stack:
        # Sorted so two announcements never wait on each other's locks
        for student_id in sorted({student_id for student_id, _ in placements}):
            await stack.enter_async_context(student_locks.hold(student_id))
        try:
            winners = []
            for student_id, position in sorted(placements, key=lambda p: p[1]):
                prize = prize_for(competition, position)
                points = int(prize.get("points") or 0)
                winner = CompetitionWinner(
                    competition_id=competition.id,
                    student_id=student_id,
                    position=position,
                    prize=prize.get("title") or prize.get("gift"),
                    points_awarded=points,
                    announced_at=utcnow(),
                )
                db.add(winner)
                winners.append(winner)
                if points > 0:
                    balance = await apply_credit(
                        db, student_id, points, "competition",
                        reference=f"competition:{competition.id}:{position}",
                        reason=f"{competition.title}: place {position}",
                    )
                    credited.append((student_id, points, balance))
            await db.commit()
        except IntegrityError:
            await db.rollback()
            raise AlreadyCompleted("A position was announced concurrently")
        except Exception:
            await db.rollback()
            raise

    for student_id, points, balance in credited:
        broker.publish(student_id, POINTS_CHANGED, {"delta": points, "balance": balance, "kind": "competition"})
    logger.info("Announced %d winners for competition %s", len(winners), competition.id)
    return winners
