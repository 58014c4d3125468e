from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List

from academy.database import get_db
from academy.core.auth import get_current_user, require_roles
from academy.models.competition import Competition
from academy.schemas.competition import (
    CompetitionCreate, CompetitionResponse, ParticipantResponse, Prize, ScoreUpdate, WinnerResponse, WinnersAnnounce,
)
from academy.services import competitions as service

router = APIRouter(prefix="/competitions", tags=["competitions"])


def to_response(competition: Competition) -> CompetitionResponse:
    return CompetitionResponse(
        id=competition.id,
        title=competition.title,
        description=competition.description,
        start_date=competition.start_date,
        end_date=competition.end_date,
        status=service.competition_status(competition),
        eligible_group_ids=[group.id for group in competition.eligible_groups],
        rules=competition.rules or [],
        prizes=[Prize(**prize) for prize in competition.prizes or []],
        participant_count=len(competition.participants),
        winners=[WinnerResponse.model_validate(w) for w in competition.winners],
    )


@router.get("", response_model=List[CompetitionResponse])
async def list_competitions(
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    return [to_response(c) for c in await service.list_competitions(db, current_user)]


@router.post("", response_model=CompetitionResponse, status_code=status.HTTP_201_CREATED)
async def create_competition(
    competition_in: CompetitionCreate,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(require_roles("teacher", "admin"))
):
    competition = await service.create_competition(
        db,
        current_user,
        title=competition_in.title,
        description=competition_in.description,
        start_date=competition_in.start_date,
        end_date=competition_in.end_date,
        eligible_group_ids=competition_in.eligible_group_ids,
        rules=competition_in.rules,
        prizes=[prize.model_dump() for prize in competition_in.prizes],
    )
    return to_response(competition)


@router.post("/{competition_id}/participate", response_model=ParticipantResponse)
async def participate(
    competition_id: int,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(require_roles("student"))
):
    return await service.join_competition(db, competition_id, current_user)


@router.put("/{competition_id}/scores", response_model=ParticipantResponse)
async def update_score(
    competition_id: int,
    body: ScoreUpdate,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(require_roles("teacher", "admin"))
):
    return await service.record_score(db, competition_id, body.student_id, body.score)


@router.post("/{competition_id}/winners", response_model=List[WinnerResponse])
async def announce_winners(
    competition_id: int,
    body: WinnersAnnounce,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(require_roles("teacher", "admin"))
):
    placements = [(w.student_id, w.position) for w in body.winners]
    return await service.announce_winners(db, competition_id, placements)
