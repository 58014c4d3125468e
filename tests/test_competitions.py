from datetime import timedelta

import pytest

from academy.core.errors import AlreadyCompleted, InvalidInput, NotFound
from academy.models.competition import Competition
from academy.services.competitions import (
    announce_winners, competition_status, create_competition, join_competition, list_competitions, record_score,
)
from academy.services.points import current_balance, point_history
from academy.utils.dates import utcnow
from tests.conftest import make_group, make_user

PRIZES = [
    {"position": 1, "title": "Gold", "points": 50},
    {"position": 2, "title": "Silver", "points": 20},
    {"position": 3, "title": "Bronze", "points": 0, "gift": "Bookmark"},
]


@pytest.fixture
async def competition(db, teacher, group):
    now = utcnow()
    return await create_competition(
        db,
        teacher,
        title="Spelling bee",
        start_date=now - timedelta(days=1),
        end_date=now + timedelta(days=1),
        eligible_group_ids=[group.id],
        rules=["No dictionaries"],
        prizes=PRIZES,
    )


def test_competition_status():
    now = utcnow()
    competition = Competition(
        start_date=now + timedelta(days=1), end_date=now + timedelta(days=2), is_cancelled=False,
    )
    assert competition_status(competition, now) == "upcoming"
    assert competition_status(competition, now + timedelta(days=1, hours=1)) == "active"
    assert competition_status(competition, now + timedelta(days=3)) == "completed"
    competition.is_cancelled = True
    assert competition_status(competition, now) == "cancelled"


async def test_create_competition_validates_dates(db, teacher):
    now = utcnow()
    with pytest.raises(InvalidInput):
        await create_competition(db, teacher, "Backwards", start_date=now, end_date=now - timedelta(hours=1))


async def test_create_competition_unknown_group(db, teacher):
    now = utcnow()
    with pytest.raises(NotFound):
        await create_competition(
            db, teacher, "Lost", start_date=now, end_date=now + timedelta(days=1), eligible_group_ids=[404],
        )


async def test_join_and_score(db, competition, students):
    alice = students[0]
    competition_id, alice_id = competition.id, alice.id
    participant = await join_competition(db, competition_id, alice)
    assert participant.score == 0

    with pytest.raises(AlreadyCompleted):
        await join_competition(db, competition_id, alice)

    updated = await record_score(db, competition_id, alice_id, 87.5)
    assert updated.score == 87.5


async def test_join_requires_eligible_group(db, competition):
    other_group = await make_group(db, name="Group B")
    outsider = await make_user(db, first_name="Olga", group_id=other_group.id)
    with pytest.raises(InvalidInput):
        await join_competition(db, competition.id, outsider)


async def test_students_only_see_their_groups(db, competition, students):
    other_group = await make_group(db, name="Group B")
    outsider = await make_user(db, first_name="Olga", group_id=other_group.id)

    assert [c.id for c in await list_competitions(db, students[0])] == [competition.id]
    assert await list_competitions(db, outsider) == []


async def test_announce_winners_credits_prizes(db, competition, students):
    alice, bob, carol = students
    for student in students:
        await join_competition(db, competition.id, student)

    winners = await announce_winners(db, competition.id, [(bob.id, 1), (alice.id, 2), (carol.id, 3)])

    assert [(w.student_id, w.position, w.points_awarded) for w in winners] == [
        (bob.id, 1, 50), (alice.id, 2, 20), (carol.id, 3, 0),
    ]
    assert winners[2].prize == "Bronze"
    assert await current_balance(db, bob.id) == 50
    assert await current_balance(db, alice.id) == 20
    assert await current_balance(db, carol.id) == 0
    history = await point_history(db, bob.id)
    assert [(t.kind, t.amount) for t in history] == [("competition", 50)]


async def test_announce_winners_rejects_bad_placements(db, competition, students):
    alice, bob, _ = students
    await join_competition(db, competition.id, alice)

    with pytest.raises(InvalidInput):
        await announce_winners(db, competition.id, [(bob.id, 1)])  # not a participant
    with pytest.raises(InvalidInput):
        await announce_winners(db, competition.id, [(alice.id, 1), (alice.id, 1)])
    assert await current_balance(db, alice.id) == 0


async def test_positions_are_announced_once(db, competition, students):
    alice, bob, _ = students
    await join_competition(db, competition.id, alice)
    await join_competition(db, competition.id, bob)
    await announce_winners(db, competition.id, [(alice.id, 1)])

    with pytest.raises(AlreadyCompleted):
        await announce_winners(db, competition.id, [(bob.id, 1)])
    assert await current_balance(db, alice.id) == 50
    assert await current_balance(db, bob.id) == 0
