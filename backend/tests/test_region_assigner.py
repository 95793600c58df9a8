import asyncio
import gc
import itertools
import json
import logging
import uuid
from types import SimpleNamespace

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from cluehunt.models import ClueSet, Participant
from cluehunt.services.clue_content import ClueContentService, ContentProvider
from cluehunt.services.errors import CoordinateValidationError, ParticipantNotFoundError
from cluehunt.services.placement import TANGENCY_TOLERANCE_KM
from cluehunt.services.region_assigner import (
    CONTENT_GENERATED,
    CONTENT_READY,
    CONTENT_UNAVAILABLE,
    RegionAssigner,
    coerce_point,
    requires_different_region,
)
from cluehunt.services.region_store import LockRegistry, SqlAlchemyStore
from cluehunt.utils.geo import haversine_distance_km

RADIUS_KM = 16.09344


def make_assigner(db, content=None, store_cls=SqlAlchemyStore, **kwargs):
    store = store_cls(db)
    return RegionAssigner(store, store, content, **kwargs)


async def count_clue_sets(db, game_id) -> int:
    return await db.scalar(select(func.count(ClueSet.id)).where(ClueSet.game_id == game_id))


class FailingStore(SqlAlchemyStore):
    async def update_region_assignment(self, participant_id, region_id, point):
        raise OperationalError("UPDATE participants", {}, Exception("database is locked"))


async def test_first_participant_creates_clue_set(db, game, make_participant):
    participant = await make_participant(game)
    assigner = make_assigner(db)

    assignment = await assigner.assign(game.id, participant.id, (0.0, 0.0))

    assert assignment.result == "created"
    assert assignment.relocation_attempts == 0
    assert assignment.region.center == (0.0, 0.0)
    assert assignment.region.radius_km == pytest.approx(RADIUS_KM)
    assert assignment.region.name == "ClueSet-0-0"
    assert participant.clue_set_id == assignment.region.id
    assert (participant.current_latitude, participant.current_longitude) == (0.0, 0.0)
    assert await count_clue_sets(db, game.id) == 1


async def test_nearby_participant_joins_existing(db, game, make_participant):
    first = await make_participant(game)
    second = await make_participant(game)
    assigner = make_assigner(db)

    created = await assigner.assign(game.id, first.id, (0.0, 0.0))
    joined = await assigner.assign(game.id, second.id, (0.05, 0.05))

    assert joined.result == "existing_clue_set"
    assert joined.region.id == created.region.id
    assert joined.distance_km == pytest.approx(7.86, abs=0.01)
    assert second.clue_set_id == created.region.id
    assert await count_clue_sets(db, game.id) == 1


async def test_distant_participant_gets_new_clue_set(db, game, make_participant):
    first = await make_participant(game)
    second = await make_participant(game)
    assigner = make_assigner(db)

    a = await assigner.assign(game.id, first.id, (0.0, 0.0))
    b = await assigner.assign(game.id, second.id, (1.0, 1.0))

    assert b.result == "created"
    assert b.region.id != a.region.id
    assert b.region.center == (1.0, 1.0)
    assert await count_clue_sets(db, game.id) == 2


async def test_overlapping_candidate_is_relocated_to_tangent(db, game, make_participant):
    first = await make_participant(game)
    second = await make_participant(game)
    assigner = make_assigner(db)

    a = await assigner.assign(game.id, first.id, (0.0, 0.0))
    b = await assigner.assign(game.id, second.id, (0.0, 0.2))

    assert b.result == "created"
    assert b.relocation_attempts == 1
    gap = haversine_distance_km(a.region.center, b.region.center)
    assert gap == pytest.approx(2 * RADIUS_KM, abs=TANGENCY_TOLERANCE_KM)
    # the new clue set still covers the participant
    assert b.distance_km <= RADIUS_KM
    assert b.region.name == "ClueSet-0-289"


async def test_exhausted_search_falls_back_to_nearest(db, game, make_participant):
    participants = [await make_participant(game) for _ in range(3)]
    assigner = make_assigner(db)

    a = await assigner.assign(game.id, participants[0].id, (0.0, 0.0))
    b = await assigner.assign(game.id, participants[1].id, (0.0, 0.35))
    assert b.result == "created" and b.relocation_attempts == 0

    squeezed = await assigner.assign(game.id, participants[2].id, (0.0, 0.17))

    assert squeezed.result == "fallback"
    assert squeezed.relocation_attempts == 3
    assert squeezed.region.id == a.region.id
    assert participants[2].clue_set_id == a.region.id
    assert await count_clue_sets(db, game.id) == 2


async def test_assignment_is_idempotent(db, game, make_participant):
    participant = await make_participant(game)
    assigner = make_assigner(db)

    first = await assigner.assign(game.id, participant.id, (41.8781, -87.6298))
    again = await assigner.assign(game.id, participant.id, (41.8781, -87.6298))

    assert again.result == "existing_clue_set"
    assert again.region.id == first.region.id
    assert await count_clue_sets(db, game.id) == 1


async def test_active_clue_sets_never_overlap(db, game, make_participant):
    assigner = make_assigner(db)
    grid = [round(0.1 * i, 1) for i in range(6)]
    for lat, lng in itertools.product(grid, grid):
        participant = await make_participant(game)
        await assigner.assign(game.id, participant.id, (lat, lng))

    regions = await SqlAlchemyStore(db).find_all_active(game.id)
    assert len(regions) > 1
    for r1, r2 in itertools.combinations(regions, 2):
        gap = haversine_distance_km(r1.center, r2.center)
        assert gap >= r1.radius_km + r2.radius_km - TANGENCY_TOLERANCE_KM


async def test_inactive_clue_sets_are_ignored(db, game, make_participant):
    first = await make_participant(game)
    second = await make_participant(game)
    assigner = make_assigner(db)

    old = await assigner.assign(game.id, first.id, (0.0, 0.0))
    old.region.is_active = False
    await db.commit()

    fresh = await assigner.assign(game.id, second.id, (0.0, 0.0))

    assert fresh.result == "created"
    assert fresh.region.id != old.region.id


async def test_phase_radius_override(db, game, make_participant):
    participant = await make_participant(game)
    assigner = make_assigner(db, phase_radius_km={"PHASE_1": 3.0})

    assignment = await assigner.assign(game.id, participant.id, (0.0, 0.0), phase="PHASE_1")

    assert assignment.region.radius_km == 3.0
    assert assignment.region.phase == "PHASE_1"


def test_resolve_radius_order():
    assigner = RegionAssigner(None, None, default_radius_km=10.0, phase_radius_km={"PHASE_1": 3.0})

    assert assigner.resolve_radius("PHASE_1", 5.0) == 5.0
    assert assigner.resolve_radius("PHASE_1") == 3.0
    assert assigner.resolve_radius("PHASE_2") == 10.0
    assert assigner.resolve_radius() == 10.0
    with pytest.raises(ValueError):
        assigner.resolve_radius(radius_km=0)


async def test_different_region_stage_skips_local_clue_set(db, game, make_participant):
    first = await make_participant(game)
    second = await make_participant(game)
    traveller = await make_participant(game, current_level=3, current_stage=3)
    assigner = make_assigner(db)

    local = await assigner.assign(game.id, first.id, (0.0, 0.0))
    remote = await assigner.assign(game.id, second.id, (1.0, 1.0))

    assignment = await assigner.assign(
        game.id, traveller.id, (0.001, 0.001), level=3, stage=3, different_region=True
    )

    assert assignment.region.id == remote.region.id
    assert assignment.region.id != local.region.id
    assert assignment.result == "existing_clue_set"


@pytest.mark.parametrize("level,stage,expected", [(3, 3, True), (6, 4, True), (3, 2, False), (1, 1, False)])
def test_requires_different_region(level, stage, expected):
    assert requires_different_region(level, stage) is expected


@pytest.mark.parametrize(
    "coordinate",
    [(91.0, 0.0), (0.0, 181.0), (float("nan"), 0.0), (0.0, float("inf")), None, "12,34", ("a", "b")],
)
async def test_invalid_coordinate_writes_nothing(db, game, make_participant, coordinate):
    participant = await make_participant(game)
    game_id, participant_id = game.id, participant.id
    assigner = make_assigner(db)

    with pytest.raises(CoordinateValidationError) as exc_info:
        await assigner.assign(game_id, participant_id, coordinate)

    assert exc_info.value.status_code == 400
    assert exc_info.value.payload["error"] == "invalid_coordinate"
    assert await count_clue_sets(db, game_id) == 0


def test_coerce_point_accepts_objects_and_pairs():
    assert coerce_point(SimpleNamespace(lat=1, lng=2)) == (1.0, 2.0)
    assert coerce_point([45.5, -120.25]) == (45.5, -120.25)


async def test_unknown_participant_rolls_back_new_clue_set(db, game):
    game_id = game.id
    assigner = make_assigner(db)

    with pytest.raises(ParticipantNotFoundError):
        await assigner.assign(game_id, uuid.uuid4(), (0.0, 0.0))

    assert await count_clue_sets(db, game_id) == 0


async def test_storage_failure_propagates_and_rolls_back(db, game, make_participant):
    participant = await make_participant(game)
    game_id, participant_id = game.id, participant.id
    assigner = make_assigner(db, store_cls=FailingStore)

    with pytest.raises(OperationalError):
        await assigner.assign(game_id, participant_id, (0.0, 0.0))

    assert await count_clue_sets(db, game_id) == 0
    stored = await db.get(Participant, participant_id)
    assert stored.clue_set_id is None


async def test_concurrent_assignments_create_one_clue_set(session_factory, game, make_participant):
    first = await make_participant(game)
    second = await make_participant(game)

    async with session_factory() as s1, session_factory() as s2:
        results = await asyncio.gather(
            make_assigner(s1).assign(game.id, first.id, (0.0, 0.0)),
            make_assigner(s2).assign(game.id, second.id, (0.01, 0.01)),
        )

    assert results[0].region.id == results[1].region.id
    assert sorted(r.result for r in results) == ["created", "existing_clue_set"]
    async with session_factory() as check:
        assert await count_clue_sets(check, game.id) == 1


async def test_new_clue_set_gets_generated_clues(db, game, make_participant, generator):
    first = await make_participant(game)
    second = await make_participant(game)
    content = ClueContentService(db, generator)
    assigner = make_assigner(db, content)

    created = await assigner.assign(game.id, first.id, (0.0, 0.0), level=1, stage=1)
    joined = await assigner.assign(game.id, second.id, (0.01, 0.0))

    assert created.content_status == CONTENT_GENERATED
    assert joined.content_status == CONTENT_READY
    assert len(generator.requests) == 1

    hunts = await content.get_hunts(created.region)
    assert len(hunts) == 1
    assert [c.clue_number for c in hunts[0].clues] == [1, 2, 3, 4]
    assert hunts[0].name == "ClueSet-0-0 Hunt"
    assert created.region.main_subject == "Old Water Tower"


async def test_generation_failure_keeps_assignment(db, game, make_participant, failing_generator):
    participant = await make_participant(game)
    content = ClueContentService(db, failing_generator)
    assigner = make_assigner(db, content)

    assignment = await assigner.assign(game.id, participant.id, (0.0, 0.0))

    assert assignment.result == "created"
    assert assignment.content_status == CONTENT_UNAVAILABLE
    assert participant.clue_set_id == assignment.region.id
    assert not await content.has_content(assignment.region)


class SlowContent(ContentProvider):
    def __init__(self):
        self.stored = set()
        self.calls = 0

    async def has_content(self, clue_set):
        return clue_set.id in self.stored

    async def generate(self, clue_set, *, level=None, stage=None):
        self.calls += 1
        await asyncio.sleep(0.01)
        self.stored.add(clue_set.id)


async def test_content_generated_once_under_concurrency():
    content = SlowContent()
    assigner = RegionAssigner(None, None, content, locks=LockRegistry())
    region = SimpleNamespace(id=uuid.uuid4())

    statuses = await asyncio.gather(*(assigner.ensure_content(region) for _ in range(3)))

    assert content.calls == 1
    assert sorted(statuses) == [CONTENT_GENERATED, CONTENT_READY, CONTENT_READY]


async def test_audit_events_for_new_clue_set(db, game, make_participant, caplog):
    participant = await make_participant(game)
    assigner = make_assigner(db)
    caplog.set_level(logging.INFO, logger="cluehunt.audit")

    assignment = await assigner.assign(game.id, participant.id, (0.0, 0.0))

    events = [
        json.loads(record.getMessage())
        for record in caplog.records
        if record.name == "cluehunt.audit"
    ]
    assert [e["event"] for e in events] == ["clue_set.created", "participant.assigned"]
    assert all(e["game_id"] == str(game.id) for e in events)
    assert all(e["participant_id"] == str(participant.id) for e in events)
    assert events[0]["details"]["clue_set_id"] == str(assignment.region.id)
    assert events[1]["details"]["result"] == "created"


async def test_drifted_relocation_falls_back_instead_of_creating(db, game, make_participant):
    participants = [await make_participant(game) for _ in range(3)]
    assigner = make_assigner(db)
    point = (-0.10189, 0.19949)

    await assigner.assign(game.id, participants[0].id, (0.0, 0.0))
    b = await assigner.assign(game.id, participants[1].id, (-0.04276, 0.35509))
    assert b.result == "created"

    first = await assigner.assign(game.id, participants[2].id, point)
    again = await assigner.assign(game.id, participants[2].id, point)

    assert first.result == "fallback"
    assert first.region.id == b.region.id
    assert (again.result, again.region.id) == (first.result, first.region.id)
    assert participants[2].clue_set_id == b.region.id
    assert await count_clue_sets(db, game.id) == 2


class LostConnectionContent(ClueContentService):
    async def has_content(self, clue_set):
        raise OperationalError("SELECT count(clues.id)", {}, Exception("server closed the connection"))


async def test_content_storage_error_keeps_assignment(db, game, make_participant, generator):
    participant = await make_participant(game)
    game_id, participant_id = game.id, participant.id
    assigner = make_assigner(db, LostConnectionContent(db, generator))

    assignment = await assigner.assign(game_id, participant_id, (0.0, 0.0))

    assert assignment.result == "created"
    assert assignment.content_status == CONTENT_UNAVAILABLE
    assert generator.requests == []
    stored = await db.get(Participant, participant_id)
    assert stored.clue_set_id == assignment.region.id


def test_lock_registry_drops_idle_locks():
    registry = LockRegistry()
    lock = registry.get("game-1")

    assert registry.get("game-1") is lock
    assert len(registry) == 1

    del lock
    gc.collect()
    assert len(registry) == 0
