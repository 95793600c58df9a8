import os

# Settings are cached on first import; point them at SQLite before that happens.
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["CLUE_GENERATOR_API_KEY"] = ""
os.environ["JWT_SECRET_KEY"] = "test-secret"

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from cluehunt.api.v1.deps import get_clue_generator
from cluehunt.auth.jwt import create_access_token
from cluehunt.database import Base, get_db
from cluehunt.main import app
from cluehunt.models import Game, Participant, User
from cluehunt.services.clue_generator import (
    ClueGenerator,
    ClueRequest,
    GeneratedClue,
    GeneratedContent,
)
from cluehunt.services.errors import ClueGenerationError

class FakeClueGenerator(ClueGenerator):
    """Returns canned clues, or raises when ``fail`` is set."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.requests: list[ClueRequest] = []

    async def generate(self, request: ClueRequest) -> GeneratedContent:
        self.requests.append(request)
        if self.fail:
            raise ClueGenerationError("generator offline")
        return GeneratedContent(
            main_subject="Old Water Tower",
            clues=[
                GeneratedClue(
                    question=f"Clue {i} near {request.location_name}",
                    answer=f"answer {i}",
                    hint="Look up",
                    type="TEXT_ANSWER",
                )
                for i in range(1, request.clues_count + 1)
            ],
        )


@pytest.fixture
async def engine(tmp_path):
    # File-backed so separate sessions share data
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def generator():
    return FakeClueGenerator()


@pytest.fixture
def failing_generator():
    return FakeClueGenerator(fail=True)


@pytest.fixture
async def game(db):
    game = Game(title="Test Hunt", region_label="Testville")
    db.add(game)
    await db.commit()
    return game


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    async def _make_user(role: str = "user", username: str | None = None) -> User:
        counter["n"] += 1
        user = User(username=username or f"player{counter['n']}", role=role, is_active=True)
        db.add(user)
        await db.commit()
        return user

    return _make_user


@pytest.fixture
def make_participant(db, make_user):
    async def _make_participant(game: Game, user: User | None = None, **fields) -> Participant:
        user = user or await make_user()
        participant = Participant(game_id=game.id, user_id=user.id, **fields)
        db.add(participant)
        await db.commit()
        return participant

    return _make_participant


@pytest.fixture
def auth_headers():
    def _auth_headers(user: User) -> dict:
        token = create_access_token(str(user.id), user.role)
        return {"Authorization": f"Bearer {token}"}

    return _auth_headers


@pytest.fixture
async def client(session_factory, generator):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clue_generator] = lambda: generator
    transport = httpx.ASGITransport(app=app)
    try:
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
            yield ac
    finally:
        app.dependency_overrides.clear()
