from __future__ import annotations

from typing import Iterator, List

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from lessonly.api.deps import get_generator
from lessonly.core.security import create_access_token
from lessonly.db import get_db, init_db
from lessonly.main import app
from lessonly.services.lesson_generator import GenerationRequest, GenerationResponse, LessonGenerationError
from lessonly.services.repository import ClassRepository, LessonRepository, ProfileRepository


class FakeGenerator:
    """Stands in for LessonGenerator; records requests and replays a canned reply."""

    def __init__(self, reply: dict | None = None, error: str | None = None):
        self.reply = reply or {}
        self.error = error
        self.requests: List[GenerationRequest] = []

    async def generate(self, request: GenerationRequest) -> GenerationResponse:
        self.requests.append(request)
        if self.error:
            raise LessonGenerationError(self.error)
        return GenerationResponse.model_validate(self.reply)


@pytest.fixture()
def db() -> Iterator[Session]:
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    session = sessionmaker(bind=engine, autoflush=False)()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture()
def lessons(db) -> LessonRepository:
    return LessonRepository(db)


@pytest.fixture()
def profiles(db) -> ProfileRepository:
    return ProfileRepository(db)


@pytest.fixture()
def classes(db) -> ClassRepository:
    return ClassRepository(db)


@pytest.fixture()
def generator() -> FakeGenerator:
    return FakeGenerator()


@pytest.fixture()
def client(db, generator) -> Iterator[TestClient]:
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_generator] = lambda: generator
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.pop(get_db, None)
        app.dependency_overrides.pop(get_generator, None)


def auth_headers(owner_id: str = "owner-1") -> dict:
    return {"Authorization": f"Bearer {create_access_token({'sub': owner_id})}"}


@pytest.fixture()
def headers() -> dict:
    return auth_headers()
