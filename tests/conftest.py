# Pytest fixtures, an in-memory data access fake, and test database setup.
import importlib
import os
import sys
from typing import Dict, List, Optional

import pytest
from fastapi.testclient import TestClient

# Keep the first import of the app modules off the production database.
os.environ.setdefault("DATABASE_URL", "sqlite://")

from quizhub.data_access import QuizDataAccess  # noqa: E402
from quizhub.domain import Character, Option, Question, Quiz  # noqa: E402
from quizhub.errors import LoadError, NotFound, PersistError  # noqa: E402


# In-memory stand-in for the hosted backend, with switchable failures.
class FakeDataAccess(QuizDataAccess):
    def __init__(self, quizzes: List[Quiz], characters: List[Character]):
        self.quizzes: Dict[str, Quiz] = {quiz.id: quiz for quiz in quizzes}
        self.characters = list(characters)
        self.results: List[Dict[str, str]] = []
        self.completion_counts: Dict[str, int] = {quiz.id: 0 for quiz in quizzes}
        self.interactions: List[Dict[str, Optional[str]]] = []
        self.fail_load = False
        self.fail_create_result = False
        self.fail_increment = False
        self.character_fetches = 0

    async def get_quiz_by_id(self, quiz_id: str) -> Quiz:
        if self.fail_load:
            raise LoadError("backend unavailable")
        if quiz_id not in self.quizzes:
            raise NotFound("quiz", quiz_id)
        return self.quizzes[quiz_id]

    async def get_all_characters(self) -> List[Character]:
        self.character_fetches += 1
        if self.fail_load:
            raise LoadError("backend unavailable")
        return list(self.characters)

    async def create_quiz_result(self, quiz_id, character_id, session_id) -> str:
        if self.fail_create_result:
            raise PersistError("insert failed")
        result_id = f"result-{len(self.results) + 1}"
        self.results.append(
            {
                "id": result_id,
                "quiz_id": quiz_id,
                "character_id": character_id,
                "session_id": session_id,
            }
        )
        return result_id

    async def increment_quiz_completion_count(self, quiz_id: str) -> None:
        if self.fail_increment:
            raise PersistError("update failed")
        self.completion_counts[quiz_id] += 1

    async def track_interaction(self, interaction_type, item_id, session_id=None, details=None):
        self.interactions.append(
            {"type": interaction_type, "item_id": item_id, "session_id": session_id}
        )


# Build a quiz whose every question offers the same characters.
@pytest.fixture()
def build_quiz():
    def _build(
        bank_size: int,
        min_questions: int,
        max_questions: int,
        character_ids=("c1", "c2"),
        quiz_id: str = "quiz-1",
    ) -> Quiz:
        questions = tuple(
            Question(
                text=f"Question {idx}?",
                options=tuple(
                    Option(text=f"Answer {cid}", character_id=cid) for cid in character_ids
                ),
            )
            for idx in range(1, bank_size + 1)
        )
        return Quiz(
            id=quiz_id,
            title="Which hero are you?",
            description="Find your match.",
            min_questions=min_questions,
            max_questions=max_questions,
            questions=questions,
        )

    return _build


@pytest.fixture()
def characters():
    return [Character(id="c1", name="Hikari"), Character(id="c2", name="Kage")]


@pytest.fixture()
def fake_backend(characters):
    def _backend(*quizzes: Quiz) -> FakeDataAccess:
        return FakeDataAccess(list(quizzes), characters)

    return _backend


# Provide a FastAPI test client backed by a temporary test database.
@pytest.fixture()
def client(tmp_path):
    test_database_url = os.getenv(
        "TEST_DATABASE_URL", f"sqlite:///{tmp_path / 'quiz_hub_test.db'}"
    )
    os.environ["DATABASE_URL"] = test_database_url

    if "quizhub.database" in sys.modules:
        importlib.reload(sys.modules["quizhub.database"])
    if "quizhub.models" in sys.modules:
        importlib.reload(sys.modules["quizhub.models"])
    if "quizhub.main" in sys.modules:
        importlib.reload(sys.modules["quizhub.main"])

    from quizhub.database import Base, engine  # noqa: E402
    from quizhub.main import app  # noqa: E402

    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)

    with TestClient(app) as test_client:
        yield test_client

    Base.metadata.drop_all(bind=engine)
    engine.dispose()


# Create a series, two characters and a quiz through the API.
@pytest.fixture()
def seeded_quiz(client):
    def _seed(
        bank_size: int = 3,
        min_questions: int = 2,
        max_questions: int = 2,
        is_default: bool = False,
        title: str = "Which hero are you?",
    ):
        series = client.post("/series", json={"name": f"Series for {title}"})
        assert series.status_code == 201
        series_id = series.json()["id"]
        character_ids = []
        for name in ("Hikari", "Kage"):
            response = client.post(
                "/characters",
                json={"anime_id": series_id, "name": name, "traits": ["brave"]},
            )
            assert response.status_code == 201
            character_ids.append(response.json()["id"])
        questions = [
            {
                "text": f"Question {idx}?",
                "options": [
                    {"text": "Light", "character_id": character_ids[0]},
                    {"text": "Shadow", "character_id": character_ids[1]},
                ],
            }
            for idx in range(1, bank_size + 1)
        ]
        quiz = client.post(
            "/quizzes",
            json={
                "title": title,
                "description": "Find your match.",
                "anime_id": series_id,
                "min_questions": min_questions,
                "max_questions": max_questions,
                "questions": questions,
                "is_default": is_default,
            },
        )
        assert quiz.status_code == 201
        return {
            "quiz_id": quiz.json()["id"],
            "series_id": series_id,
            "character_ids": character_ids,
        }

    return _seed
