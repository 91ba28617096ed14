# SQL data access failure handling tests.
import asyncio
import random

import pytest
from sqlalchemy.exc import OperationalError

from quizhub.data_access import SqlQuizDataAccess
from quizhub.errors import LoadError, PersistError
from quizhub.session import SessionStatus, start_session


def _db_down(*args, **kwargs):
    raise OperationalError("SELECT 1", {}, Exception("database is down"))


# Session whose every statement fails like a lost connection.
class UnavailableSession:
    query = add = execute = commit = staticmethod(_db_down)

    def rollback(self):
        pass

    def close(self):
        pass


@pytest.fixture()
def unavailable_backend():
    return SqlQuizDataAccess(UnavailableSession)


def test_read_failures_become_load_errors(unavailable_backend):
    with pytest.raises(LoadError):
        asyncio.run(unavailable_backend.get_quiz_by_id("quiz-1"))
    with pytest.raises(LoadError):
        asyncio.run(unavailable_backend.get_all_characters())


def test_write_failures_become_persist_errors(unavailable_backend):
    with pytest.raises(PersistError):
        asyncio.run(unavailable_backend.create_quiz_result("quiz-1", "c1", "v"))
    with pytest.raises(PersistError):
        asyncio.run(unavailable_backend.increment_quiz_completion_count("quiz-1"))


def test_tracking_failure_is_swallowed(unavailable_backend):
    assert asyncio.run(unavailable_backend.track_interaction("quiz_completion", "quiz-1")) is None


# Stats writes fail while everything else works.
class StatsDownDataAccess(SqlQuizDataAccess):
    def _track_interaction(self, *args):
        _db_down()


def test_finish_succeeds_when_stats_insert_fails(client, seeded_quiz):
    seeded = seeded_quiz(min_questions=1, max_questions=1)
    from quizhub.database import SessionLocal

    backend = StatsDownDataAccess(SessionLocal)

    async def scenario():
        session = await start_session(
            backend, seeded["quiz_id"], "visitor-3", rng=random.Random(1)
        )
        session.submit_answer(seeded["character_ids"][0])
        return session, await session.finish()

    session, result_id = asyncio.run(scenario())

    assert session.status == SessionStatus.SCORED
    result = client.get(f"/quizzes/{seeded['quiz_id']}/results/{result_id}")
    assert result.status_code == 200
    assert client.get(f"/quizzes/{seeded['quiz_id']}").json()["completion_count"] == 1
