# Data access facade used by quiz sessions, plus its SQLAlchemy implementation.
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from fastapi.concurrency import run_in_threadpool
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from quizhub import models
from quizhub.domain import Character, Quiz, questions_from_json
from quizhub.errors import LoadError, NotFound, PersistError

logger = logging.getLogger(__name__)

QUIZ_COMPLETION = "quiz_completion"


class QuizDataAccess(ABC):
    @abstractmethod
    async def get_quiz_by_id(self, quiz_id: str) -> Quiz:
        """Return the quiz or raise NotFound / LoadError."""

    @abstractmethod
    async def get_all_characters(self) -> List[Character]:
        """Return every known character or raise LoadError."""

    @abstractmethod
    async def create_quiz_result(
        self, quiz_id: str, character_id: str, session_id: str
    ) -> str:
        """Persist a quiz result and return its id, or raise PersistError."""

    @abstractmethod
    async def increment_quiz_completion_count(self, quiz_id: str) -> None:
        """Bump the quiz completion counter by one, or raise PersistError."""

    # Record an analytics interaction; implementations must not raise.
    async def track_interaction(
        self,
        interaction_type: str,
        item_id: str,
        session_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        return None


# Build a domain Quiz from its ORM row.
def quiz_from_row(row: models.Quiz) -> Quiz:
    return Quiz(
        id=row.id,
        title=row.title,
        description=row.description or "",
        min_questions=row.min_questions,
        max_questions=row.max_questions,
        questions=questions_from_json(row.questions or []),
        is_default=bool(row.is_default),
        completion_count=row.completion_count or 0,
    )


# Build a domain Character from its ORM row.
def character_from_row(row: models.AnimeCharacter) -> Character:
    return Character(
        id=row.id,
        name=row.name,
        anime_id=row.anime_id,
        description=row.description or "",
        image=row.image or "",
        traits=list(row.traits or []),
    )


class SqlQuizDataAccess(QuizDataAccess):
    """Facade over the relational store; blocking work runs in the threadpool."""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    async def get_quiz_by_id(self, quiz_id: str) -> Quiz:
        return await run_in_threadpool(self._get_quiz_by_id, quiz_id)

    async def get_all_characters(self) -> List[Character]:
        return await run_in_threadpool(self._get_all_characters)

    async def create_quiz_result(
        self, quiz_id: str, character_id: str, session_id: str
    ) -> str:
        return await run_in_threadpool(
            self._create_quiz_result, quiz_id, character_id, session_id
        )

    async def increment_quiz_completion_count(self, quiz_id: str) -> None:
        await run_in_threadpool(self._increment_quiz_completion_count, quiz_id)

    async def track_interaction(
        self,
        interaction_type: str,
        item_id: str,
        session_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        try:
            await run_in_threadpool(
                self._track_interaction, interaction_type, item_id, session_id, details
            )
        except SQLAlchemyError:
            logger.exception("Failed to track %s for %s", interaction_type, item_id)

    def _get_quiz_by_id(self, quiz_id: str) -> Quiz:
        db = self.session_factory()
        try:
            row = db.query(models.Quiz).filter(models.Quiz.id == quiz_id).first()
            if row is None:
                raise NotFound("quiz", quiz_id)
            return quiz_from_row(row)
        except SQLAlchemyError as exc:
            logger.exception("Failed to load quiz %s", quiz_id)
            raise LoadError(f"failed to load quiz {quiz_id}") from exc
        except ValueError as exc:
            raise LoadError(f"quiz {quiz_id} has malformed questions: {exc}") from exc
        finally:
            db.close()

    def _get_all_characters(self) -> List[Character]:
        db = self.session_factory()
        try:
            rows = db.query(models.AnimeCharacter).order_by(models.AnimeCharacter.name).all()
            return [character_from_row(row) for row in rows]
        except SQLAlchemyError as exc:
            logger.exception("Failed to load characters")
            raise LoadError("failed to load characters") from exc
        finally:
            db.close()

    def _create_quiz_result(self, quiz_id: str, character_id: str, session_id: str) -> str:
        db = self.session_factory()
        try:
            result = models.QuizResult(
                quiz_id=quiz_id, character_id=character_id, session_id=session_id
            )
            db.add(result)
            db.commit()
            db.refresh(result)
            return result.id
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception("Failed to save result for quiz %s", quiz_id)
            raise PersistError(f"failed to save result for quiz {quiz_id}") from exc
        finally:
            db.close()

    def _increment_quiz_completion_count(self, quiz_id: str) -> None:
        db = self.session_factory()
        try:
            db.execute(
                update(models.Quiz)
                .where(models.Quiz.id == quiz_id)
                .values(completion_count=models.Quiz.completion_count + 1)
            )
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception("Failed to update completion count for quiz %s", quiz_id)
            raise PersistError(f"failed to update completion count for quiz {quiz_id}") from exc
        finally:
            db.close()

    def _track_interaction(
        self,
        interaction_type: str,
        item_id: str,
        session_id: Optional[str],
        details: Optional[Dict[str, Any]],
    ) -> None:
        db = self.session_factory()
        try:
            db.add(
                models.Interaction(
                    interaction_type=interaction_type,
                    item_id=item_id,
                    session_id=session_id,
                    details=details,
                )
            )
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            raise
        finally:
            db.close()
