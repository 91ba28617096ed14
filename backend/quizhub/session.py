# Quiz session controller: drives one visitor through a sampled quiz.
import logging
import random
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Dict, Optional, Tuple

from quizhub.data_access import QUIZ_COMPLETION, QuizDataAccess
from quizhub.domain import Character, Question, Quiz
from quizhub.errors import (
    InvalidTransition,
    LoadError,
    NotFound,
    PersistError,
    SessionNotComplete,
    SessionNotInProgress,
)
from quizhub.sampler import sample
from quizhub.scoring import CharacterPoints, record_answer, resolve_winner

logger = logging.getLogger(__name__)


class SessionStatus(str, Enum):
    LOADING = "loading"
    LOAD_FAILED = "load_failed"
    IN_PROGRESS = "in_progress"
    COMPLETE = "complete"
    SCORED = "scored"


@dataclass(frozen=True)
class SessionState:
    status: SessionStatus = SessionStatus.LOADING
    sampled_questions: Tuple[Question, ...] = ()
    current_index: int = 0
    character_points: CharacterPoints = field(default_factory=dict)
    winner_id: Optional[str] = None
    result_id: Optional[str] = None

    @property
    def total_questions(self) -> int:
        return len(self.sampled_questions)

    @property
    def current_question(self) -> Optional[Question]:
        if self.status != SessionStatus.IN_PROGRESS:
            return None
        return self.sampled_questions[self.current_index]


class QuizSession:
    """State machine for a single quiz attempt.

    ``state`` is replaced wholesale on every transition, so a failed backend
    call never leaves a half-applied update behind. Answers are final; there
    is no way to step back to an earlier question, so a session whose answers
    all missed the question options stays complete with nothing to score:
    finish() raises NoAnswersRecorded every time and the caller should drop it.
    """

    def __init__(
        self,
        data_access: QuizDataAccess,
        quiz_id: str,
        session_id: str,
        rng: Optional[random.Random] = None,
    ):
        self.data_access = data_access
        self.quiz_id = quiz_id
        self.session_id = session_id
        self.rng = rng or random.Random()
        self.state = SessionState()
        self.quiz: Optional[Quiz] = None
        self.characters: Dict[str, Character] = {}
        # Persisted pieces of finish(), kept so a retry does not duplicate them.
        self._saved_result_id: Optional[str] = None
        self._completion_counted = False

    @property
    def status(self) -> SessionStatus:
        return self.state.status

    async def load(self) -> SessionState:
        if self.status != SessionStatus.LOADING:
            raise InvalidTransition("load", self.status)
        try:
            quiz = await self.data_access.get_quiz_by_id(self.quiz_id)
            characters = await self.data_access.get_all_characters()
            if not quiz.questions:
                raise LoadError(f"quiz {self.quiz_id} has no questions")
            questions = sample(
                quiz.questions, quiz.min_questions, quiz.max_questions, self.rng
            )
        except (NotFound, LoadError) as exc:
            logger.warning("Quiz %s failed to load: %s", self.quiz_id, exc)
            self.state = replace(self.state, status=SessionStatus.LOAD_FAILED)
            raise
        except ValueError as exc:
            logger.warning("Quiz %s has invalid question bounds: %s", self.quiz_id, exc)
            self.state = replace(self.state, status=SessionStatus.LOAD_FAILED)
            raise LoadError(str(exc)) from exc

        self.quiz = quiz
        self.characters = {character.id: character for character in characters}
        self.state = replace(
            self.state,
            status=SessionStatus.IN_PROGRESS,
            sampled_questions=tuple(questions),
        )
        logger.info(
            "Session %s started quiz %s with %d questions",
            self.session_id,
            self.quiz_id,
            len(questions),
        )
        return self.state

    def current_question(self) -> Optional[Question]:
        return self.state.current_question

    def submit_answer(self, character_id: str) -> SessionState:
        state = self.state
        if state.status != SessionStatus.IN_PROGRESS:
            raise SessionNotInProgress(state.status)

        question = state.sampled_questions[state.current_index]
        points = record_answer(state.character_points, question, character_id)
        if points is state.character_points:
            logger.debug(
                "Session %s ignored answer %s for question %d",
                self.session_id,
                character_id,
                state.current_index,
            )
        next_index = state.current_index + 1
        status = (
            SessionStatus.COMPLETE
            if next_index == state.total_questions
            else SessionStatus.IN_PROGRESS
        )
        self.state = replace(
            state, current_index=next_index, character_points=points, status=status
        )
        return self.state

    async def finish(self) -> str:
        state = self.state
        if state.status != SessionStatus.COMPLETE:
            raise SessionNotComplete(state.status)

        winner_id = resolve_winner(state.character_points)
        try:
            if self._saved_result_id is None:
                self._saved_result_id = await self.data_access.create_quiz_result(
                    self.quiz_id, winner_id, self.session_id
                )
            if not self._completion_counted:
                await self.data_access.increment_quiz_completion_count(self.quiz_id)
                self._completion_counted = True
        except PersistError:
            logger.exception("Session %s could not save its result", self.session_id)
            raise

        await self.data_access.track_interaction(
            QUIZ_COMPLETION, self.quiz_id, session_id=self.session_id
        )
        self.state = replace(
            state,
            status=SessionStatus.SCORED,
            winner_id=winner_id,
            result_id=self._saved_result_id,
        )
        logger.info(
            "Session %s finished quiz %s as %s", self.session_id, self.quiz_id, winner_id
        )
        return self._saved_result_id


# Create a session and load it; raises NotFound or LoadError.
async def start_session(
    data_access: QuizDataAccess,
    quiz_id: str,
    session_id: str,
    rng: Optional[random.Random] = None,
) -> QuizSession:
    session = QuizSession(data_access, quiz_id, session_id, rng=rng)
    await session.load()
    return session
