import uuid

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.types import JSON

from quizhub.database import Base


def _uuid_str():
    return str(uuid.uuid4())


def _json_column():
    return JSON().with_variant(JSONB, "postgresql")


class AnimeSeries(Base):
    __tablename__ = "anime_series"

    id = Column(String(36), primary_key=True, default=_uuid_str)
    name = Column(String(255), nullable=False, unique=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class AnimeCharacter(Base):
    __tablename__ = "anime_characters"

    id = Column(String(36), primary_key=True, default=_uuid_str)
    anime_id = Column(String(36), ForeignKey("anime_series.id"), nullable=False)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=False, default="")
    image = Column(Text, nullable=False, default="")
    traits = Column(_json_column(), nullable=False, default=list)
    fun_facts = Column(_json_column(), nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (Index("anime_characters_anime_name_idx", "anime_id", "name"),)


class Quiz(Base):
    __tablename__ = "quizzes"

    id = Column(String(36), primary_key=True, default=_uuid_str)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False, default="")
    anime_id = Column(String(36), ForeignKey("anime_series.id"))
    min_questions = Column(Integer, nullable=False, default=5)
    max_questions = Column(Integer, nullable=False, default=10)
    questions = Column(_json_column(), nullable=False)
    is_default = Column(Boolean, nullable=False, default=False)
    completion_count = Column(Integer, nullable=False, default=0)
    use_locker = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        CheckConstraint("min_questions >= 1", name="quizzes_min_questions_check"),
        CheckConstraint(
            "min_questions <= max_questions", name="quizzes_question_bounds_check"
        ),
        CheckConstraint("completion_count >= 0", name="quizzes_completion_count_check"),
        Index("quizzes_completion_idx", "completion_count"),
    )


class QuizResult(Base):
    __tablename__ = "quiz_results"

    id = Column(String(36), primary_key=True, default=_uuid_str)
    quiz_id = Column(String(36), ForeignKey("quizzes.id"), nullable=False)
    character_id = Column(String(36), ForeignKey("anime_characters.id"), nullable=False)
    session_id = Column(String(64), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (Index("quiz_results_quiz_idx", "quiz_id"),)


class Interaction(Base):
    __tablename__ = "stats"

    id = Column(String(36), primary_key=True, default=_uuid_str)
    interaction_type = Column(String(50), nullable=False)
    item_id = Column(String(36), nullable=False)
    ip_address = Column(String(64))
    session_id = Column(String(64))
    # "metadata" is reserved on declarative classes.
    details = Column("metadata", _json_column())
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        CheckConstraint(
            "interaction_type IN ('wallpaper_download', 'quiz_completion', 'game_download')",
            name="stats_interaction_type_check",
        ),
        Index("stats_type_created_idx", "interaction_type", "created_at"),
    )
