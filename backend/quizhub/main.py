# FastAPI app, routes, and quiz session handlers.
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Dict, List, Optional

import logging

from fastapi import Depends, FastAPI, HTTPException, Query, Request, status
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from quizhub.config import get_settings
from quizhub.data_access import SqlQuizDataAccess
from quizhub.database import Base, SessionLocal, engine, get_db
from quizhub.domain import questions_to_json
from quizhub.errors import (
    InvalidTransition,
    LoadError,
    NoAnswersRecorded,
    NotFound,
    PersistError,
    QuizHubError,
    UnknownSession,
)
from quizhub.models import AnimeCharacter, AnimeSeries, Quiz, QuizResult
from quizhub.schemas import (
    AnswerCreate,
    CharacterCreate,
    CharacterOut,
    FinishOut,
    OptionOut,
    QuestionOut,
    QuizCreate,
    QuizListOut,
    QuizOut,
    ResultOut,
    SeriesCreate,
    SeriesOut,
    SessionOut,
    SessionStart,
)
from quizhub.session_manager import SessionManager

settings = get_settings()


# Create database tables and the session registry on app startup.
@asynccontextmanager
async def lifespan(app: FastAPI):
    logging.basicConfig(level=settings.log_level)
    Base.metadata.create_all(bind=engine)
    app.state.sessions = SessionManager(
        SqlQuizDataAccess(SessionLocal), idle_ttl=settings.session_idle_ttl_seconds
    )
    yield


app = FastAPI(title="Anime Quiz Hub API", lifespan=lifespan)
logger = logging.getLogger("quiz_hub")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allow_origins,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Format datetimes as ISO-8601 strings with UTC fallback.
def to_iso(dt: datetime) -> str:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.isoformat()

# Provide the live session registry.
def get_session_manager(request: Request) -> SessionManager:
    return request.app.state.sessions

# Translate a quiz session error into an HTTP error response.
def http_error(exc: QuizHubError) -> HTTPException:
    if isinstance(exc, (NotFound, UnknownSession)):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, (InvalidTransition, NoAnswersRecorded)):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    if isinstance(exc, LoadError):
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="failed to load quiz"
        )
    if isinstance(exc, PersistError):
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="failed to save quiz result",
        )
    logger.error("Unhandled quiz error: %s", exc)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))

# Validate authored quiz content the same way the quiz editor does.
def validate_quiz_payload(payload: QuizCreate, db: Session) -> None:
    if payload.min_questions > payload.max_questions:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Minimum questions cannot be greater than maximum questions",
        )
    if not payload.questions:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="quiz must include at least one question",
        )
    referenced = set()
    for i, question in enumerate(payload.questions, start=1):
        if len(question.options) < 2:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Question {i} must have at least 2 options",
            )
        for j, option in enumerate(question.options, start=1):
            if not option.text.strip() or not option.character_id:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail=f"All fields are required for option {j} in question {i}",
                )
            referenced.add(option.character_id)
    rows = db.query(AnimeCharacter.id).filter(AnimeCharacter.id.in_(sorted(referenced)))
    known = {row.id for row in rows}
    missing = sorted(referenced - known)
    if missing:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"unknown character ids: {', '.join(missing)}",
        )
    if payload.anime_id and not db.get(AnimeSeries, payload.anime_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="series not found")

# Keep at most one featured quiz.
def clear_other_defaults(db: Session, quiz_id: str) -> None:
    db.query(Quiz).filter(Quiz.id != quiz_id, Quiz.is_default.is_(True)).update(
        {Quiz.is_default: False}, synchronize_session=False
    )

def character_out(character: AnimeCharacter) -> CharacterOut:
    return CharacterOut(
        id=character.id,
        anime_id=character.anime_id,
        name=character.name,
        description=character.description or "",
        image=character.image or "",
        traits=list(character.traits or []),
        fun_facts=list(character.fun_facts or []),
    )

def quiz_out(quiz: Quiz, series_names: Dict[str, str]) -> QuizOut:
    return QuizOut(
        id=quiz.id,
        title=quiz.title,
        description=quiz.description or "",
        anime_id=quiz.anime_id,
        anime_name=series_names.get(quiz.anime_id) if quiz.anime_id else None,
        min_questions=quiz.min_questions,
        max_questions=quiz.max_questions,
        question_count=len(quiz.questions or []),
        is_default=bool(quiz.is_default),
        completion_count=quiz.completion_count or 0,
        use_locker=bool(quiz.use_locker),
        created_at=to_iso(quiz.created_at),
        updated_at=to_iso(quiz.updated_at),
    )

def series_names_for(db: Session) -> Dict[str, str]:
    return {series.id: series.name for series in db.query(AnimeSeries).all()}

# Describe a live session, including the question awaiting an answer.
def session_out(handle: str, sessions: SessionManager) -> SessionOut:
    session = sessions.get_session(handle)
    state = session.state
    question = session.current_question()
    return SessionOut(
        handle=handle,
        quiz_id=session.quiz_id,
        quiz_title=session.quiz.title if session.quiz else "",
        status=state.status.value,
        current_index=state.current_index,
        total_questions=state.total_questions,
        question=QuestionOut(
            text=question.text,
            options=[
                OptionOut(text=option.text, character_id=option.character_id)
                for option in question.options
            ],
        )
        if question
        else None,
    )

# Create an anime series.
@app.post("/series", response_model=SeriesOut, status_code=status.HTTP_201_CREATED)
def create_series(payload: SeriesCreate, db: Session = Depends(get_db)):
    series = AnimeSeries(name=payload.name.strip())
    db.add(series)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT, detail="series already exists"
        )
    db.refresh(series)
    return SeriesOut(id=series.id, name=series.name)

# List anime series by name.
@app.get("/series", response_model=List[SeriesOut])
def list_series(db: Session = Depends(get_db)):
    rows = db.query(AnimeSeries).order_by(AnimeSeries.name).all()
    return [SeriesOut(id=row.id, name=row.name) for row in rows]

# Create a character belonging to a series.
@app.post("/characters", response_model=CharacterOut, status_code=status.HTTP_201_CREATED)
def create_character(payload: CharacterCreate, db: Session = Depends(get_db)):
    if not db.get(AnimeSeries, payload.anime_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="series not found")
    character = AnimeCharacter(
        anime_id=payload.anime_id,
        name=payload.name.strip(),
        description=payload.description,
        image=payload.image,
        traits=payload.traits,
        fun_facts=payload.fun_facts,
    )
    db.add(character)
    db.commit()
    db.refresh(character)
    return character_out(character)

# List characters, optionally limited to one series.
@app.get("/characters", response_model=List[CharacterOut])
def list_characters(
    series_id: Optional[str] = Query(None), db: Session = Depends(get_db)
):
    query = db.query(AnimeCharacter)
    if series_id:
        query = query.filter(AnimeCharacter.anime_id == series_id)
    return [character_out(row) for row in query.order_by(AnimeCharacter.name).all()]

# Store a new quiz.
@app.post("/quizzes", response_model=QuizOut, status_code=status.HTTP_201_CREATED)
def create_quiz(payload: QuizCreate, db: Session = Depends(get_db)):
    validate_quiz_payload(payload, db)
    quiz = Quiz(
        title=payload.title.strip(),
        description=payload.description,
        anime_id=payload.anime_id,
        min_questions=payload.min_questions,
        max_questions=payload.max_questions,
        questions=questions_to_json(payload.questions),
        is_default=payload.is_default,
        use_locker=payload.use_locker,
        completion_count=0,
    )
    db.add(quiz)
    db.flush()
    if quiz.is_default:
        clear_other_defaults(db, quiz.id)
    db.commit()
    db.refresh(quiz)
    return quiz_out(quiz, series_names_for(db))

# Replace an existing quiz's content; the completion count is kept.
@app.put("/quizzes/{quiz_id}", response_model=QuizOut)
def update_quiz(quiz_id: str, payload: QuizCreate, db: Session = Depends(get_db)):
    quiz = db.get(Quiz, quiz_id)
    if not quiz:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="quiz not found")
    validate_quiz_payload(payload, db)
    quiz.title = payload.title.strip()
    quiz.description = payload.description
    quiz.anime_id = payload.anime_id
    quiz.min_questions = payload.min_questions
    quiz.max_questions = payload.max_questions
    quiz.questions = questions_to_json(payload.questions)
    quiz.is_default = payload.is_default
    quiz.use_locker = payload.use_locker
    quiz.updated_at = datetime.now(tz=timezone.utc)
    if quiz.is_default:
        clear_other_defaults(db, quiz.id)
    db.commit()
    db.refresh(quiz)
    return quiz_out(quiz, series_names_for(db))

# List quizzes by popularity with the featured quiz reported separately.
@app.get("/quizzes", response_model=QuizListOut)
def list_quizzes(db: Session = Depends(get_db)):
    quizzes = (
        db.query(Quiz)
        .order_by(Quiz.completion_count.desc(), Quiz.created_at.desc())
        .all()
    )
    names = series_names_for(db)
    featured = next((quiz for quiz in quizzes if quiz.is_default), None)
    return QuizListOut(
        featured=quiz_out(featured, names) if featured else None,
        quizzes=[quiz_out(quiz, names) for quiz in quizzes if not quiz.is_default],
    )

# Return quiz metadata.
@app.get("/quizzes/{quiz_id}", response_model=QuizOut)
def get_quiz(quiz_id: str, db: Session = Depends(get_db)):
    quiz = db.get(Quiz, quiz_id)
    if not quiz:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="quiz not found")
    return quiz_out(quiz, series_names_for(db))

# Start taking a quiz: load it, sample questions, and return the first one.
@app.post(
    "/quizzes/{quiz_id}/sessions",
    response_model=SessionOut,
    status_code=status.HTTP_201_CREATED,
)
async def start_quiz_session(
    quiz_id: str,
    payload: Optional[SessionStart] = None,
    sessions: SessionManager = Depends(get_session_manager),
):
    visitor_id = payload.session_id if payload else None
    try:
        handle = await sessions.start_session(quiz_id, session_id=visitor_id)
    except QuizHubError as exc:
        raise http_error(exc)
    return session_out(handle, sessions)

# Return session progress and the current question.
@app.get("/sessions/{handle}", response_model=SessionOut)
def get_quiz_session(handle: str, sessions: SessionManager = Depends(get_session_manager)):
    try:
        return session_out(handle, sessions)
    except QuizHubError as exc:
        raise http_error(exc)

# Answer the current question and advance the session.
@app.post("/sessions/{handle}/answers", response_model=SessionOut)
async def submit_answer(
    handle: str,
    payload: AnswerCreate,
    sessions: SessionManager = Depends(get_session_manager),
):
    try:
        await sessions.submit_answer(handle, payload.character_id)
    except QuizHubError as exc:
        raise http_error(exc)
    return session_out(handle, sessions)

# Resolve the winning character and persist the quiz result.
@app.post("/sessions/{handle}/finish", response_model=FinishOut)
async def finish_session(
    handle: str, sessions: SessionManager = Depends(get_session_manager)
):
    try:
        result_id = await sessions.finish(handle)
    except NoAnswersRecorded as exc:
        # Nothing scored and answers are final, so the session cannot recover.
        sessions.discard(handle)
        raise http_error(exc)
    except QuizHubError as exc:
        raise http_error(exc)
    session = sessions.get_session(handle)
    winner_id = session.state.winner_id
    character = session.characters.get(winner_id)
    finished = FinishOut(
        result_id=result_id,
        quiz_id=session.quiz_id,
        character_id=winner_id,
        character_name=character.name if character else None,
    )
    # The result is persisted and served by the results route from here on.
    sessions.discard(handle)
    return finished

# Return a stored quiz result with its character and quiz title.
@app.get("/quizzes/{quiz_id}/results/{result_id}", response_model=ResultOut)
def get_result(quiz_id: str, result_id: str, db: Session = Depends(get_db)):
    result = (
        db.query(QuizResult)
        .filter(QuizResult.id == result_id, QuizResult.quiz_id == quiz_id)
        .first()
    )
    if not result:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="result not found")
    quiz = db.get(Quiz, quiz_id)
    character = db.get(AnimeCharacter, result.character_id)
    if not quiz or not character:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="result not found")
    return ResultOut(
        id=result.id,
        quiz_id=result.quiz_id,
        quiz_title=quiz.title,
        session_id=result.session_id,
        created_at=to_iso(result.created_at),
        character=character_out(character),
    )
