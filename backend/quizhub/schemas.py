# Pydantic request/response schemas.
from typing import List, Optional

from pydantic import BaseModel, Field

# Request payload for creating an anime series.
class SeriesCreate(BaseModel):
    name: str = Field(..., min_length=1)

# Response model for an anime series.
class SeriesOut(BaseModel):
    id: str
    name: str

# Request payload for creating a character.
class CharacterCreate(BaseModel):
    anime_id: str
    name: str = Field(..., min_length=1)
    description: str = ""
    image: str = ""
    traits: List[str] = []
    fun_facts: List[str] = []

# Response model for a character.
class CharacterOut(BaseModel):
    id: str
    anime_id: str
    name: str
    description: str
    image: str
    traits: List[str]
    fun_facts: List[str]

# One answer option; picking it scores a point for the character.
class OptionIn(BaseModel):
    text: str
    character_id: str

# One authored question.
class QuestionIn(BaseModel):
    text: str
    options: List[OptionIn]

# Request payload for creating or replacing a quiz.
class QuizCreate(BaseModel):
    title: str = Field(..., min_length=1)
    description: str = ""
    anime_id: Optional[str] = None
    min_questions: int = Field(5, ge=1)
    max_questions: int = Field(10, ge=1)
    questions: List[QuestionIn]
    is_default: bool = False
    use_locker: bool = False

# Response model for quiz metadata.
class QuizOut(BaseModel):
    id: str
    title: str
    description: str
    anime_id: Optional[str]
    anime_name: Optional[str]
    min_questions: int
    max_questions: int
    question_count: int
    is_default: bool
    completion_count: int
    use_locker: bool
    created_at: str
    updated_at: str

# Quiz listing with the featured quiz pulled out.
class QuizListOut(BaseModel):
    featured: Optional[QuizOut]
    quizzes: List[QuizOut]

# Request payload for starting a quiz session.
class SessionStart(BaseModel):
    session_id: Optional[str] = Field(None, max_length=64)

# Public view of an option, safe to show while the quiz is running.
class OptionOut(BaseModel):
    text: str
    character_id: str

# Public view of the question currently awaiting an answer.
class QuestionOut(BaseModel):
    text: str
    options: List[OptionOut]

# Response model for session progress.
class SessionOut(BaseModel):
    handle: str
    quiz_id: str
    quiz_title: str
    status: str
    current_index: int
    total_questions: int
    question: Optional[QuestionOut]

# Request payload for answering the current question.
class AnswerCreate(BaseModel):
    character_id: str

# Response model for a finished session.
class FinishOut(BaseModel):
    result_id: str
    quiz_id: str
    character_id: str
    character_name: Optional[str]

# Response model for a stored quiz result.
class ResultOut(BaseModel):
    id: str
    quiz_id: str
    quiz_title: str
    session_id: str
    created_at: str
    character: CharacterOut
