# Plain value types shared by the sampler, scoring engine and session controller.
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple


@dataclass(frozen=True)
class Option:
    text: str
    character_id: str


@dataclass(frozen=True)
class Question:
    text: str
    options: Tuple[Option, ...]

    def option_for(self, character_id: str) -> Optional[Option]:
        for option in self.options:
            if option.character_id == character_id:
                return option
        return None


@dataclass(frozen=True)
class Quiz:
    id: str
    title: str
    description: str
    min_questions: int
    max_questions: int
    questions: Tuple[Question, ...]
    is_default: bool = False
    completion_count: int = 0


@dataclass(frozen=True)
class Character:
    id: str
    name: str
    anime_id: Optional[str] = None
    description: str = ""
    image: str = ""
    traits: List[str] = field(default_factory=list)


# Convert stored question JSON into Question values.
def questions_from_json(raw_questions: List[Dict[str, Any]]) -> Tuple[Question, ...]:
    if not isinstance(raw_questions, list):
        raise ValueError("questions must be a list")
    questions = []
    for idx, raw in enumerate(raw_questions, start=1):
        if not isinstance(raw, dict):
            raise ValueError(f"question {idx} must be an object")
        raw_options = raw.get("options")
        if not isinstance(raw_options, list) or len(raw_options) < 2:
            raise ValueError(f"question {idx} must have at least 2 options")
        options = []
        for raw_option in raw_options:
            if not isinstance(raw_option, dict) or not raw_option.get("character_id"):
                raise ValueError(f"question {idx} has an option without a character_id")
            options.append(
                Option(
                    text=str(raw_option.get("text", "")),
                    character_id=str(raw_option["character_id"]),
                )
            )
        questions.append(Question(text=str(raw.get("text", "")), options=tuple(options)))
    return tuple(questions)


# Inverse of questions_from_json, used when persisting authored quizzes.
def questions_to_json(questions) -> List[Dict[str, Any]]:
    return [
        {
            "text": question.text,
            "options": [
                {"text": option.text, "character_id": option.character_id}
                for option in question.options
            ],
        }
        for question in questions
    ]
