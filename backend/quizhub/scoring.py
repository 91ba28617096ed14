# Per-character point accumulation and winner resolution.
from typing import Dict

from quizhub.domain import Question
from quizhub.errors import NoAnswersRecorded

CharacterPoints = Dict[str, int]


# Return a copy of points with the chosen character bumped by one.
# Ids that match no option of the question leave the points untouched.
def record_answer(
    points: CharacterPoints, question: Question, chosen_character_id: str
) -> CharacterPoints:
    option = question.option_for(chosen_character_id)
    if option is None:
        return points
    updated = dict(points)
    updated[option.character_id] = updated.get(option.character_id, 0) + 1
    return updated


# Highest total wins; on a tie the character that scored first wins.
def resolve_winner(points: CharacterPoints) -> str:
    if not points:
        raise NoAnswersRecorded()
    # max() keeps the first maximal item, and dicts iterate in insertion order.
    return max(points.items(), key=lambda item: item[1])[0]
