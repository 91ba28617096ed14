# Random question subset selection for a quiz session.
import random
from typing import List, Optional, Sequence

from quizhub.domain import Question


def sample(
    question_bank: Sequence[Question],
    min_count: int,
    max_count: int,
    rng: Optional[random.Random] = None,
) -> List[Question]:
    """Pick between ``min_count`` and ``max_count`` distinct questions in random order.

    The count is drawn uniformly from the closed range and clamped to the bank
    size, so a bank smaller than ``min_count`` yields every question it has.
    """
    if not question_bank:
        raise ValueError("question bank must not be empty")
    if min_count < 1 or min_count > max_count:
        raise ValueError("question bounds must satisfy 1 <= min_count <= max_count")

    rng = rng or random.Random()
    count = min(rng.randint(min_count, max_count), len(question_bank))
    return rng.sample(list(question_bank), count)
