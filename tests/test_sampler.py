# Question sampler tests.
import random

import pytest

from quizhub.sampler import sample


@pytest.mark.parametrize("seed", range(20))
def test_sample_respects_bounds_without_duplicates(build_quiz, seed):
    quiz = build_quiz(bank_size=12, min_questions=3, max_questions=7)

    picked = sample(quiz.questions, 3, 7, random.Random(seed))

    assert 3 <= len(picked) <= 7
    assert len(set(q.text for q in picked)) == len(picked)
    assert all(q in quiz.questions for q in picked)


def test_sample_returns_whole_bank_when_smaller_than_minimum(build_quiz):
    quiz = build_quiz(bank_size=3, min_questions=5, max_questions=10)

    picked = sample(quiz.questions, 5, 10, random.Random(1))

    assert len(picked) == 3
    assert set(picked) == set(quiz.questions)


def test_sample_clamps_to_bank_size(build_quiz):
    quiz = build_quiz(bank_size=4, min_questions=2, max_questions=10)

    for seed in range(20):
        assert len(sample(quiz.questions, 2, 10, random.Random(seed))) <= 4


def test_sample_is_reproducible_with_seeded_rng(build_quiz):
    quiz = build_quiz(bank_size=10, min_questions=2, max_questions=8)

    first = sample(quiz.questions, 2, 8, random.Random(42))
    second = sample(quiz.questions, 2, 8, random.Random(42))

    assert first == second


def test_sample_fixed_count(build_quiz):
    quiz = build_quiz(bank_size=3, min_questions=2, max_questions=2)

    assert len(sample(quiz.questions, 2, 2, random.Random(7))) == 2


@pytest.mark.parametrize("min_count,max_count", [(0, 3), (4, 3), (-1, 1)])
def test_sample_rejects_invalid_bounds(build_quiz, min_count, max_count):
    quiz = build_quiz(bank_size=3, min_questions=1, max_questions=3)

    with pytest.raises(ValueError):
        sample(quiz.questions, min_count, max_count)


def test_sample_rejects_empty_bank():
    with pytest.raises(ValueError):
        sample([], 1, 2)
