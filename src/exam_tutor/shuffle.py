"""Fisher-Yates shuffling for question sets."""
import dataclasses
import random
from typing import Optional, TypeVar

from exam_tutor.models import Question

T = TypeVar("T")


def fisher_yates(items: list[T], rng: Optional[random.Random] = None) -> list[T]:
    """Return a uniformly random permutation of items; the input is left alone."""
    rng = rng or random.SystemRandom()
    result = list(items)
    for i in range(len(result) - 1, 0, -1):
        j = rng.randint(0, i)
        result[i], result[j] = result[j], result[i]
    return result


def shuffle_questions(questions: list[Question], rng: Optional[random.Random] = None) -> list[Question]:
    """Shuffle question order and the option order within each question."""
    rng = rng or random.SystemRandom()
    return [
        dataclasses.replace(q, options=fisher_yates(q.options, rng))
        for q in fisher_yates(questions, rng)
    ]
