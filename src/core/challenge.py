"""Math mission — problem generation and the consecutive-correct gate.

A ringing alarm is dismissed only after the user answers
`required_streak(difficulty)` problems correctly in a row. Harder alarms use
larger operands and lean towards multiplication.
"""

from __future__ import annotations

import random
from dataclasses import dataclass, field

from src.data.models import Operator, Problem

_REQUIRED_STREAK = {"easy": 3, "medium": 5, "hard": 7}


def required_streak(difficulty: str) -> int:
    """Consecutive correct answers needed to dismiss an alarm."""
    return _REQUIRED_STREAK.get(difficulty, 7)


def generate_problem(difficulty: str, rng: random.Random | None = None) -> Problem:
    """Build one arithmetic problem for the given difficulty.

    Operands are always positive; subtraction may yield a negative answer.
    Unknown difficulties are treated as hard.
    """
    rng = rng or random.Random()

    if difficulty == "easy":
        a = rng.randint(1, 10)
        b = rng.randint(1, 10)
        op = Operator.ADD if rng.random() < 0.5 else Operator.SUBTRACT
    elif difficulty == "medium":
        a = rng.randint(5, 24)
        b = rng.randint(5, 24)
        r = rng.random()
        if r < 0.4:
            op = Operator.ADD
        elif r < 0.8:
            op = Operator.SUBTRACT
        else:
            op = Operator.MULTIPLY
    else:
        a = rng.randint(10, 49)
        b = rng.randint(5, 24)
        if rng.random() < 0.6:
            op = Operator.MULTIPLY
        else:
            op = Operator.ADD if rng.random() < 0.5 else Operator.SUBTRACT

    return Problem(a=a, b=b, op=op, answer=_evaluate(a, b, op))


def _evaluate(a: int, b: int, op: Operator) -> int:
    if op is Operator.ADD:
        return a + b
    if op is Operator.SUBTRACT:
        return a - b
    return a * b


def parse_answer(text: str) -> int | None:
    """Parse a typed answer like " -12 ". Returns None if not an integer."""
    try:
        return int(text.strip())
    except (ValueError, AttributeError):
        return None


@dataclass
class ChallengeSession:
    """In-progress math mission for one ringing alarm."""

    difficulty: str
    rng: random.Random = field(default_factory=random.Random)
    streak: int = 0
    resolved: bool = False
    problem: Problem = field(init=False)

    def __post_init__(self) -> None:
        self.problem = generate_problem(self.difficulty, self.rng)

    @property
    def required(self) -> int:
        return required_streak(self.difficulty)

    def submit(self, answer: int) -> bool:
        """Check an answer against the current problem.

        Returns True if it was correct. A wrong answer resets the streak.
        Once the required streak is reached the session is resolved and the
        last problem is kept.
        """
        if self.resolved:
            return True

        if answer != self.problem.answer:
            self.streak = 0
            self.problem = generate_problem(self.difficulty, self.rng)
            return False

        self.streak += 1
        if self.streak >= self.required:
            self.resolved = True
        else:
            self.problem = generate_problem(self.difficulty, self.rng)
        return True
