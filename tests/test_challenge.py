"""Tests for src.core.challenge — problem generation and mission gate."""

import random

import pytest

from src.core.challenge import (
    ChallengeSession,
    generate_problem,
    parse_answer,
    required_streak,
)
from src.data.models import Operator


def _expected(problem):
    if problem.op is Operator.ADD:
        return problem.a + problem.b
    if problem.op is Operator.SUBTRACT:
        return problem.a - problem.b
    return problem.a * problem.b


class TestRequiredStreak:
    def test_values(self):
        assert required_streak("easy") == 3
        assert required_streak("medium") == 5
        assert required_streak("hard") == 7

    def test_unknown_is_hardest(self):
        assert required_streak("???") == 7


class TestGenerateProblem:
    @pytest.mark.parametrize("difficulty", ["easy", "medium", "hard", "unknown"])
    def test_answers_match_operands(self, difficulty):
        rng = random.Random(42)
        for _ in range(300):
            problem = generate_problem(difficulty, rng)
            assert problem.a > 0 and problem.b > 0
            assert isinstance(problem.op, Operator)
            assert problem.answer == _expected(problem)

    def test_easy_is_small_add_or_subtract(self):
        rng = random.Random(1)
        ops = set()
        for _ in range(300):
            problem = generate_problem("easy", rng)
            assert 1 <= problem.a <= 10 and 1 <= problem.b <= 10
            ops.add(problem.op)
        assert ops == {Operator.ADD, Operator.SUBTRACT}

    def test_medium_sometimes_multiplies(self):
        rng = random.Random(2)
        ops = {generate_problem("medium", rng).op for _ in range(300)}
        assert Operator.MULTIPLY in ops

    def test_hard_is_multiplication_biased(self):
        rng = random.Random(3)
        ops = [generate_problem("hard", rng).op for _ in range(1000)]
        assert ops.count(Operator.MULTIPLY) > 500

    def test_subtraction_may_be_negative(self):
        rng = random.Random(4)
        answers = [
            p.answer for p in (generate_problem("easy", rng) for _ in range(300))
            if p.op is Operator.SUBTRACT
        ]
        assert any(a < 0 for a in answers)

    def test_problem_text(self):
        rng = random.Random(5)
        problem = generate_problem("easy", rng)
        assert problem.text.endswith("= ?")
        assert str(problem.a) in problem.text


class TestParseAnswer:
    def test_plain(self):
        assert parse_answer("42") == 42

    def test_negative_with_spaces(self):
        assert parse_answer("  -7 ") == -7

    def test_garbage(self):
        assert parse_answer("seven") is None
        assert parse_answer("") is None
        assert parse_answer("3.5") is None


class TestChallengeSession:
    def test_three_correct_resolves_easy(self):
        session = ChallengeSession("easy", rng=random.Random(7))
        for expected_streak in (1, 2):
            assert session.submit(session.problem.answer) is True
            assert session.streak == expected_streak
            assert session.resolved is False
        assert session.submit(session.problem.answer) is True
        assert session.resolved is True

    def test_wrong_answer_resets_without_resolving(self):
        session = ChallengeSession("easy", rng=random.Random(8))
        session.submit(session.problem.answer)
        session.submit(session.problem.answer)
        assert session.submit(session.problem.answer + 1) is False
        assert session.streak == 0
        assert session.resolved is False

        for _ in range(2):
            session.submit(session.problem.answer)
        assert session.resolved is False
        session.submit(session.problem.answer)
        assert session.resolved is True

    def test_wrong_answer_issues_new_problem(self):
        rng = random.Random(9)
        session = ChallengeSession("hard", rng=rng)
        problems = set()
        for _ in range(5):
            problems.add((session.problem.a, session.problem.b, session.problem.op))
            session.submit(session.problem.answer + 1)
        assert len(problems) > 1

    def test_required_follows_difficulty(self):
        assert ChallengeSession("medium").required == 5
