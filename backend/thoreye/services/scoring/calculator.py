"""
ThorEye Audit Engine - Score Calculator

Converts effective sections + answers into a percentage score and a fatal flag.
Deterministic and total: no I/O, never raises on degenerate input.

Deduction model:
- Denominator is the weightage of every scored question (weightage > 0),
  answered or not.
- A fatal question answered "Fatal" zeroes the score.
- A fatal question answered "No" deducts its weightage in the fatal pass AND
  again in the generic pass. The two passes stay separate and the
  doubled deduction is current product behaviour and is pinned by tests.
- Generic pass: "Yes"/"NA" deduct nothing, "No" deducts the weightage, or
  weightage * grazingPercentage / 100 when grazing logic is enabled.
"""
from __future__ import annotations
import logging
import math
from typing import Iterable, List, Mapping

from ...models.ssot import (
    Section, Question, ScoreResult, MAX_SCORE,
    FATAL_OPTION, ANSWER_YES, ANSWER_NO, ANSWER_NA,
)

logger = logging.getLogger(__name__)


def round_half_up(value: float) -> int:
    """Round halves upwards (82.5 -> 83), unlike the builtin round()."""
    return int(math.floor(value + 0.5))


class ScoreCalculator:
    """
    Weighted-deduction scorer with fatal override.

    The calculator holds no state between calls.
    """

    def compute(self, sections: List[Section], answers: Mapping[str, str]) -> ScoreResult:
        """
        Score a set of effective sections.

        Args:
            sections: Form sections plus spawned repeat instances
            answers: questionId -> answer value; blank or missing means unanswered

        Returns:
            ScoreResult with score in [0, 100]; score is 0 whenever has_fatal
        """
        scored = [q for q in self._iter_questions(sections) if (q.weightage or 0) > 0]
        total_weightage = sum(q.weightage for q in scored)

        deducted_points = 0.0
        has_fatal = False

        for question in scored:
            answer = answers.get(question.id)
            if not answer:
                logger.debug(f"No answer for scored question {question.id}")
                continue

            # Fatal pass
            if question.is_fatal:
                if answer == FATAL_OPTION:
                    logger.info(f"Fatal answer on question {question.id}; score will be 0")
                    has_fatal = True
                if answer == ANSWER_NO:
                    deducted_points += question.weightage

            # Generic pass
            deducted_points += self._generic_deduction(question, answer)

        if has_fatal:
            score = 0
        elif total_weightage > 0:
            score = max(0, round_half_up(100 - (deducted_points / total_weightage * 100)))
        else:
            score = 0

        logger.info(
            f"Score computed: {score}% (deducted {deducted_points} of {total_weightage}, fatal={has_fatal})"
        )

        return ScoreResult(
            score=score,
            has_fatal=has_fatal,
            total_weightage=total_weightage,
            deducted_points=deducted_points,
            max_score=MAX_SCORE,
        )

    def _generic_deduction(self, question: Question, answer: str) -> float:
        if answer in (ANSWER_YES, ANSWER_NA, FATAL_OPTION):
            return 0.0
        if answer == ANSWER_NO:
            if question.grazing_logic and question.grazing_percentage:
                return question.weightage * (question.grazing_percentage / 100)
            return float(question.weightage)
        return 0.0

    @staticmethod
    def _iter_questions(sections: Iterable[Section]):
        for section in sections:
            for question in section.questions:
                yield question


def find_unresolved_answers(sections: List[Section], answer_keys: Iterable[str]) -> List[str]:
    """
    Answer ids that do not resolve to any question of the effective sections.
    These are skipped by scoring and validation; callers log them.
    """
    known = {q.id for s in sections for q in s.questions}
    unresolved = [key for key in answer_keys if key not in known]
    for key in unresolved:
        logger.warning(f"Answer '{key}' does not match any question in the effective sections")
    return unresolved


# =============================================================================
# FACTORY FUNCTION
# =============================================================================

def compute_score(sections: List[Section], answers: Mapping[str, str]) -> ScoreResult:
    """Score effective sections with a fresh ScoreCalculator."""
    return ScoreCalculator().compute(sections, answers)
