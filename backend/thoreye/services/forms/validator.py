"""
Mandatory Validator

Submission-time completeness check over visible, mandatory questions.
Hidden sections and hidden questions are never required.
"""
import logging
from dataclasses import dataclass, field
from typing import List, Mapping

from ...models.ssot import Section, QuestionRef, NOT_ANSWERED
from .visibility import is_section_visible, is_question_visible

logger = logging.getLogger(__name__)


@dataclass
class ValidationResult:
    is_valid: bool
    missing: List[QuestionRef] = field(default_factory=list)

    def to_dict(self):
        return {"isValid": self.is_valid, "missing": [m.to_dict() for m in self.missing]}


class MandatoryValidationError(Exception):
    """Raised when a submission is missing visible mandatory answers."""

    def __init__(self, missing: List[QuestionRef]):
        self.missing = missing
        super().__init__(
            "Please complete all required fields: " + ", ".join(str(ref) for ref in missing)
        )


def _is_blank(value) -> bool:
    return value is None or (isinstance(value, str) and (not value.strip() or value == NOT_ANSWERED))


def validate(sections: List[Section], answers: Mapping[str, str]) -> ValidationResult:
    """
    Check every visible mandatory question of the effective section list.

    Args:
        sections: Effective sections (form sections plus spawned instances)
        answers: questionId -> answer value
    """
    missing: List[QuestionRef] = []

    for section in sections:
        if not is_section_visible(section, answers, sections):
            logger.debug(f"Skipping validation for hidden section: {section.name}")
            continue

        for question in section.questions:
            if not question.mandatory:
                continue
            if not is_question_visible(question, section, answers):
                logger.debug(f"Skipping validation for hidden question: {question.id}")
                continue
            if _is_blank(answers.get(question.id)):
                missing.append(QuestionRef(section.name, question.id, question.text))

    if missing:
        logger.info(f"Mandatory validation failed: {len(missing)} missing answers")

    return ValidationResult(is_valid=not missing, missing=missing)
