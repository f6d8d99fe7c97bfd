"""
Visibility Resolver

Decides which sections and questions are active for the current answers.
Pure functions of (sections, answers): no state, safe to call on every change.

A missing controlling question is treated as "visible" (fail-open) so that
legacy or half-edited form definitions never hide questions.
"""
import logging
from typing import Dict, Iterable, List, Mapping, Optional

from ...models.ssot import Question, Section
from .options import split_values

logger = logging.getLogger(__name__)


def _find_section_controller(section: Section, sections: Iterable[Section]) -> Optional[Question]:
    for candidate in sections:
        for question in candidate.questions:
            if question.controls_section and question.controlled_section_id == section.id:
                return question
    return None


def is_section_visible(
    section: Section,
    answers: Mapping[str, str],
    sections: Iterable[Section],
) -> bool:
    """
    A section is visible unless it is controlled and the controlling answer
    is not one of the controlling question's visible_on_values.

    Args:
        section: Section to test
        answers: questionId -> answer value
        sections: Every section of the form (effective list), searched for the controller
    """
    if not section.controlled_by:
        return True

    controller = _find_section_controller(section, sections)
    if controller is None:
        logger.warning(f"No controlling question for section '{section.name}' ({section.id}); treating as visible")
        return True

    return answers.get(controller.id, "") in split_values(controller.visible_on_values)


def is_question_visible(question: Question, section: Section, answers: Mapping[str, str]) -> bool:
    """
    A question is visible unless it is controlled by a sibling question whose
    answer is not one of this question's visible_on_values.
    """
    if not question.controlled_by:
        return True

    controller = next((q for q in section.questions if q.id == question.controlled_by), None)
    if controller is None:
        logger.warning(
            f"Controlling question '{question.controlled_by}' not found in section '{section.name}'; "
            f"treating '{question.id}' as visible"
        )
        return True

    return answers.get(controller.id, "") in split_values(question.visible_on_values)


def visible_layout(sections: List[Section], answers: Mapping[str, str]) -> Dict[str, List[str]]:
    """Section name -> ids of visible questions, for visible sections only."""
    layout: Dict[str, List[str]] = {}
    for section in sections:
        if not is_section_visible(section, answers, sections):
            continue
        layout[section.name] = [
            q.id for q in section.questions if is_question_visible(q, section, answers)
        ]
    return layout
