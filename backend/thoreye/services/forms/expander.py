"""
Section Expander

Materializes repeatable ("interaction") section instances on demand.

Instance numbering is derived, never counted: the next index is computed from
the sections already spawned AND the `_repeat_<n>` suffixes present in the
answer map, so a reload that kept the answers but lost the spawned sections
still numbers new instances correctly.
"""
from __future__ import annotations
import logging
import re
from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, List, Optional, Set, Tuple

from ...models.ssot import (
    FormDefinition, Section, Question, REPEAT_INFIX, ANSWER_YES, ANSWER_NO,
)

logger = logging.getLogger(__name__)

ANOTHER_INTERACTION_PATTERN = re.compile(r"was there another interaction", re.IGNORECASE)
INTERACTION_NAME = "Interaction {n}"

_REPEAT_SUFFIX = re.compile(re.escape(REPEAT_INFIX) + r"(\d+)$")


# =============================================================================
# ID HELPERS
# =============================================================================

def repeat_index(question_id: str) -> Optional[int]:
    """Instance index encoded in a `<id>_repeat_<n>` key, or None."""
    match = _REPEAT_SUFFIX.search(question_id)
    return int(match.group(1)) if match else None


def base_question_id(question_id: str) -> str:
    """Strip a `_repeat_<n>` suffix."""
    return _REPEAT_SUFFIX.sub("", question_id)


def repeat_id(original_id: str, index: int) -> str:
    return f"{original_id}{REPEAT_INFIX}{index}"


def answer_key_indices(answer_keys: Iterable[str]) -> Set[int]:
    """Repeat indices (>= 2) implied by answer keys."""
    indices = set()
    for key in answer_keys:
        index = repeat_index(key)
        if index is not None and index > 1:
            indices.add(index)
    return indices


# =============================================================================
# TEMPLATE CLONING
# =============================================================================

def find_template(sections: Iterable[Section]) -> Optional[Section]:
    """First section flagged repeatable that is itself a template (not an instance)."""
    for section in sections:
        if section.is_repeatable and not section.repetition_index:
            return section
    return None


def clone_section(template: Section, index: int) -> Section:
    """
    Copy a template into instance `index`. Question ids, and intra-section
    controlled_by references, are rewritten to `<id>_repeat_<index>`.
    """
    template_ids = {q.id for q in template.questions}
    questions = []
    for question in template.questions:
        controlled_by = question.controlled_by
        if controlled_by in template_ids:
            controlled_by = repeat_id(controlled_by, index)
        questions.append(replace(question, id=repeat_id(question.id, index), controlled_by=controlled_by))

    return replace(
        template,
        id=repeat_id(template.id, index),
        name=INTERACTION_NAME.format(n=index),
        questions=questions,
        repetition_index=index,
    )


def effective_sections(
    form: FormDefinition,
    answer_keys: Iterable[str],
    spawned: Iterable[Section] = (),
) -> List[Section]:
    """
    Form sections followed by one instance per distinct repeat index, taken
    from spawned sections and from answer keys, in index order.
    """
    sections = list(form.sections)
    template = find_template(sections)
    by_index: Dict[int, Section] = {}

    for section in spawned:
        if section.repetition_index and section.repetition_index not in by_index:
            by_index[section.repetition_index] = section

    if template is not None:
        for index in answer_key_indices(answer_keys):
            if index not in by_index:
                by_index[index] = clone_section(template, index)
    elif answer_key_indices(answer_keys):
        logger.warning(f"Form '{form.name}' has repeat answers but no repeatable template section")

    return sections + [by_index[i] for i in sorted(by_index)]


# =============================================================================
# SPAWNING
# =============================================================================

@dataclass
class FormState:
    """Working state of an in-progress audit."""
    form: FormDefinition
    answers: Dict[str, str] = field(default_factory=dict)
    spawned_sections: List[Section] = field(default_factory=list)
    active_section: Optional[str] = None

    def known_indices(self) -> Set[int]:
        indices = {s.repetition_index for s in self.spawned_sections if s.repetition_index}
        return indices | answer_key_indices(self.answers.keys())

    def sections(self) -> List[Section]:
        return effective_sections(self.form, self.answers.keys(), self.spawned_sections)


def is_spawn_trigger(question: Question, answer_value: str) -> bool:
    return bool(ANOTHER_INTERACTION_PATTERN.search(question.text or "")) and \
        (answer_value or "").strip().lower() == ANSWER_YES.lower()


def maybe_spawn_section(
    changed_question: Question,
    answer_value: str,
    state: FormState,
) -> Optional[Section]:
    """
    Return a new interaction instance when the changed answer is an affirmative
    "another interaction", else None.

    The trigger in instance k owns instance k + 1: if that index already
    exists the event was handled before and nothing is spawned.
    """
    if not is_spawn_trigger(changed_question, answer_value):
        return None

    template = find_template(state.form.sections)
    if template is None:
        logger.warning(f"No repeatable section in form '{state.form.name}'; cannot spawn interaction")
        return None

    known = state.known_indices()
    trigger_index = repeat_index(changed_question.id) or 1
    if trigger_index + 1 in known:
        logger.debug(f"Interaction {trigger_index + 1} already exists; not spawning again")
        return None

    next_index = 1 + max(known | {1})
    section = clone_section(template, next_index)
    logger.info(f"Spawned '{section.name}' from template '{template.name}'")
    return section


def prune_sections_after(spawned: Iterable[Section], index: int) -> List[Section]:
    """Drop spawned instances numbered above `index`."""
    return [s for s in spawned if (s.repetition_index or 1) <= index]


def apply_answer(state: FormState, question_id: str, value: str) -> Tuple[FormState, Optional[Section]]:
    """
    Record an answer and run the expander. Returns the new state and the
    spawned section, if any. The input state is not modified.
    """
    answers = dict(state.answers)
    answers[question_id] = value
    new_state = replace(state, answers=answers, spawned_sections=list(state.spawned_sections))

    question = next(
        (q for s in state.sections() for q in s.questions if q.id == question_id),
        None,
    )
    if question is None:
        return new_state, None

    spawned = maybe_spawn_section(question, value, state)
    if spawned is not None:
        new_state.spawned_sections.append(spawned)
        new_state.active_section = spawned.name
    elif ANOTHER_INTERACTION_PATTERN.search(question.text or "") and \
            (value or "").strip().lower() == ANSWER_NO.lower():
        keep_up_to = repeat_index(question_id) or 1
        new_state.spawned_sections = prune_sections_after(new_state.spawned_sections, keep_up_to)
        new_state.answers = {
            key: answer for key, answer in answers.items()
            if (repeat_index(key) or 1) <= keep_up_to
        }
    return new_state, spawned
