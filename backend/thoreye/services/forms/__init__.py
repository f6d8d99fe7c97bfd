"""ThorEye Audit Engine - Form runtime (visibility, repeat sections, validation)"""
from .options import split_values, parse_options
from .visibility import is_section_visible, is_question_visible, visible_layout
from .expander import (
    FormState,
    maybe_spawn_section,
    apply_answer,
    effective_sections,
    clone_section,
    prune_sections_after,
    repeat_index,
    base_question_id,
)
from .validator import validate, ValidationResult, MandatoryValidationError

__all__ = [
    "split_values",
    "parse_options",
    "is_section_visible",
    "is_question_visible",
    "visible_layout",
    "FormState",
    "maybe_spawn_section",
    "apply_answer",
    "effective_sections",
    "clone_section",
    "prune_sections_after",
    "repeat_index",
    "base_question_id",
    "validate",
    "ValidationResult",
    "MandatoryValidationError",
]
