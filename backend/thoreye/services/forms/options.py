"""
Option-string helpers.

Question options are stored as a comma-separated string. Fatal questions
get a synthetic "Fatal" option that is never part of the stored string.
"""
from typing import Any, List

from ...models.ssot import Question, FATAL_OPTION


def split_values(raw: Any) -> List[str]:
    """Split a comma-separated string (or pass a list through), trimming blanks."""
    if raw is None:
        return []
    if isinstance(raw, str):
        parts = raw.split(",")
    else:
        parts = [str(v) for v in raw]
    return [p.strip() for p in parts if p.strip()]


def parse_options(question: Question) -> List[str]:
    """Rendered option list for a question, including the synthetic Fatal option."""
    options = split_values(question.options)
    if question.is_fatal and FATAL_OPTION not in options:
        options.append(FATAL_OPTION)
    return options
