"""ThorEye Audit Engine - Data Models"""
from .ssot import (
    # Constants
    MAX_SCORE, FATAL_OPTION, ANSWER_YES, ANSWER_NO, ANSWER_NA, NOT_ANSWERED, REPEAT_INFIX,
    now_ms,
    # Enums
    QuestionType, ReportStatus, RebuttalAction, RebuttalType, RebuttalStatus, ActorClass,
    # Identity
    Identity,
    # Form definition
    Question, Section, FormDefinition,
    # Report
    Answer, SectionAnswers, EditHistoryEntry, QuestionRef, ScoreResult, AuditReport,
    # ATA
    QuestionRating, AccuracyMetrics, ATAReview,
    # Rebuttal
    RebuttalRecord,
)

__all__ = [
    "MAX_SCORE", "FATAL_OPTION", "ANSWER_YES", "ANSWER_NO", "ANSWER_NA", "NOT_ANSWERED", "REPEAT_INFIX",
    "now_ms",
    "QuestionType", "ReportStatus", "RebuttalAction", "RebuttalType", "RebuttalStatus", "ActorClass",
    "Identity",
    "Question", "Section", "FormDefinition",
    "Answer", "SectionAnswers", "EditHistoryEntry", "QuestionRef", "ScoreResult", "AuditReport",
    "QuestionRating", "AccuracyMetrics", "ATAReview",
    "RebuttalRecord",
]
