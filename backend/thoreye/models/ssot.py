"""
ThorEye Audit Engine - Single Source of Truth Models

These models are the ONLY data structures passed between the engines.
Form definitions are read-only snapshots; a submitted report stores a deep
copy of the answers it was scored against, never a live form reference.

Wire format is camelCase JSON (to_dict / from_dict), matching the stored
form and report documents.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


# =============================================================================
# CONSTANTS
# =============================================================================

MAX_SCORE = 100
FATAL_OPTION = "Fatal"
ANSWER_YES = "Yes"
ANSWER_NO = "No"
ANSWER_NA = "NA"
NOT_ANSWERED = "Not Answered"
REPEAT_INFIX = "_repeat_"


def now_ms() -> int:
    """Current time as epoch milliseconds."""
    return int(datetime.now(timezone.utc).timestamp() * 1000)


# =============================================================================
# ENUMS
# =============================================================================

class QuestionType(str, Enum):
    TEXT = "text"
    DROPDOWN = "dropdown"
    MULTI_SELECT = "multiSelect"
    NUMBER = "number"
    PARTNER = "partner"


class ReportStatus(str, Enum):
    """Canonical workflow status of an AuditReport."""
    DRAFT = "draft"
    COMPLETED = "completed"
    UNDER_REBUTTAL = "under_rebuttal"
    REBUTTAL_REJECTED = "rebuttal_rejected"
    UNDER_RE_REBUTTAL = "under_re_rebuttal"
    ACCEPTED = "accepted"


class RebuttalAction(str, Enum):
    ACCEPT = "accept"
    REJECT = "reject"
    RE_REBUTTAL = "re_rebuttal"
    BOD = "bod"


class RebuttalType(str, Enum):
    REBUTTAL = "rebuttal"
    RE_REBUTTAL = "re_rebuttal"


class RebuttalStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class ActorClass(str, Enum):
    """Which side of the rebuttal table an identity acts for."""
    PARTNER = "partner"
    MANAGEMENT = "management"
    OTHER = "other"


MANAGEMENT_ROLES = {"admin", "manager", "teamleader"}


# =============================================================================
# IDENTITY
# =============================================================================

@dataclass(frozen=True)
class Identity:
    """Acting user as supplied by the identity provider."""
    id: str
    username: str
    role: str

    @property
    def actor_class(self) -> ActorClass:
        if self.role == "partner":
            return ActorClass.PARTNER
        if self.role in MANAGEMENT_ROLES:
            return ActorClass.MANAGEMENT
        return ActorClass.OTHER

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "username": self.username, "role": self.role}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Identity":
        return cls(id=str(data["id"]), username=data["username"], role=data.get("role", ""))


# =============================================================================
# FORM DEFINITION (read-only snapshot from the form store)
# =============================================================================

@dataclass
class Question:
    """
    Single question of a form section.

    visible_on_values is used two ways: as the list of values that reveal a
    controlled *section* (when controls_section is set) and as the values of
    the controlling answer that reveal *this* question (when controlled_by is
    set). Both list and comma-separated string forms are accepted.
    """
    id: str
    text: str
    type: QuestionType = QuestionType.DROPDOWN
    options: str = ""
    weightage: float = 0
    deduction_points: float = 0
    mandatory: bool = False
    is_fatal: bool = False
    enable_remarks: bool = False
    grazing_logic: bool = False
    grazing_percentage: Optional[float] = None
    controlled_by: Optional[str] = None
    visible_on_values: Any = None
    controls_section: bool = False
    controlled_section_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "text": self.text,
            "type": self.type.value,
            "options": self.options,
            "weightage": self.weightage,
            "deductionPoints": self.deduction_points,
            "mandatory": self.mandatory,
            "isFatal": self.is_fatal,
            "enableRemarks": self.enable_remarks,
            "grazingLogic": self.grazing_logic,
            "grazingPercentage": self.grazing_percentage,
            "controlledBy": self.controlled_by,
            "visibleOnValues": self.visible_on_values,
            "controlsSection": self.controls_section,
            "controlledSectionId": self.controlled_section_id,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Question":
        return cls(
            id=str(data["id"]),
            text=data.get("text", ""),
            type=QuestionType(data.get("type", "dropdown")),
            options=data.get("options") or "",
            weightage=data.get("weightage") or 0,
            deduction_points=data.get("deductionPoints") or 0,
            mandatory=bool(data.get("mandatory", False)),
            is_fatal=bool(data.get("isFatal", False)),
            enable_remarks=bool(data.get("enableRemarks", False)),
            grazing_logic=bool(data.get("grazingLogic", False)),
            grazing_percentage=data.get("grazingPercentage"),
            controlled_by=data.get("controlledBy"),
            visible_on_values=data.get("visibleOnValues"),
            controls_section=bool(data.get("controlsSection", False)),
            controlled_section_id=data.get("controlledSectionId"),
        )


@dataclass
class Section:
    """
    Form section. A repeatable section is a template; its runtime copies
    carry repetition_index >= 2.
    """
    id: str
    name: str
    questions: List[Question] = field(default_factory=list)
    is_repeatable: bool = False
    controlled_by: Optional[str] = None
    repetition_index: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "questions": [q.to_dict() for q in self.questions],
            "isRepeatable": self.is_repeatable,
            "controlledBy": self.controlled_by,
            "repetitionIndex": self.repetition_index,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Section":
        return cls(
            id=str(data.get("id") or data["name"]),
            name=data["name"],
            questions=[Question.from_dict(q) for q in data.get("questions", [])],
            is_repeatable=bool(data.get("isRepeatable", False)),
            controlled_by=data.get("controlledBy"),
            repetition_index=data.get("repetitionIndex"),
        )


@dataclass
class FormDefinition:
    name: str
    sections: List[Section] = field(default_factory=list)

    def find_question(self, question_id: str) -> Optional[Question]:
        for section in self.sections:
            for question in section.questions:
                if question.id == question_id:
                    return question
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "sections": [s.to_dict() for s in self.sections]}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FormDefinition":
        return cls(
            name=data["name"],
            sections=[Section.from_dict(s) for s in data.get("sections", [])],
        )


# =============================================================================
# ANSWERS AND REPORT
# =============================================================================

@dataclass
class Answer:
    """Recorded answer. Snapshot fields are filled in at submission."""
    question_id: str
    answer: str = ""
    remarks: Optional[str] = None
    rating: Optional[int] = None
    question_text: str = ""
    question_type: Optional[str] = None
    is_fatal: bool = False
    weightage: float = 0

    @property
    def is_empty(self) -> bool:
        return not self.answer or not self.answer.strip() or self.answer == NOT_ANSWERED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "questionId": self.question_id,
            "answer": self.answer,
            "remarks": self.remarks,
            "rating": self.rating,
            "questionText": self.question_text,
            "questionType": self.question_type,
            "isFatal": self.is_fatal,
            "weightage": self.weightage,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Answer":
        return cls(
            question_id=str(data["questionId"]),
            answer=data.get("answer") or "",
            remarks=data.get("remarks"),
            rating=data.get("rating"),
            question_text=data.get("questionText", ""),
            question_type=data.get("questionType"),
            is_fatal=bool(data.get("isFatal", False)),
            weightage=data.get("weightage") or 0,
        )


@dataclass
class SectionAnswers:
    section_name: str
    answers: List[Answer] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sectionName": self.section_name,
            "answers": [a.to_dict() for a in self.answers],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SectionAnswers":
        return cls(
            section_name=data["sectionName"],
            answers=[Answer.from_dict(a) for a in data.get("answers", [])],
        )


@dataclass
class EditHistoryEntry:
    editor: str
    action: str
    timestamp: int = field(default_factory=now_ms)

    def to_dict(self) -> Dict[str, Any]:
        return {"editor": self.editor, "action": self.action, "timestamp": self.timestamp}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EditHistoryEntry":
        return cls(editor=data["editor"], action=data["action"], timestamp=data["timestamp"])


@dataclass
class QuestionRef:
    """Reference to a question in the effective section list."""
    section_name: str
    question_id: str
    question_text: str

    def __str__(self) -> str:
        return f"{self.question_text} ({self.question_id})"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sectionName": self.section_name,
            "questionId": self.question_id,
            "questionText": self.question_text,
        }


@dataclass
class ScoreResult:
    score: int
    has_fatal: bool
    total_weightage: float = 0
    deducted_points: float = 0
    max_score: int = MAX_SCORE


# =============================================================================
# ATA REVIEW
# =============================================================================

@dataclass(frozen=True)
class QuestionRating:
    question_id: str
    auditor_answer: str
    ata_answer: str
    is_correct: bool = True
    is_ce: bool = False
    is_nce: bool = False
    comments: str = ""
    question_text: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "questionId": self.question_id,
            "questionText": self.question_text,
            "auditorAnswer": self.auditor_answer,
            "ataAnswer": self.ata_answer,
            "isCorrect": self.is_correct,
            "isCE": self.is_ce,
            "isNCE": self.is_nce,
            "comments": self.comments,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "QuestionRating":
        return cls(
            question_id=data["questionId"],
            question_text=data.get("questionText", ""),
            auditor_answer=data.get("auditorAnswer", ""),
            ata_answer=data.get("ataAnswer", ""),
            is_correct=bool(data.get("isCorrect", True)),
            is_ce=bool(data.get("isCE", False)),
            is_nce=bool(data.get("isNCE", False)),
            comments=data.get("comments", ""),
        )


@dataclass(frozen=True)
class AccuracyMetrics:
    total_questions: int
    correct_answers: int
    incorrect_answers: int
    ce_errors: int
    nce_errors: int
    overall_accuracy: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalQuestions": self.total_questions,
            "correctAnswers": self.correct_answers,
            "incorrectAnswers": self.incorrect_answers,
            "ceErrors": self.ce_errors,
            "nceErrors": self.nce_errors,
            "overallAccuracy": self.overall_accuracy,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AccuracyMetrics":
        return cls(
            total_questions=data["totalQuestions"],
            correct_answers=data["correctAnswers"],
            incorrect_answers=data["incorrectAnswers"],
            ce_errors=data["ceErrors"],
            nce_errors=data["nceErrors"],
            overall_accuracy=data["overallAccuracy"],
        )


@dataclass(frozen=True)
class ATAReview:
    """
    Master auditor review. Immutable once produced; a later review of the
    same report replaces it.
    """
    audit_report_id: str
    master_auditor: Identity
    question_ratings: Tuple[QuestionRating, ...]
    accuracy_metrics: AccuracyMetrics
    master_rating: int
    original_score: int
    ata_score: int
    variance: int
    feedback: str
    timestamp: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "auditReportId": self.audit_report_id,
            "masterAuditor": self.master_auditor.to_dict(),
            "questionRatings": [r.to_dict() for r in self.question_ratings],
            "accuracyMetrics": self.accuracy_metrics.to_dict(),
            "masterRating": self.master_rating,
            "originalScore": self.original_score,
            "ataScore": self.ata_score,
            "variance": self.variance,
            "feedback": self.feedback,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ATAReview":
        return cls(
            audit_report_id=str(data["auditReportId"]),
            master_auditor=Identity.from_dict(data["masterAuditor"]),
            question_ratings=tuple(QuestionRating.from_dict(r) for r in data.get("questionRatings", [])),
            accuracy_metrics=AccuracyMetrics.from_dict(data["accuracyMetrics"]),
            master_rating=data["masterRating"],
            original_score=data["originalScore"],
            ata_score=data["ataScore"],
            variance=data["variance"],
            feedback=data.get("feedback", ""),
            timestamp=data["timestamp"],
        )


# =============================================================================
# REBUTTAL
# =============================================================================

@dataclass
class RebuttalRecord:
    audit_report_id: str
    partner: Identity
    rebuttal_text: str
    rebuttal_type: RebuttalType = RebuttalType.REBUTTAL
    status: RebuttalStatus = RebuttalStatus.PENDING
    created_at: int = field(default_factory=now_ms)
    handled_by: Optional[Identity] = None
    handler_response: Optional[str] = None
    handled_at: Optional[int] = None
    id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "auditReportId": self.audit_report_id,
            "partner": self.partner.to_dict(),
            "rebuttalText": self.rebuttal_text,
            "rebuttalType": self.rebuttal_type.value,
            "status": self.status.value,
            "createdAt": self.created_at,
            "handledBy": self.handled_by.to_dict() if self.handled_by else None,
            "handlerResponse": self.handler_response,
            "handledAt": self.handled_at,
        }


@dataclass
class AuditReport:
    id: str
    form_name: str
    agent: str
    agent_id: str
    auditor: Identity
    section_answers: List[SectionAnswers] = field(default_factory=list)
    score: int = 0
    max_score: int = MAX_SCORE
    has_fatal: bool = False
    status: ReportStatus = ReportStatus.COMPLETED
    timestamp: int = field(default_factory=now_ms)
    partner_id: Optional[str] = None
    edited: bool = False
    edited_by: Optional[str] = None
    edited_at: Optional[int] = None
    edit_history: List[EditHistoryEntry] = field(default_factory=list)
    ata_review: Optional[ATAReview] = None
    rebuttals: List[RebuttalRecord] = field(default_factory=list)

    def iter_answers(self):
        for section in self.section_answers:
            for answer in section.answers:
                yield section.section_name, answer

    def answer_map(self) -> Dict[str, str]:
        """questionId -> answer value, omitting blanks."""
        return {a.question_id: a.answer for _, a in self.iter_answers() if not a.is_empty}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "formName": self.form_name,
            "agent": self.agent,
            "agentId": self.agent_id,
            "auditor": self.auditor.to_dict(),
            "sectionAnswers": [s.to_dict() for s in self.section_answers],
            "score": self.score,
            "maxScore": self.max_score,
            "hasFatal": self.has_fatal,
            "status": self.status.value,
            "timestamp": self.timestamp,
            "partnerId": self.partner_id,
            "edited": self.edited,
            "editedBy": self.edited_by,
            "editedAt": self.edited_at,
            "editHistory": [e.to_dict() for e in self.edit_history],
            "ataReview": self.ata_review.to_dict() if self.ata_review else None,
            "rebuttals": [r.to_dict() for r in self.rebuttals],
        }
