"""
Audit Service

Submission pipeline for audit reports:

    effective sections -> mandatory validation -> score -> snapshot -> save

Drafts skip validation. Edits re-run the same pipeline against the form
snapshot stored with the report, so later changes to the form never move the
score of an existing report.
"""
import logging
from typing import Iterable, List, Mapping, Optional, Tuple
from uuid import uuid4

from sqlalchemy.orm import Session

from ..models.ssot import (
    AuditReport, Answer, SectionAnswers, Section, FormDefinition, EditHistoryEntry, Identity,
    ReportStatus, ScoreResult, NOT_ANSWERED, now_ms,
)
from .forms import effective_sections, validate, MandatoryValidationError
from .scoring import compute_score, find_unresolved_answers
from .form_store import FormStore
from .report_store import ReportStore

logger = logging.getLogger(__name__)

EDITED_ACTION = "edited"


class AuditServiceError(Exception):
    """Raised when a report operation does not fit the report's state."""
    pass


def answer_values(answers: Mapping[str, Answer]) -> dict:
    """questionId -> trimmed answer value, blanks dropped."""
    return {qid: a.answer.strip() for qid, a in answers.items() if not a.is_empty}


def build_snapshot(sections: List[Section], answers: Mapping[str, Answer]) -> List[SectionAnswers]:
    """
    Per-section copy of every question with its answer, as stored on the report.
    Blank answers are stored as "Not Answered".
    """
    snapshot = []
    for section in sections:
        rows = []
        for question in section.questions:
            given = answers.get(question.id)
            value = given.answer.strip() if given is not None and not given.is_empty else NOT_ANSWERED
            rows.append(Answer(
                question_id=question.id,
                answer=value,
                remarks=given.remarks if given is not None else None,
                rating=given.rating if given is not None else None,
                question_text=question.text,
                question_type=question.type.value,
                is_fatal=question.is_fatal,
                weightage=question.weightage,
            ))
        snapshot.append(SectionAnswers(section_name=section.name, answers=rows))
    return snapshot


def score_submission(
    form: FormDefinition,
    answers: Mapping[str, Answer],
    spawned: Iterable[Section] = (),
    require_mandatory: bool = True,
) -> Tuple[List[SectionAnswers], ScoreResult]:
    """
    Run the submission pipeline without touching storage.

    Raises:
        MandatoryValidationError: A visible mandatory question is unanswered
    """
    values = answer_values(answers)
    sections = effective_sections(form, values.keys(), spawned)
    find_unresolved_answers(sections, values.keys())

    if require_mandatory:
        result = validate(sections, values)
        if not result.is_valid:
            raise MandatoryValidationError(result.missing)

    score = compute_score(sections, values)
    return build_snapshot(sections, answers), score


class AuditService:
    """Persists audit reports produced by the submission pipeline."""

    def __init__(self, db: Session):
        self.db = db
        self.forms = FormStore(db)
        self.reports = ReportStore(db)

    # =========================================================================
    # SUBMISSION
    # =========================================================================

    def submit(
        self,
        form_name: str,
        agent: str,
        agent_id: str,
        auditor: Identity,
        answers: Mapping[str, Answer],
        spawned: Iterable[Section] = (),
        partner_id: Optional[str] = None,
        report_id: Optional[str] = None,
    ) -> AuditReport:
        """
        Validate, score and store a completed report.

        Passing the id of an existing draft completes that draft in place.
        Nothing is written when validation fails.
        """
        return self._store(form_name, agent, agent_id, auditor, answers, spawned, partner_id,
                           report_id, ReportStatus.COMPLETED)

    def save_draft(
        self,
        form_name: str,
        agent: str,
        agent_id: str,
        auditor: Identity,
        answers: Mapping[str, Answer],
        spawned: Iterable[Section] = (),
        partner_id: Optional[str] = None,
        report_id: Optional[str] = None,
    ) -> AuditReport:
        """Score and store a draft. Mandatory questions are not enforced."""
        return self._store(form_name, agent, agent_id, auditor, answers, spawned, partner_id,
                           report_id, ReportStatus.DRAFT)

    def _store(self, form_name, agent, agent_id, auditor, answers, spawned, partner_id, report_id, status):
        form = self.forms.get_form(form_name)
        spawned = list(spawned)
        section_answers, result = score_submission(
            form, answers, spawned, require_mandatory=(status == ReportStatus.COMPLETED)
        )

        previous = None
        if report_id:
            previous = self.reports.load_report(report_id)
            if previous.status != ReportStatus.DRAFT:
                raise AuditServiceError(f"Report {report_id} is already submitted; edit it instead")

        report = AuditReport(
            id=report_id or str(uuid4()),
            form_name=form.name,
            agent=agent,
            agent_id=agent_id,
            auditor=auditor,
            section_answers=section_answers,
            score=result.score,
            max_score=result.max_score,
            has_fatal=result.has_fatal,
            status=status,
            partner_id=partner_id,
        )

        try:
            self.reports.save_report(report, form_snapshot=form, spawned=spawned)
            if previous is not None and status != previous.status:
                self.reports.update_status(report.id, previous.status, status)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(
            f"Saved {status.value} report {report.id} for agent {agent_id} on '{form.name}': "
            f"score {report.score}/{report.max_score}{' (fatal)' if report.has_fatal else ''}"
        )
        return report

    # =========================================================================
    # EDIT / DELETE
    # =========================================================================

    def edit_report(self, report_id: str, answers: Mapping[str, Answer], editor: Identity) -> AuditReport:
        """
        Replace the answers of a stored report and re-score it against its form snapshot.
        Status is left unchanged; drafts stay exempt from mandatory validation.
        """
        row = self.reports.load_row(report_id)
        report = self.reports.load_report(report_id)
        form = FormDefinition.from_dict(row.form_snapshot)
        spawned = [Section.from_dict(s) for s in (row.spawned_sections or [])]

        section_answers, result = score_submission(
            form, answers, spawned, require_mandatory=(report.status != ReportStatus.DRAFT)
        )

        at = now_ms()
        report.section_answers = section_answers
        report.score = result.score
        report.max_score = result.max_score
        report.has_fatal = result.has_fatal
        report.edited = True
        report.edited_by = editor.username
        report.edited_at = at
        report.edit_history = list(report.edit_history) + [
            EditHistoryEntry(editor=editor.username, action=EDITED_ACTION, timestamp=at)
        ]

        try:
            self.reports.save_report(report)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"Report {report_id} edited by {editor.username}: score {report.score}")
        return report

    def delete_report(self, report_id: str, actor: Identity) -> None:
        """Soft-delete: hide the report and keep a copy in deleted_audits."""
        try:
            self.reports.soft_delete(report_id, actor)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

    def get_report(self, report_id: str) -> AuditReport:
        return self.reports.load_report(report_id)
