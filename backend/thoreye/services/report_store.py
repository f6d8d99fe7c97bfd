"""
Report Store

Maps AuditReport values to and from the audit_reports / rebuttals /
ata_reviews tables. The engines compute new report values; this store is the
only place they are persisted.

Status writes go through update_status(), a compare-and-set on the current
status, so two actors acting on the same report cannot both win.
"""
import logging
from typing import List, Optional
from uuid import uuid4

from sqlalchemy.orm import Session

from ..models.db_models import AuditReportDB, RebuttalDB, ATAReviewDB, DeletedAuditDB
from ..models.ssot import (
    AuditReport, SectionAnswers, EditHistoryEntry, ATAReview, RebuttalRecord, Identity,
    FormDefinition, Section, ReportStatus, now_ms,
)

logger = logging.getLogger(__name__)


class ReportNotFoundError(Exception):
    """Raised when a report id does not resolve to a live (non-deleted) report."""
    pass


def rebuttal_from_row(row: RebuttalDB) -> RebuttalRecord:
    handled_by = None
    if row.handled_by:
        handled_by = Identity(id=row.handled_by, username=row.handled_by_name or "", role="")
    return RebuttalRecord(
        id=row.id,
        audit_report_id=row.audit_report_id,
        partner=Identity(id=row.partner_id, username=row.partner_name, role="partner"),
        rebuttal_text=row.rebuttal_text,
        rebuttal_type=row.rebuttal_type,
        status=row.status,
        created_at=row.created_at,
        handled_by=handled_by,
        handler_response=row.handler_response,
        handled_at=row.handled_at,
    )


def report_from_row(row: AuditReportDB) -> AuditReport:
    return AuditReport(
        id=row.id,
        form_name=row.form_name,
        agent=row.agent,
        agent_id=row.agent_id,
        auditor=Identity(id=row.auditor_id or "", username=row.auditor_name, role="auditor"),
        section_answers=[SectionAnswers.from_dict(s) for s in (row.section_answers or [])],
        score=row.score,
        max_score=row.max_score,
        has_fatal=row.has_fatal,
        status=row.status,
        timestamp=row.timestamp,
        partner_id=row.partner_id,
        edited=bool(row.edited),
        edited_by=row.edited_by,
        edited_at=row.edited_at,
        edit_history=[EditHistoryEntry.from_dict(e) for e in (row.edit_history or [])],
        ata_review=ATAReview.from_dict(row.ata_review.review_data) if row.ata_review else None,
        rebuttals=[rebuttal_from_row(r) for r in row.rebuttals],
    )


class ReportStore:
    """SQLAlchemy-backed report store. Callers own the transaction (commit/rollback)."""

    def __init__(self, db_session: Session):
        self.db = db_session

    # =========================================================================
    # READS
    # =========================================================================

    def load_row(self, report_id: str) -> AuditReportDB:
        row = self.db.query(AuditReportDB).filter(
            AuditReportDB.id == report_id,
            AuditReportDB.deleted == False,  # noqa: E712
        ).first()
        if row is None:
            raise ReportNotFoundError(f"Report '{report_id}' not found")
        return row

    def load_report(self, report_id: str) -> AuditReport:
        return report_from_row(self.load_row(report_id))

    def load_form_snapshot(self, report_id: str) -> FormDefinition:
        return FormDefinition.from_dict(self.load_row(report_id).form_snapshot)

    def list_rebuttals(self, report_id: Optional[str] = None, partner_id: Optional[str] = None) -> List[RebuttalRecord]:
        query = self.db.query(RebuttalDB)
        if report_id is not None:
            query = query.filter(RebuttalDB.audit_report_id == report_id)
        if partner_id is not None:
            query = query.filter(RebuttalDB.partner_id == partner_id)
        return [rebuttal_from_row(r) for r in query.order_by(RebuttalDB.created_at.desc()).all()]

    # =========================================================================
    # WRITES
    # =========================================================================

    def save_report(
        self,
        report: AuditReport,
        form_snapshot: Optional[FormDefinition] = None,
        spawned: Optional[List[Section]] = None,
    ) -> AuditReportDB:
        """
        Insert or update the report row (status excluded on update; see update_status).
        """
        row = self.db.query(AuditReportDB).filter(AuditReportDB.id == report.id).first()
        if row is None:
            if form_snapshot is None:
                raise ValueError("A form snapshot is required when saving a new report")
            row = AuditReportDB(
                id=report.id,
                form_name=report.form_name,
                form_snapshot=form_snapshot.to_dict(),
                status=report.status,
                timestamp=report.timestamp,
            )
            self.db.add(row)

        row.agent = report.agent
        row.agent_id = report.agent_id
        row.auditor_id = report.auditor.id or None
        row.auditor_name = report.auditor.username
        row.partner_id = report.partner_id
        row.section_answers = [s.to_dict() for s in report.section_answers]
        row.score = report.score
        row.max_score = report.max_score
        row.has_fatal = report.has_fatal
        row.edited = report.edited
        row.edited_by = report.edited_by
        row.edited_at = report.edited_at
        row.edit_history = [e.to_dict() for e in report.edit_history]
        if spawned is not None:
            row.spawned_sections = [s.to_dict() for s in spawned]
        self.db.flush()
        return row

    def update_status(self, report_id: str, expected: ReportStatus, new_status: ReportStatus) -> bool:
        """Compare-and-set the workflow status. Returns False if the stored status moved on."""
        updated = self.db.query(AuditReportDB).filter(
            AuditReportDB.id == report_id,
            AuditReportDB.status == expected,
        ).update({"status": new_status}, synchronize_session=False)
        return updated == 1

    def save_rebuttals(self, records: List[RebuttalRecord]) -> List[RebuttalRecord]:
        """Insert new records (id is None) and update existing ones. Returns records with ids."""
        saved = []
        for record in records:
            row = None
            if record.id:
                row = self.db.query(RebuttalDB).filter(RebuttalDB.id == record.id).first()
            if row is None:
                row = RebuttalDB(id=record.id or str(uuid4()), audit_report_id=record.audit_report_id)
                self.db.add(row)
            row.partner_id = record.partner.id
            row.partner_name = record.partner.username
            row.rebuttal_text = record.rebuttal_text
            row.rebuttal_type = record.rebuttal_type
            row.status = record.status
            row.created_at = record.created_at
            row.handled_by = record.handled_by.id if record.handled_by else None
            row.handled_by_name = record.handled_by.username if record.handled_by else None
            row.handler_response = record.handler_response
            row.handled_at = record.handled_at
            saved.append(rebuttal_from_row(row))
        self.db.flush()
        return saved

    def replace_ata_review(self, review: ATAReview) -> ATAReviewDB:
        self.db.query(ATAReviewDB).filter(ATAReviewDB.audit_report_id == review.audit_report_id).delete(
            synchronize_session=False
        )
        row = ATAReviewDB(
            id=str(uuid4()),
            audit_report_id=review.audit_report_id,
            master_auditor_id=review.master_auditor.id,
            master_auditor_name=review.master_auditor.username,
            ata_score=review.ata_score,
            variance=review.variance,
            overall_accuracy=review.accuracy_metrics.overall_accuracy,
            review_data=review.to_dict(),
            timestamp=review.timestamp,
        )
        self.db.add(row)
        self.db.flush()
        return row

    def soft_delete(self, report_id: str, actor: Identity) -> DeletedAuditDB:
        row = self.load_row(report_id)
        at = now_ms()
        row.deleted = True
        row.deleted_by = actor.id
        row.deleted_at = at

        copy = DeletedAuditDB(
            id=str(uuid4()),
            original_id=row.id,
            form_name=row.form_name,
            agent=row.agent,
            agent_id=row.agent_id,
            auditor_name=row.auditor_name,
            section_answers=row.section_answers,
            score=row.score,
            max_score=row.max_score,
            has_fatal=row.has_fatal,
            timestamp=row.timestamp,
            deleted_by=actor.id,
            deleted_by_name=actor.username,
            deleted_at=at,
            edit_history=row.edit_history,
        )
        self.db.add(copy)
        self.db.flush()
        logger.info(f"Report {report_id} soft-deleted by {actor.username}")
        return copy
