from __future__ import annotations

from typing import List, Optional

from sqlalchemy.orm import Session, sessionmaker

from app.models.db_models import FormSubmissionRow, LineUserRow
from app.models.store import FormSubmission, LineUser


def _to_user(row: LineUserRow) -> LineUser:
    return LineUser(
        id=row.id,
        line_user_id=row.line_user_id,
        display_name=row.display_name,
        picture_url=row.picture_url,
        created_at=row.created_at,
    )


def _to_submission(row: FormSubmissionRow) -> FormSubmission:
    return FormSubmission(
        id=row.id,
        line_user_id=row.line_user_id,
        form_url=row.form_url,
        additional_message=row.additional_message,
        submitted_at=row.submitted_at,
        success=row.success,
    )


class SqlStore:
    """Same contract as InMemoryStore, backed by SQLAlchemy."""

    def __init__(self, session_factory: sessionmaker) -> None:
        self.session_factory = session_factory

    def _session(self) -> Session:
        return self.session_factory()

    def get(self, line_user_id: str) -> Optional[LineUser]:
        with self._session() as db:
            row = db.query(LineUserRow).filter(LineUserRow.line_user_id == line_user_id).first()
            return _to_user(row) if row else None

    def upsert(self, line_user_id: str, display_name: str, picture_url: Optional[str]) -> tuple[LineUser, bool]:
        with self._session() as db:
            row = db.query(LineUserRow).filter(LineUserRow.line_user_id == line_user_id).first()
            created = row is None
            if created:
                row = LineUserRow(line_user_id=line_user_id)
                db.add(row)
            row.display_name = display_name
            row.picture_url = picture_url or None
            db.commit()
            db.refresh(row)
            return _to_user(row), created

    def append_submission(
        self, line_user_id: str, form_url: str, additional_message: Optional[str], success: bool = True
    ) -> FormSubmission:
        with self._session() as db:
            row = FormSubmissionRow(
                line_user_id=line_user_id,
                form_url=form_url,
                additional_message=additional_message or None,
                success=success,
            )
            db.add(row)
            db.commit()
            db.refresh(row)
            return _to_submission(row)

    def list_by_user(self, line_user_id: str) -> List[FormSubmission]:
        with self._session() as db:
            rows = (
                db.query(FormSubmissionRow)
                .filter(FormSubmissionRow.line_user_id == line_user_id)
                .order_by(FormSubmissionRow.submitted_at)
                .all()
            )
            return [_to_submission(row) for row in rows]
