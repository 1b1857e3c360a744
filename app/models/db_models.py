from datetime import datetime
import uuid

from sqlalchemy import Boolean, Column, DateTime, String, Text

from app.db import Base


def _uuid() -> str:
    return str(uuid.uuid4())


class LineUserRow(Base):
    __tablename__ = "line_users"

    id = Column(String(36), primary_key=True, default=_uuid)
    line_user_id = Column(String(64), nullable=False, unique=True, index=True)
    display_name = Column(Text, nullable=False)
    picture_url = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class FormSubmissionRow(Base):
    __tablename__ = "form_submissions"

    id = Column(String(36), primary_key=True, default=_uuid)
    line_user_id = Column(String(64), nullable=False, index=True)
    form_url = Column(Text, nullable=False)
    additional_message = Column(Text, nullable=True)
    submitted_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    success = Column(Boolean, default=True, nullable=False)
