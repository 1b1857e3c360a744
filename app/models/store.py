from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Dict, List, Optional, Protocol


@dataclass
class LineUser:
    id: str
    line_user_id: str
    display_name: str
    picture_url: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.utcnow)


@dataclass
class FormSubmission:
    id: str
    line_user_id: str
    form_url: str
    additional_message: Optional[str] = None
    submitted_at: datetime = field(default_factory=datetime.utcnow)
    success: bool = True


class LineUserRepository(Protocol):
    def get(self, line_user_id: str) -> Optional[LineUser]:
        ...

    def upsert(self, line_user_id: str, display_name: str, picture_url: Optional[str]) -> tuple[LineUser, bool]:
        """Returns the stored user and whether it was newly created."""
        ...

    def append_submission(
        self, line_user_id: str, form_url: str, additional_message: Optional[str], success: bool = True
    ) -> FormSubmission:
        ...

    def list_by_user(self, line_user_id: str) -> List[FormSubmission]:
        ...


class InMemoryStore:
    """Very small in-memory store to keep the API usable without a DB."""

    def __init__(self) -> None:
        self.line_users: Dict[str, LineUser] = {}
        self.submissions: List[FormSubmission] = []

    def get(self, line_user_id: str) -> Optional[LineUser]:
        return self.line_users.get(line_user_id)

    def upsert(self, line_user_id: str, display_name: str, picture_url: Optional[str]) -> tuple[LineUser, bool]:
        existing = self.line_users.get(line_user_id)
        if existing:
            updated = replace(existing, display_name=display_name, picture_url=picture_url or None)
            self.line_users[line_user_id] = updated
            return updated, False
        user = LineUser(
            id=str(uuid.uuid4()),
            line_user_id=line_user_id,
            display_name=display_name,
            picture_url=picture_url or None,
        )
        self.line_users[line_user_id] = user
        return user, True

    def append_submission(
        self, line_user_id: str, form_url: str, additional_message: Optional[str], success: bool = True
    ) -> FormSubmission:
        entry = FormSubmission(
            id=str(uuid.uuid4()),
            line_user_id=line_user_id,
            form_url=form_url,
            additional_message=additional_message or None,
            success=success,
        )
        self.submissions.append(entry)
        return entry

    def list_by_user(self, line_user_id: str) -> List[FormSubmission]:
        return [entry for entry in self.submissions if entry.line_user_id == line_user_id]


store = InMemoryStore()
