from functools import lru_cache
from typing import List, Optional

from fastapi import HTTPException, status

from app.config import get_settings
from app.models.store import FormSubmission, LineUser, LineUserRepository, store


class LineUserService:
    def __init__(self, repository: LineUserRepository) -> None:
        self.repository = repository

    def save(self, line_user_id: str, display_name: str, picture_url: Optional[str]) -> tuple[LineUser, bool]:
        return self.repository.upsert(line_user_id, display_name, picture_url)

    def get(self, line_user_id: str) -> LineUser:
        user = self.repository.get(line_user_id)
        if not user:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="LINE user not found")
        return user

    def record_submission(
        self, line_user_id: str, form_url: str, additional_message: Optional[str], success: bool = True
    ) -> FormSubmission:
        self.get(line_user_id)
        return self.repository.append_submission(line_user_id, form_url, additional_message, success)

    def list_submissions(self, line_user_id: str) -> List[FormSubmission]:
        return self.repository.list_by_user(line_user_id)


@lru_cache
def get_repository() -> LineUserRepository:
    if get_settings().database_url:
        from app.db import SessionLocal  # local import, engine only exists with DATABASE_URL
        from app.models.sql_store import SqlStore

        return SqlStore(SessionLocal)
    return store


def get_line_user_service() -> LineUserService:
    return LineUserService(get_repository())
