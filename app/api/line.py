import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse

from app.api.deps import get_messaging_client
from app.schemas.line import (
    FormSubmissionRequest,
    FormSubmissionResponse,
    LineUserResponse,
    LineUserUpsertRequest,
    SendMessageRequest,
    SendMessageResponse,
)
from app.services.line_messaging import (
    InvalidLineUserId,
    LineCredentialsError,
    LineMessagingClient,
    LineMessagingError,
)
from app.services.users import LineUserService, get_line_user_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["line"])


@router.post("/line-users", response_model=LineUserResponse)
def save_line_user(payload: LineUserUpsertRequest, users: LineUserService = Depends(get_line_user_service)):
    user, created = users.save(payload.line_user_id, payload.display_name, payload.picture_url)
    body = LineUserResponse(**user.__dict__).model_dump(mode="json", by_alias=True)
    return JSONResponse(body, status_code=status.HTTP_201_CREATED if created else status.HTTP_200_OK)


@router.get("/line-users/{line_user_id}", response_model=LineUserResponse)
def get_line_user(line_user_id: str, users: LineUserService = Depends(get_line_user_service)):
    return LineUserResponse(**users.get(line_user_id).__dict__)


@router.post("/form-submissions", response_model=FormSubmissionResponse, status_code=status.HTTP_201_CREATED)
def create_submission(payload: FormSubmissionRequest, users: LineUserService = Depends(get_line_user_service)):
    entry = users.record_submission(payload.line_user_id, payload.form_url, payload.additional_message)
    return FormSubmissionResponse(**entry.__dict__)


@router.get("/form-submissions/{line_user_id}", response_model=List[FormSubmissionResponse])
def list_submissions(line_user_id: str, users: LineUserService = Depends(get_line_user_service)):
    return [FormSubmissionResponse(**entry.__dict__) for entry in users.list_submissions(line_user_id)]


@router.post("/line/send-message", response_model=SendMessageResponse)
async def send_message(payload: SendMessageRequest, client: LineMessagingClient = Depends(get_messaging_client)):
    if not payload.user_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="userId is required")
    if payload.type == "text" and not payload.message:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="userId and message are required")
    if payload.type == "card" and not payload.form_url:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="formUrl is required for card messages")

    try:
        if payload.type == "card":
            await client.send_card(payload.user_id, payload.form_url, payload.title, payload.description)
        else:
            await client.send_text(payload.user_id, payload.message)
    except LineCredentialsError as exc:
        return JSONResponse(
            {"success": False, "message": "LINE API credentials not configured", "detail": str(exc)},
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )
    except InvalidLineUserId:
        return JSONResponse(
            {"success": False, "message": "Invalid LINE user ID format"},
            status_code=status.HTTP_400_BAD_REQUEST,
        )
    except LineMessagingError:
        logger.exception("Failed to send LINE message to %s", payload.user_id)
        return JSONResponse(
            {"success": False, "message": "Failed to send message"},
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    return SendMessageResponse(success=True, message="Message sent successfully")
