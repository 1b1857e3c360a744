from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class LineProfile(CamelModel):
    user_id: str = Field(alias="userId")
    display_name: str = Field(alias="displayName")
    picture_url: Optional[str] = Field(default=None, alias="pictureUrl")


class LineUserUpsertRequest(CamelModel):
    line_user_id: str = Field(alias="lineUserId", min_length=1)
    display_name: str = Field(alias="displayName")
    picture_url: Optional[str] = Field(default=None, alias="pictureUrl")


class LineUserResponse(CamelModel):
    id: str
    line_user_id: str = Field(alias="lineUserId")
    display_name: str = Field(alias="displayName")
    picture_url: Optional[str] = Field(default=None, alias="pictureUrl")
    created_at: datetime = Field(alias="createdAt")


class FormSubmissionRequest(CamelModel):
    line_user_id: str = Field(alias="lineUserId", min_length=1)
    form_url: str = Field(alias="formUrl", min_length=1)
    additional_message: Optional[str] = Field(default=None, alias="additionalMessage")


class FormSubmissionResponse(CamelModel):
    id: str
    line_user_id: str = Field(alias="lineUserId")
    form_url: str = Field(alias="formUrl")
    additional_message: Optional[str] = Field(default=None, alias="additionalMessage")
    submitted_at: datetime = Field(alias="submittedAt")
    success: bool


class SendMessageRequest(CamelModel):
    user_id: Optional[str] = Field(default=None, alias="userId")
    type: Literal["text", "card"] = "text"
    message: Optional[str] = None
    form_url: Optional[str] = Field(default=None, alias="formUrl")
    title: Optional[str] = None
    description: Optional[str] = None


class SendMessageResponse(BaseModel):
    success: bool
    message: str


class SubmitFormRequest(CamelModel):
    form_url: str = Field(alias="formUrl")
    line_user_id: str = Field(alias="lineUserId")
    additional_message: Optional[str] = Field(default=None, alias="additionalMessage")
