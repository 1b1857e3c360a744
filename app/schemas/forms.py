from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, Field


class FormReference(BaseModel):
    raw_url: str
    normalized_view_url: str
    form_token: Optional[str] = None


class EntryMap(BaseModel):
    identity_field: str
    message_field: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    used_fallback: bool = False


class DiscoveryFailure(BaseModel):
    reason: Literal["no-token", "no-html", "no-entries"]
    detail: Optional[str] = None


class PrefillLink(BaseModel):
    url: str


class AgentClassification(str, Enum):
    CRAWLER = "crawler"
    IN_APP_HUMAN = "in_app_human"
    PLAIN_BROWSER = "plain_browser"


class InspectResponse(BaseModel):
    success: bool
    title: Optional[str] = None
    description: Optional[str] = None
    entries: List[str] = Field(default_factory=list)


class PrefillRequest(BaseModel):
    form_url: str
    user_id: str


class PrefillResponse(BaseModel):
    url: str
    identity_field: str
    message_field: Optional[str] = None
    used_fallback: bool
    title: Optional[str] = None
    description: Optional[str] = None


class LinkageResponse(BaseModel):
    url: str
    user_id: str
    display_name: str
    identity_field: str
    used_fallback: bool
    navigate: bool
    notified: bool
    title: Optional[str] = None
    description: Optional[str] = None
