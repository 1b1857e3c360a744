import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import List, Optional

from dotenv import load_dotenv

load_dotenv()

DEFAULT_CRAWLER_UA_PATTERNS = [
    "bot",
    "crawler",
    "spider",
    "facebookexternalhit",
    "twitterbot",
    "slackbot",
    "discordbot",
    "linebot",
    "embedly",
]

# "line" shows up in both the human WebView and the crawler UA; the lookahead
# keeps the bot variant out.
DEFAULT_IN_APP_UA_PATTERNS = [
    "line(?!bot)",
    "fbav",
    "fban",
    "instagram",
    r"; wv\)",
]

# Default UA for direct page fetches
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/131.0.0.0 Safari/537.36"
)


def _split_list(value: Optional[str], default: List[str]) -> List[str]:
    if not value:
        return list(default)
    items = [item.strip() for item in value.split(",")]
    return [item for item in items if item]


def _float(value: Optional[str], default: float) -> float:
    try:
        return float(value) if value else default
    except ValueError:
        return default


def _int(value: Optional[str], default: int) -> int:
    try:
        return int(value) if value else default
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    line_channel_access_token: str = ""
    line_channel_secret: str = ""
    liff_id: Optional[str] = None
    database_url: Optional[str] = None
    inspect_endpoint_url: Optional[str] = None
    fetch_timeout_seconds: float = 6.0
    fallback_entry_id: str = "entry.1795297917"
    min_entry_digits: int = 8
    default_notify: bool = False
    crawler_ua_patterns: List[str] = field(default_factory=lambda: list(DEFAULT_CRAWLER_UA_PATTERNS))
    in_app_ua_patterns: List[str] = field(default_factory=lambda: list(DEFAULT_IN_APP_UA_PATTERNS))
    preview_default_title: str = "公式LINE連携_Googleフォーム"
    preview_default_description: str = "リンクを開くにはこちらをタップ"
    preview_default_image: str = "https://example.com/og-image.png"
    log_level: str = "INFO"

    @property
    def line_credentials_configured(self) -> bool:
        return bool(self.line_channel_access_token and self.line_channel_secret)


def load_settings() -> Settings:
    return Settings(
        line_channel_access_token=os.getenv("LINE_CHANNEL_ACCESS_TOKEN", ""),
        line_channel_secret=os.getenv("LINE_CHANNEL_SECRET", ""),
        liff_id=os.getenv("LIFF_ID") or None,
        database_url=os.getenv("DATABASE_URL") or None,
        inspect_endpoint_url=os.getenv("INSPECT_ENDPOINT_URL") or None,
        fetch_timeout_seconds=_float(os.getenv("FETCH_TIMEOUT_SECONDS"), 6.0),
        fallback_entry_id=os.getenv("FALLBACK_ENTRY_ID") or "entry.1795297917",
        min_entry_digits=_int(os.getenv("MIN_ENTRY_DIGITS"), 8),
        default_notify=os.getenv("DEFAULT_NOTIFY", "0") == "1",
        crawler_ua_patterns=_split_list(os.getenv("CRAWLER_UA_PATTERNS"), DEFAULT_CRAWLER_UA_PATTERNS),
        in_app_ua_patterns=_split_list(os.getenv("IN_APP_UA_PATTERNS"), DEFAULT_IN_APP_UA_PATTERNS),
        preview_default_title=os.getenv("PREVIEW_DEFAULT_TITLE") or "公式LINE連携_Googleフォーム",
        preview_default_description=os.getenv("PREVIEW_DEFAULT_DESCRIPTION") or "リンクを開くにはこちらをタップ",
        preview_default_image=os.getenv("PREVIEW_DEFAULT_IMAGE") or "https://example.com/og-image.png",
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )


@lru_cache
def get_settings() -> Settings:
    return load_settings()
