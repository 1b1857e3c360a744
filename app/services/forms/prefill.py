from __future__ import annotations

import logging
from urllib.parse import quote

from app.schemas.forms import EntryMap, FormReference, PrefillLink
from app.services.forms.discovery import DiscoveryResult
from app.services.forms.normalizer import strip_query

logger = logging.getLogger(__name__)

PREFILL_MARKER = "usp=pp_url"


def resolve_entry_map(result: DiscoveryResult, fallback_field: str) -> EntryMap:
    """Turn a discovery outcome into something a link can always be built from."""
    if isinstance(result, EntryMap):
        return result
    logger.warning("Entry discovery failed (%s); using fallback %s", result.reason, fallback_field)
    return EntryMap(identity_field=fallback_field, used_fallback=True)


def build_prefill_link(reference: FormReference, entry_map: EntryMap, identity_value: str) -> PrefillLink:
    base = strip_query(reference.normalized_view_url)
    url = f"{base}?{PREFILL_MARKER}&{entry_map.identity_field}={quote(identity_value, safe='')}"
    if entry_map.message_field:
        # left blank for the respondent
        url = f"{url}&{entry_map.message_field}="
    return PrefillLink(url=url)
