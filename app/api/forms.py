from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Response, status

from app.api.deps import get_discoverer, get_submitter
from app.config import get_settings
from app.schemas.forms import EntryMap, InspectResponse, PrefillRequest, PrefillResponse
from app.schemas.line import FormSubmissionResponse, SubmitFormRequest
from app.services.forms.discovery import FormDiscoverer, extract_entry_ids, extract_metadata
from app.services.forms.normalizer import normalize
from app.services.forms.prefill import build_prefill_link, resolve_entry_map
from app.services.forms.submission import FormSubmitter
from app.services.users import LineUserService, get_line_user_service

router = APIRouter(prefix="/api/forms", tags=["forms"])


@router.get("/inspect", response_model=InspectResponse)
async def inspect(
    response: Response,
    form: Optional[str] = None,
    discoverer: FormDiscoverer = Depends(get_discoverer),
):
    if not form:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing ?form=")

    html = await discoverer.fetch_html(normalize(form).normalized_view_url)
    if html is None:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="fetch failed")

    meta = extract_metadata(html)
    response.headers["Cache-Control"] = "s-maxage=300"
    return InspectResponse(
        success=True,
        title=meta.title,
        description=meta.description,
        entries=extract_entry_ids(html, get_settings().min_entry_digits),
    )


@router.post("/prefill", response_model=PrefillResponse)
async def prefill(payload: PrefillRequest, discoverer: FormDiscoverer = Depends(get_discoverer)):
    reference = normalize(payload.form_url)
    result = await discoverer.discover(reference.normalized_view_url)
    entry_map = resolve_entry_map(result, get_settings().fallback_entry_id)
    link = build_prefill_link(reference, entry_map, payload.user_id)
    return PrefillResponse(
        url=link.url,
        identity_field=entry_map.identity_field,
        message_field=entry_map.message_field,
        used_fallback=entry_map.used_fallback,
        title=entry_map.title,
        description=entry_map.description,
    )


@router.post("/submit", response_model=FormSubmissionResponse, status_code=status.HTTP_201_CREATED)
async def submit(
    payload: SubmitFormRequest,
    discoverer: FormDiscoverer = Depends(get_discoverer),
    submitter: FormSubmitter = Depends(get_submitter),
    users: LineUserService = Depends(get_line_user_service),
):
    users.get(payload.line_user_id)
    reference = normalize(payload.form_url)
    result = await discoverer.discover(reference.normalized_view_url)
    if not isinstance(result, EntryMap):
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Entry IDs must be detected before form submission",
        )
    await submitter.submit(payload.form_url, result, payload.line_user_id, payload.additional_message)
    entry = users.record_submission(payload.line_user_id, payload.form_url, payload.additional_message)
    return FormSubmissionResponse(**entry.__dict__)
