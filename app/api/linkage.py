from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from fastapi.responses import JSONResponse, RedirectResponse

from app.api.deps import get_orchestrator, get_session_registry
from app.config import get_settings
from app.schemas.forms import LinkageResponse
from app.services.linkage import LinkageOrchestrator, SessionRegistry

router = APIRouter(tags=["linkage"])

SESSION_COOKIE = "linkage_session"


def _bearer(authorization: Optional[str]) -> Optional[str]:
    if authorization and authorization.lower().startswith("bearer "):
        return authorization[7:].strip() or None
    return None


@router.get("/", response_model=LinkageResponse)
async def entry_point(
    request: Request,
    form: Optional[str] = None,
    redirect: Optional[str] = None,
    notify: Optional[str] = None,
    access_token: Optional[str] = None,
    authorization: Optional[str] = Header(default=None),
    registry: SessionRegistry = Depends(get_session_registry),
    orchestrator: LinkageOrchestrator = Depends(get_orchestrator),
):
    settings = get_settings()
    if not form:
        return JSONResponse({"service": "line-form-linkage", "liff_id": settings.liff_id})

    session = await registry.get_or_create(request.cookies.get(SESSION_COOKIE))
    token = _bearer(authorization) or access_token
    notify_on = settings.default_notify if notify is None else notify == "1"

    try:
        result = await orchestrator.run(
            session,
            form,
            access_token=token,
            notify=notify_on,
            redirect=redirect == "true",
        )
    except HTTPException as exc:
        if exc.status_code != status.HTTP_401_UNAUTHORIZED:
            raise
        resp = JSONResponse(
            {"login_required": True, "liff_id": settings.liff_id},
            status_code=status.HTTP_401_UNAUTHORIZED,
        )
        resp.set_cookie(SESSION_COOKIE, session.id, httponly=True, samesite="lax")
        return resp

    if result.navigate:
        resp = RedirectResponse(result.link.url, status_code=status.HTTP_302_FOUND)
    else:
        body = LinkageResponse(
            url=result.link.url,
            user_id=result.profile.user_id,
            display_name=result.profile.display_name,
            identity_field=result.entry_map.identity_field,
            used_fallback=result.entry_map.used_fallback,
            navigate=result.navigate,
            notified=result.notified,
            title=result.entry_map.title,
            description=result.entry_map.description,
        )
        resp = JSONResponse(body.model_dump())
    resp.set_cookie(SESSION_COOKIE, session.id, httponly=True, samesite="lax")
    return resp
