import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse, Response

from app.api.deps import get_classifier, get_metadata_resolver
from app.config import get_settings
from app.schemas.forms import AgentClassification
from app.services.preview import (
    PreviewContext,
    PreviewMetadataResolver,
    UserAgentClassifier,
    build_app_url,
    respond,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["preview"])


@router.get("/link-preview")
async def link_preview(
    request: Request,
    form: Optional[str] = None,
    title: Optional[str] = None,
    desc: Optional[str] = None,
    image: Optional[str] = None,
    notify: Optional[str] = None,
    classifier: UserAgentClassifier = Depends(get_classifier),
    resolver: PreviewMetadataResolver = Depends(get_metadata_resolver),
) -> Response:
    if not form:
        return PlainTextResponse('Missing "form" parameter', status_code=400)

    try:
        settings = get_settings()
        app_url = build_app_url(
            request.headers.get("x-forwarded-proto"),
            request.headers.get("host"),
            form,
            notify == "1",
        )
        classification = classifier.classify(request.headers.get("user-agent"))
        if classification is AgentClassification.CRAWLER:
            title, desc = await resolver.resolve(form, title, desc)
        ctx = PreviewContext(
            app_url=app_url,
            title=title or settings.preview_default_title,
            description=desc or settings.preview_default_description,
            image=image or settings.preview_default_image,
        )
        logger.info("link-preview %s for %s", classification.value, form)
        return respond(classification, ctx)
    except Exception:  # noqa: BLE001
        logger.exception("link-preview failed")
        return PlainTextResponse("link-preview error", status_code=500)
