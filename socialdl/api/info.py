from fastapi import APIRouter, Request, Depends, HTTPException
from socialdl.api.deps import get_invoker
from socialdl.models.request import InfoRequest
from socialdl.models.response import InfoResponse, SupportedSitesResponse
from socialdl.services.extractor import ExtractorInvoker
from socialdl.core.security import SecurityValidator, UrlValidationResult
from socialdl.core.logging import log_info, safe_url_for_log
from socialdl.utils.display import format_duration
from socialdl.utils.platform import detect_platform
from socialdl.i18n import i18n

SUPPORTED_SITES_LIMIT = 50

router = APIRouter()

@router.post("/info", response_model=InfoResponse)
async def get_media_info(
    request: Request,
    info_request: InfoRequest,
    invoker: ExtractorInvoker = Depends(get_invoker)
):
    """Get media information for a URL"""
    
    _ = i18n.translator(request.headers.get("accept-language"))
    url = str(info_request.url)
    
    # SSRF check (separated from validation layer)
    validation_result = await SecurityValidator.validate_url(url)
    
    if validation_result == UrlValidationResult.BLOCKED:
        raise HTTPException(status_code=403, detail=_("error.private_ip"))
    
    if validation_result == UrlValidationResult.INVALID:
        raise HTTPException(status_code=400, detail=_("error.invalid_url", reason="Invalid format"))
    
    log_info(request, _("log.fetching_info", url=safe_url_for_log(url)))
    
    # MediaError subclasses are rendered by the application exception handler
    metadata = await invoker.fetch_metadata(url)
    log_info(request, _("log.info_retrieved", title=metadata.title))

    return InfoResponse(
        platform=detect_platform(url),
        title=metadata.title,
        thumbnail=metadata.thumbnail_url,
        duration=format_duration(metadata.duration_seconds),
        uploader=metadata.uploader,
        view_count=metadata.view_count,
    )

@router.get("/supported-sites", response_model=SupportedSitesResponse)
async def get_supported_sites(invoker: ExtractorInvoker = Depends(get_invoker)):
    """List extractors known to the installed yt-dlp"""
    extractors = await invoker.list_extractors()
    return SupportedSitesResponse(
        count=len(extractors),
        extractors=extractors[:SUPPORTED_SITES_LIMIT]
    )
