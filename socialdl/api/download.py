from urllib.parse import quote
from fastapi import APIRouter, Request, Depends, HTTPException
from fastapi.responses import StreamingResponse
from socialdl.api.deps import get_invoker, get_store
from socialdl.config.settings import config
from socialdl.models.internal import ExtractionRequest
from socialdl.models.request import DownloadRequest
from socialdl.models.response import DownloadResponse
from socialdl.services.extractor import ExtractorInvoker
from socialdl.services.storage import StagedFileStore
from socialdl.core.security import SecurityValidator, UrlValidationResult
from socialdl.core.logging import log_info, safe_url_for_log
from socialdl.infra.concurrency import concurrency_limiter
from socialdl.utils.display import format_duration, format_file_size
from socialdl.utils.filename import content_disposition
from socialdl.i18n import i18n

router = APIRouter()

class DownloadService:
    """Fetch metadata, download into the staging directory, describe the result"""
    
    @staticmethod
    async def stage(extraction: ExtractionRequest, invoker: ExtractorInvoker) -> DownloadResponse:
        metadata = await invoker.fetch_metadata(extraction.url)
        staged = await invoker.download(extraction, metadata)

        return DownloadResponse(
            title=metadata.title,
            thumbnail=metadata.thumbnail_url,
            format=extraction.desired_format.value,
            quality=extraction.desired_quality,
            file_size=format_file_size(staged.size),
            download_url=f"{config.api.prefix}/file/{quote(staged.actual_name)}",
            duration=format_duration(metadata.duration_seconds),
            filename=staged.actual_name,
        )

@router.post(
    "/download",
    response_model=DownloadResponse,
    dependencies=[Depends(concurrency_limiter)]
)
async def download_media(
    request: Request,
    download_request: DownloadRequest,
    invoker: ExtractorInvoker = Depends(get_invoker)
):
    """Download media to the server and return a one-time file link"""
    
    _ = i18n.translator(request.headers.get("accept-language"))
    
    validation_result = await SecurityValidator.validate_url(str(download_request.url))
    if validation_result == UrlValidationResult.BLOCKED:
        raise HTTPException(status_code=403, detail=_("error.private_ip"))
    if validation_result == UrlValidationResult.INVALID:
        raise HTTPException(status_code=400, detail=_("error.invalid_url", reason="Invalid format"))
    
    extraction = download_request.to_extraction_request()
    log_info(request, _(
        "log.starting_download",
        url=safe_url_for_log(extraction.url),
        format=extraction.desired_format.value,
        quality=extraction.desired_quality
    ))
    
    response = await DownloadService.stage(extraction, invoker)
    log_info(request, _("log.download_staged", filename=response.filename))
    return response

@router.get("/file/{filename}")
async def get_file(
    request: Request,
    filename: str,
    store: StagedFileStore = Depends(get_store)
):
    """Stream a staged file; it is deleted shortly after the stream completes"""
    
    staged, stream = await store.retrieve(filename)
    log_info(request, f"Serving {staged.actual_name} ({staged.size} bytes)")

    headers = {
        'Content-Disposition': content_disposition(staged.actual_name),
        'X-Content-Type-Options': 'nosniff',
        'Cache-Control': 'no-cache',
        'Content-Length': str(staged.size)
    }
    
    return StreamingResponse(
        stream,
        media_type='application/octet-stream',
        headers=headers
    )
