from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from socialdl.api.deps import get_invoker, get_store
from socialdl.config.settings import config
from socialdl.core.errors import ExtractorUnavailable
from socialdl.core.state import state
from socialdl.i18n import i18n
from socialdl.services.extractor import ExtractorInvoker
from socialdl.services.storage import StagedFileStore

router = APIRouter()


@router.get("/health")
async def health_check():
    """Lightweight health check"""
    return {
        "success": True,
        "status": i18n.get("health.status"),
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": config.api.version
    }


@router.get("/health/full")
async def health_check_full(
    invoker: ExtractorInvoker = Depends(get_invoker),
    store: StagedFileStore = Depends(get_store)
):
    """Detailed health check, probes the extractor"""
    try:
        await invoker.resolve_executable()
        extractor_status = i18n.get("health.extractor_available")
    except ExtractorUnavailable:
        extractor_status = i18n.get("health.extractor_unavailable")

    return {
        "success": True,
        "status": i18n.get("health.status"),
        "version": config.api.version,
        "extractor": extractor_status,
        "ytdlp_version": invoker.version,
        "ytdlp_command": invoker.command,
        "staged_files": await store.count(),
        "pending_deletions": len(store.pending_deletions),
        "sweeper_running": state.sweeper is not None and state.sweeper.running
    }
