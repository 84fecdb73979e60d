from fastapi import HTTPException, Request

from socialdl.config.settings import config
from socialdl.i18n import i18n


class ConcurrencyLimiter:
    """
    Caps simultaneous downloads in this process.
    Requests over the limit are turned away with 503 instead of queueing.
    """

    def __init__(self, max_concurrent: int):
        self.max_concurrent = max_concurrent
        self.active = 0

    async def __call__(self, request: Request):
        if self.active >= self.max_concurrent:
            _ = i18n.translator(request.headers.get("accept-language"))
            raise HTTPException(
                status_code=503,
                detail=_("error.server_busy", max=self.max_concurrent)
            )

        self.active += 1
        request.state.download_slot_acquired = True
        try:
            yield
        finally:
            self.active -= 1
            request.state.download_slot_acquired = False


concurrency_limiter = ConcurrencyLimiter(config.download.max_concurrent)
