import asyncio
import json
import logging
import shlex
import sys
from typing import List, Optional

from socialdl.config.settings import ExtractorConfig
from socialdl.core.errors import (
    DownloadFailed,
    ExtractionFailed,
    ExtractorUnavailable,
    InvalidURL,
    MetadataTimeout,
)
from socialdl.models.internal import ExtractedMetadata, ExtractionRequest, StagedFile
from socialdl.services.format import FormatDecision
from socialdl.services.storage import StagedFileStore
from socialdl.services.ytdlp import CompletedProcess, SubprocessExecutor, YTDLPCommandBuilder
from socialdl.utils.filename import build_base_name
from socialdl.core.logging import safe_url_for_log

logger = logging.getLogger(__name__)

STDERR_MAX_CHARS = 200
INVALID_URL_MARKERS = (
    "unsupported url",
    "is not a valid url",
    "invalid url",
)


def expand_candidate(candidate: str) -> List[str]:
    """Split an invocation form into argv, '{python}' becomes the running interpreter"""
    return [sys.executable if part == "{python}" else part for part in shlex.split(candidate)]


def stderr_summary(result: CompletedProcess) -> str:
    text = result.stderr.decode(errors="replace").strip()
    return text[-STDERR_MAX_CHARS:]


class ExtractorInvoker:
    """
    Runs yt-dlp for metadata and downloads.

    The executable is discovered by probing the configured candidates in
    order. Discovery runs on every call unless cache_executable is set, in
    which case a working candidate is reused until it fails to start.
    """

    def __init__(self, settings: ExtractorConfig, store: StagedFileStore):
        self.settings = settings
        self.store = store
        self.version: Optional[str] = None
        self.command: Optional[str] = None
        self._cached: Optional[List[str]] = None

    async def resolve_executable(self) -> List[str]:
        if self.settings.cache_executable and self._cached:
            return list(self._cached)

        for candidate in self.settings.candidates:
            executable = expand_candidate(candidate)
            if not executable:
                continue

            cmd = YTDLPCommandBuilder.build_version_command(executable)
            try:
                result = await SubprocessExecutor.run(cmd, timeout=self.settings.probe_timeout)
            except asyncio.TimeoutError:
                logger.debug(f"Probe timed out for {candidate}")
                continue
            except OSError as e:
                logger.debug(f"Probe could not start {candidate}: {str(e)}")
                continue

            if result.returncode != 0:
                logger.debug(f"Probe of {candidate} exited with {result.returncode}")
                continue

            output = result.stdout.decode(errors="replace").strip()
            self.version = output.splitlines()[0] if output else "unknown"
            self.command = candidate
            if self.settings.cache_executable:
                self._cached = executable
            return executable

        self.version = None
        self.command = None
        raise ExtractorUnavailable("no working yt-dlp executable found")

    async def _run(self, cmd: List[str], timeout: float) -> CompletedProcess:
        try:
            return await SubprocessExecutor.run(cmd, timeout=timeout)
        except asyncio.TimeoutError:
            # TimeoutError is an OSError on newer interpreters, callers map it themselves
            raise
        except OSError as e:
            # The resolved executable disappeared between probe and use
            self._cached = None
            raise ExtractorUnavailable(str(e))

    async def fetch_metadata(self, url: str) -> ExtractedMetadata:
        """Dump metadata for url without downloading anything"""
        executable = await self.resolve_executable()
        cmd = YTDLPCommandBuilder.build_info_command(executable, url)

        try:
            result = await self._run(cmd, timeout=self.settings.metadata_timeout)
        except asyncio.TimeoutError:
            raise MetadataTimeout(f"no metadata after {self.settings.metadata_timeout:.0f}s")

        if result.returncode != 0:
            error_msg = stderr_summary(result)
            if any(marker in error_msg.lower() for marker in INVALID_URL_MARKERS):
                raise InvalidURL(error_msg)
            raise ExtractionFailed(error_msg or f"yt-dlp exited with {result.returncode}")

        output = result.stdout.decode(errors="replace").strip()
        try:
            info = json.loads(output.splitlines()[0])
        except (IndexError, ValueError):
            raise ExtractionFailed("unparsable metadata output")

        if not isinstance(info, dict):
            raise ExtractionFailed("unexpected metadata shape")

        return ExtractedMetadata.from_info(info)

    async def download(self, request: ExtractionRequest, metadata: ExtractedMetadata) -> StagedFile:
        """
        Download request.url into the staging directory.

        The tool may remux or rename the output, so the file is looked up
        by its base-name prefix afterwards. Any failure removes what was
        written under that prefix.
        """
        executable = await self.resolve_executable()

        base_name = build_base_name(metadata.title)
        requested_name = f"{base_name}.{request.desired_format.extension}"
        cmd = YTDLPCommandBuilder.build_download_command(
            executable,
            request.url,
            self.store.output_template(base_name),
            FormatDecision.build_args(request),
        )

        logger.info(f"Downloading {safe_url_for_log(request.url)} as {requested_name}")

        try:
            result = await self._run(cmd, timeout=self.settings.download_timeout)
        except asyncio.TimeoutError:
            await self.store.discard(base_name)
            raise DownloadFailed(f"timed out after {self.settings.download_timeout:.0f}s")

        if result.returncode != 0:
            await self.store.discard(base_name)
            raise DownloadFailed(stderr_summary(result) or f"yt-dlp exited with {result.returncode}")

        staged = await self.store.locate(base_name, requested_name)
        if staged is None:
            await self.store.discard(base_name)
            raise DownloadFailed("no file created")
        if staged.size <= 0:
            await self.store.discard(base_name)
            raise DownloadFailed("empty file created")

        logger.info(f"Staged {staged.actual_name} ({staged.size} bytes)")
        return staged

    async def list_extractors(self) -> List[str]:
        executable = await self.resolve_executable()
        cmd = YTDLPCommandBuilder.build_extractors_command(executable)

        try:
            result = await self._run(cmd, timeout=self.settings.metadata_timeout)
        except asyncio.TimeoutError:
            raise MetadataTimeout("extractor listing timed out")

        if result.returncode != 0:
            raise ExtractionFailed(stderr_summary(result))

        return [line.strip() for line in result.stdout.decode(errors="replace").splitlines() if line.strip()]
