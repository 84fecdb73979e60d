import asyncio
import os
import re
import sys

import pytest

from socialdl.config.settings import ExtractorConfig
from socialdl.core.errors import (
    DownloadFailed,
    ExtractionFailed,
    ExtractorUnavailable,
    InvalidURL,
    MetadataTimeout,
)
from socialdl.models.internal import ExtractedMetadata, ExtractionRequest, MediaFormat
from socialdl.services.extractor import ExtractorInvoker, expand_candidate


def audio_request(quality="best"):
    return ExtractionRequest(url="https://youtu.be/abc", desired_format=MediaFormat.AUDIO, desired_quality=quality)


def test_expand_candidate_substitutes_interpreter():
    assert expand_candidate("{python} -m yt_dlp") == [sys.executable, "-m", "yt_dlp"]
    assert expand_candidate("/usr/bin/yt-dlp") == ["/usr/bin/yt-dlp"]


@pytest.mark.asyncio
async def test_resolve_executable_takes_first_working_candidate(store):
    settings = ExtractorConfig(
        candidates=[
            "/nonexistent/bin/yt-dlp",
            "sh -c 'exit 3'",
            "sh -c 'exec sleep 5'",
            "sh -c 'echo 2099.01.01'",
            "sh -c 'echo never-reached'",
        ],
        probe_timeout=0.5,
    )
    invoker = ExtractorInvoker(settings, store)

    executable = await invoker.resolve_executable()

    assert executable == ["sh", "-c", "echo 2099.01.01"]
    assert invoker.version == "2099.01.01"
    assert invoker.command == "sh -c 'echo 2099.01.01'"


@pytest.mark.asyncio
async def test_resolve_executable_fails_when_nothing_works(store):
    settings = ExtractorConfig(candidates=["/nonexistent/bin/yt-dlp", "sh -c 'exit 1'"])
    invoker = ExtractorInvoker(settings, store)

    with pytest.raises(ExtractorUnavailable):
        await invoker.resolve_executable()


@pytest.mark.asyncio
async def test_failed_probe_is_not_remembered(store, tmp_path):
    marker = tmp_path / "installed"
    settings = ExtractorConfig(candidates=[f"sh -c 'test -e {marker}'"])
    invoker = ExtractorInvoker(settings, store)

    with pytest.raises(ExtractorUnavailable):
        await invoker.resolve_executable()

    marker.write_text("")
    assert await invoker.resolve_executable()


@pytest.mark.asyncio
async def test_unavailable_extractor_never_runs_the_operation(invoker, fake_ytdlp):
    fake_ytdlp.version_returncode = 1

    with pytest.raises(ExtractorUnavailable):
        await invoker.fetch_metadata("https://youtu.be/abc")
    with pytest.raises(ExtractorUnavailable):
        await invoker.download(audio_request(), ExtractedMetadata(title="My Song!"))

    assert fake_ytdlp.operation_calls() == []


@pytest.mark.asyncio
async def test_probe_runs_on_every_call_by_default(invoker, fake_ytdlp):
    await invoker.fetch_metadata("https://youtu.be/abc")
    await invoker.fetch_metadata("https://youtu.be/abc")
    probes = [c for c in fake_ytdlp.calls if '--version' in c]
    assert len(probes) == 2


@pytest.mark.asyncio
async def test_cached_executable_is_dropped_when_it_stops_starting(store, fake_ytdlp):
    invoker = ExtractorInvoker(ExtractorConfig(candidates=["yt-dlp"], cache_executable=True), store)

    await invoker.fetch_metadata("https://youtu.be/abc")
    await invoker.fetch_metadata("https://youtu.be/abc")
    assert len([c for c in fake_ytdlp.calls if '--version' in c]) == 1

    fake_ytdlp.raise_on = lambda cmd: FileNotFoundError("yt-dlp") if '--dump-json' in cmd else None
    with pytest.raises(ExtractorUnavailable):
        await invoker.fetch_metadata("https://youtu.be/abc")

    fake_ytdlp.raise_on = None
    await invoker.fetch_metadata("https://youtu.be/abc")
    assert len([c for c in fake_ytdlp.calls if '--version' in c]) == 2


@pytest.mark.asyncio
async def test_fetch_metadata_parses_dump(invoker, fake_ytdlp):
    fake_ytdlp.info = {"title": "Clip", "duration": 61, "uploader": "me", "view_count": 9}

    metadata = await invoker.fetch_metadata("https://youtu.be/abc")

    assert metadata.title == "Clip"
    assert metadata.duration_seconds == 61
    cmd = fake_ytdlp.operation_calls()[0]
    assert '--dump-json' in cmd
    assert '--no-playlist' in cmd
    assert cmd[-2:] == ['--', 'https://youtu.be/abc']


@pytest.mark.asyncio
async def test_fetch_metadata_unsupported_url(invoker, fake_ytdlp):
    fake_ytdlp.info_returncode = 1
    fake_ytdlp.info_stderr = b"ERROR: Unsupported URL: https://example.org/page"

    with pytest.raises(InvalidURL) as excinfo:
        await invoker.fetch_metadata("https://example.org/page")
    assert "Unsupported URL" in excinfo.value.detail


@pytest.mark.asyncio
async def test_fetch_metadata_other_failure(invoker, fake_ytdlp):
    fake_ytdlp.info_returncode = 1
    fake_ytdlp.info_stderr = b"ERROR: Video unavailable"

    with pytest.raises(ExtractionFailed):
        await invoker.fetch_metadata("https://youtu.be/abc")


@pytest.mark.asyncio
async def test_fetch_metadata_unparsable_output(invoker, fake_ytdlp):
    fake_ytdlp.info = None

    with pytest.raises(ExtractionFailed):
        await invoker.fetch_metadata("https://youtu.be/abc")


@pytest.mark.asyncio
async def test_fetch_metadata_non_object_output(invoker, fake_ytdlp):
    fake_ytdlp.info = ["a", "list"]

    with pytest.raises(ExtractionFailed):
        await invoker.fetch_metadata("https://youtu.be/abc")


@pytest.mark.asyncio
async def test_fetch_metadata_timeout(invoker, fake_ytdlp):
    fake_ytdlp.raise_on = lambda cmd: asyncio.TimeoutError() if '--dump-json' in cmd else None

    with pytest.raises(MetadataTimeout):
        await invoker.fetch_metadata("https://youtu.be/abc")


@pytest.mark.asyncio
async def test_download_audio_names_file_after_title(invoker, fake_ytdlp, store):
    staged = await invoker.download(audio_request(), ExtractedMetadata(title="My Song!"))

    assert re.fullmatch(r"My_Song_\d+\.mp3", staged.actual_name)
    assert staged.requested_name == staged.actual_name
    assert staged.size == 2048
    assert os.path.getsize(staged.path) > 0

    cmd = fake_ytdlp.operation_calls()[0]
    assert cmd[cmd.index('-o') + 1].startswith(store.directory)
    assert '--extract-audio' in cmd
    assert '--no-mtime' in cmd


@pytest.mark.asyncio
async def test_download_uses_the_name_the_tool_actually_wrote(invoker, fake_ytdlp):
    fake_ytdlp.output_ext = "mkv"
    fake_ytdlp.extra_outputs = [".f137.mp4.part"]
    request = ExtractionRequest(url="https://youtu.be/abc", desired_quality="720p")

    staged = await invoker.download(request, ExtractedMetadata(title="Clip"))

    assert staged.requested_name.endswith(".mp4")
    assert staged.actual_name.endswith(".mkv")
    assert os.path.exists(staged.path)


@pytest.mark.asyncio
async def test_download_without_output_fails(invoker, fake_ytdlp, store):
    fake_ytdlp.output_ext = None
    fake_ytdlp.extra_outputs = [".mp3.part", ".mp3.ytdl"]

    with pytest.raises(DownloadFailed) as excinfo:
        await invoker.download(audio_request(), ExtractedMetadata(title="Clip"))
    assert "no file" in excinfo.value.detail
    assert os.listdir(store.directory) == []


@pytest.mark.asyncio
async def test_download_with_empty_output_fails_and_cleans_up(invoker, fake_ytdlp, store):
    fake_ytdlp.output_bytes = b""

    with pytest.raises(DownloadFailed):
        await invoker.download(audio_request(), ExtractedMetadata(title="Clip"))
    assert os.listdir(store.directory) == []


@pytest.mark.asyncio
async def test_download_nonzero_exit_carries_diagnostics(invoker, fake_ytdlp, store):
    fake_ytdlp.download_returncode = 1
    fake_ytdlp.download_stderr = b"ERROR: Requested format is not available"

    with pytest.raises(DownloadFailed) as excinfo:
        await invoker.download(audio_request(), ExtractedMetadata(title="Clip"))

    assert "Requested format" in excinfo.value.detail
    assert os.listdir(store.directory) == []


@pytest.mark.asyncio
async def test_download_timeout(invoker, fake_ytdlp):
    fake_ytdlp.raise_on = lambda cmd: asyncio.TimeoutError() if '-o' in cmd else None

    with pytest.raises(DownloadFailed) as excinfo:
        await invoker.download(audio_request(), ExtractedMetadata(title="Clip"))
    assert "timed out" in excinfo.value.detail


@pytest.mark.asyncio
async def test_concurrent_downloads_get_distinct_files(invoker, fake_ytdlp):
    metadata = ExtractedMetadata(title="Same Title")
    results = await asyncio.gather(*[invoker.download(audio_request(), metadata) for _ in range(5)])
    assert len({staged.actual_name for staged in results}) == 5


@pytest.mark.asyncio
async def test_list_extractors(invoker, fake_ytdlp):
    assert await invoker.list_extractors() == ["youtube", "instagram", "TikTok"]


SLOW_YTDLP = "sh -c 'case \"$1\" in --version) echo 2099.01.01 ;; *) exec sleep 5 ;; esac' sh"


@pytest.mark.asyncio
async def test_real_metadata_timeout_is_not_reported_as_missing_tool(store):
    settings = ExtractorConfig(candidates=[SLOW_YTDLP], metadata_timeout=0.5, cache_executable=True)
    invoker = ExtractorInvoker(settings, store)

    with pytest.raises(MetadataTimeout):
        await invoker.fetch_metadata("https://youtu.be/abc")
    assert invoker._cached == expand_candidate(SLOW_YTDLP)


@pytest.mark.asyncio
async def test_real_download_timeout_cleans_up(store):
    settings = ExtractorConfig(candidates=[SLOW_YTDLP], download_timeout=0.5)
    invoker = ExtractorInvoker(settings, store)

    with pytest.raises(DownloadFailed) as excinfo:
        await invoker.download(audio_request(), ExtractedMetadata(title="Clip"))
    assert "timed out" in excinfo.value.detail
    assert os.listdir(store.directory) == []
