import json
import os
from typing import Callable, Dict, List, Optional

import pytest

from socialdl.config.settings import ExtractorConfig, config
from socialdl.models.internal import RetentionPolicy
from socialdl.services.extractor import ExtractorInvoker
from socialdl.services.storage import StagedFileStore
from socialdl.services.ytdlp import CompletedProcess, SubprocessExecutor


@pytest.fixture(autouse=True)
def no_ssrf_lookups(monkeypatch):
    """Tests never resolve real hostnames"""
    monkeypatch.setattr(config.security, "enable_ssrf_protection", False)


@pytest.fixture
def store(tmp_path):
    store = StagedFileStore(
        str(tmp_path / "downloads"),
        RetentionPolicy(max_age=3600, sweep_interval=1800, post_download_grace=0.01),
    )
    store.ensure_directory()
    return store


@pytest.fixture
def extractor_settings():
    return ExtractorConfig(candidates=["yt-dlp"])


class FakeYtDlp:
    """
    Stands in for SubprocessExecutor.run and answers like yt-dlp would.
    Every command is recorded in .calls.
    """

    def __init__(self):
        self.calls: List[List[str]] = []
        self.version_returncode = 0
        self.info: Optional[Dict] = {"title": "My Song!", "thumbnail": "https://i.example/t.jpg", "duration": 125}
        self.info_returncode = 0
        self.info_stderr = b""
        self.download_returncode = 0
        self.download_stderr = b""
        self.output_ext: Optional[str] = "mp3"
        self.output_bytes = b"x" * 2048
        self.extra_outputs: List[str] = []
        self.extractors = ["youtube", "instagram", "TikTok"]
        self.raise_on: Optional[Callable[[List[str]], Optional[BaseException]]] = None

    def operation_calls(self) -> List[List[str]]:
        return [c for c in self.calls if '--version' not in c]

    async def run(self, cmd, timeout, capture_stderr=True):
        self.calls.append(list(cmd))
        if self.raise_on is not None:
            exc = self.raise_on(cmd)
            if exc is not None:
                raise exc

        if '--version' in cmd:
            return CompletedProcess(self.version_returncode, b"2024.08.06\n", b"")

        if '--dump-json' in cmd:
            stdout = json.dumps(self.info).encode() + b"\n" if self.info is not None else b"not json"
            return CompletedProcess(self.info_returncode, stdout, self.info_stderr)

        if '--list-extractors' in cmd:
            return CompletedProcess(0, "\n".join(self.extractors).encode(), b"")

        template = cmd[cmd.index('-o') + 1]
        for suffix in self.extra_outputs:
            with open(template.replace('.%(ext)s', suffix), 'wb') as f:
                f.write(b"partial")
        if self.output_ext is not None:
            with open(template.replace('%(ext)s', self.output_ext), 'wb') as f:
                f.write(self.output_bytes)
        return CompletedProcess(self.download_returncode, b"", self.download_stderr)


@pytest.fixture
def fake_ytdlp(monkeypatch):
    fake = FakeYtDlp()
    monkeypatch.setattr(SubprocessExecutor, "run", staticmethod(fake.run))
    return fake


@pytest.fixture
def invoker(extractor_settings, store, fake_ytdlp):
    return ExtractorInvoker(extractor_settings, store)


def age_file(path, seconds: float):
    """Push a file's mtime into the past"""
    stamp = os.stat(path).st_mtime - seconds
    os.utime(path, (stamp, stamp))
