import asyncio
import logging
import os
import stat
import time
from datetime import datetime
from typing import AsyncIterator, Dict, List, Optional, Tuple

import aiofiles
import aiofiles.os

from socialdl.config.settings import StorageConfig
from socialdl.core.errors import NotFound
from socialdl.models.internal import RetentionPolicy, StagedFile, SweepReport

logger = logging.getLogger(__name__)

# yt-dlp work files that never count as finished output
TEMP_SUFFIXES = ('.part', '.ytdl', '.temp', '.tmp')


def is_work_file(name: str) -> bool:
    return name.endswith(TEMP_SUFFIXES) or '.part-Frag' in name


class StagedFileStore:
    """
    Flat staging directory used as a write-once/read-once cache.

    Files are created by the extractor, handed out once through retrieve(),
    deleted after a grace period once fully streamed, and reclaimed by
    sweep() when they outlive the retention policy. Deletion from either
    path treats an already missing file as done.
    """

    def __init__(self, directory: str, policy: RetentionPolicy, chunk_size: int = 1024 * 1024):
        self.directory = os.path.abspath(directory)
        self.policy = policy
        self.chunk_size = chunk_size
        self._pending: Dict[str, asyncio.Task] = {}

    @classmethod
    def from_config(cls, storage: StorageConfig) -> "StagedFileStore":
        return cls(
            storage.directory,
            RetentionPolicy.from_config(storage),
            chunk_size=storage.chunk_size,
        )

    def ensure_directory(self) -> None:
        os.makedirs(self.directory, exist_ok=True)

    def output_template(self, base_name: str) -> str:
        """yt-dlp output template; the tool fills in the final extension"""
        return os.path.join(self.directory, f"{base_name}.%(ext)s")

    @property
    def pending_deletions(self) -> List[str]:
        return sorted(self._pending)

    async def _entries(self, base_name: str) -> List[str]:
        """Files named base_name.<anything>"""
        prefix = f"{base_name}."
        try:
            names = await aiofiles.os.listdir(self.directory)
        except FileNotFoundError:
            return []
        return [n for n in names if n.startswith(prefix)]

    async def locate(self, base_name: str, requested_name: str) -> Optional[StagedFile]:
        """
        Find what the extractor actually wrote for base_name.
        The newest finished file with the prefix wins; the output template is only a hint.
        """
        newest: Optional[Tuple[float, str, os.stat_result]] = None
        for name in await self._entries(base_name):
            if is_work_file(name):
                continue
            try:
                st = await aiofiles.os.stat(os.path.join(self.directory, name))
            except FileNotFoundError:
                continue
            if not stat.S_ISREG(st.st_mode):
                continue
            if newest is None or st.st_mtime > newest[0]:
                newest = (st.st_mtime, name, st)

        if newest is None:
            return None

        mtime, name, st = newest
        return StagedFile(
            directory=self.directory,
            requested_name=requested_name,
            actual_name=name,
            created_at=datetime.fromtimestamp(mtime),
            size=st.st_size,
        )

    async def discard(self, base_name: str) -> int:
        """Remove everything written under base_name, including work files"""
        removed = 0
        for name in await self._entries(base_name):
            if await self.delete(name):
                removed += 1
        return removed

    def resolve(self, name: str) -> str:
        """Absolute path for name, NotFound unless it stays inside the directory"""
        if not name or name in ('.', '..') or '/' in name or '\\' in name or '\x00' in name:
            raise NotFound(name)

        root = os.path.realpath(self.directory)
        candidate = os.path.realpath(os.path.join(root, name))
        if os.path.dirname(candidate) != root:
            raise NotFound(name)
        return candidate

    async def retrieve(self, name: str) -> Tuple[StagedFile, AsyncIterator[bytes]]:
        """
        Open a staged file for download.

        The file is opened before returning so a concurrent deletion cannot
        cut the stream short. Once the stream has been read to the end the
        file is scheduled for deletion after the post-download grace period.
        """
        path = self.resolve(name)
        try:
            handle = await aiofiles.open(path, 'rb')
        except OSError:
            raise NotFound(name)

        st = os.fstat(handle.fileno())
        if not stat.S_ISREG(st.st_mode):
            await handle.close()
            raise NotFound(name)

        staged = StagedFile(
            directory=self.directory,
            requested_name=name,
            actual_name=os.path.basename(path),
            created_at=datetime.fromtimestamp(st.st_mtime),
            size=st.st_size,
        )
        return staged, self._stream(handle, staged.actual_name)

    async def _stream(self, handle, name: str) -> AsyncIterator[bytes]:
        completed = False
        try:
            while True:
                chunk = await handle.read(self.chunk_size)
                if not chunk:
                    break
                yield chunk
            completed = True
        finally:
            await handle.close()
            if completed:
                self.schedule_deletion(name)
            else:
                logger.info(f"Stream of {name} ended early, leaving it for the sweep")

    def schedule_deletion(self, name: str, delay: Optional[float] = None) -> asyncio.Task:
        """Delete name after delay (grace period by default), restarting any earlier timer"""
        if delay is None:
            delay = self.policy.post_download_grace

        previous = self._pending.pop(name, None)
        if previous is not None and not previous.done():
            previous.cancel()

        task = asyncio.create_task(self._delete_later(name, delay))
        self._pending[name] = task
        task.add_done_callback(lambda t, n=name: self._forget(n, t))
        return task

    def _forget(self, name: str, task: asyncio.Task) -> None:
        if self._pending.get(name) is task:
            del self._pending[name]

    async def _delete_later(self, name: str, delay: float) -> bool:
        await asyncio.sleep(delay)
        return await self.delete(name)

    async def delete(self, name: str) -> bool:
        """True when this call removed the file; failures are logged only"""
        path = os.path.join(self.directory, name)
        try:
            await aiofiles.os.remove(path)
        except FileNotFoundError:
            logger.debug(f"{name} already gone")
            return False
        except OSError as e:
            logger.warning(f"Failed to delete {name}: {str(e)}")
            return False
        logger.info(f"Deleted staged file {name}")
        return True

    async def sweep(self, now: Optional[float] = None) -> SweepReport:
        """Delete every regular file older than the retention max age"""
        report = SweepReport()
        now = time.time() if now is None else now

        try:
            names = await aiofiles.os.listdir(self.directory)
        except OSError as e:
            logger.error(f"Sweep could not list {self.directory}: {str(e)}")
            return report

        for name in names:
            path = os.path.join(self.directory, name)
            try:
                st = await aiofiles.os.stat(path)
                if not stat.S_ISREG(st.st_mode):
                    continue
                report.processed += 1
                if now - st.st_mtime <= self.policy.max_age:
                    continue
                await aiofiles.os.remove(path)
                report.deleted += 1
                logger.debug(f"Swept {name}")
            except FileNotFoundError:
                continue
            except OSError as e:
                report.errors += 1
                logger.warning(f"Sweep failed on {name}: {str(e)}")

        return report

    async def count(self) -> int:
        try:
            names = await aiofiles.os.listdir(self.directory)
        except OSError:
            return 0
        return len(names)

    async def close(self) -> None:
        """Cancel pending deletions; the next sweep picks those files up"""
        tasks = list(self._pending.values())
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._pending.clear()
