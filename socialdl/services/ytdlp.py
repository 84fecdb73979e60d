from typing import List, NamedTuple, Sequence
from contextlib import suppress
import asyncio
import os
import signal
from socialdl.config.settings import config

class CompletedProcess(NamedTuple):
    """Subprocess result"""
    returncode: int
    stdout: bytes
    stderr: bytes

def kill_process_tree(process: asyncio.subprocess.Process) -> None:
    """Kill the child and whatever it spawned (ffmpeg for merges and conversions)"""
    if hasattr(os, "killpg"):
        with suppress(ProcessLookupError, PermissionError):
            os.killpg(process.pid, signal.SIGKILL)
            return
    with suppress(ProcessLookupError):
        process.kill()

class SubprocessExecutor:
    """Execute subprocess with consistent error handling"""
    
    @staticmethod
    async def run(
        cmd: List[str],
        timeout: float,
        capture_stderr: bool = True
    ) -> CompletedProcess:
        """
        Run subprocess with timeout and proper cleanup.
        Raises OSError when the executable cannot be started and
        asyncio.TimeoutError (after killing the child) when the bound is exceeded.
        """
        process = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE if capture_stderr else asyncio.subprocess.DEVNULL,
            stdin=asyncio.subprocess.DEVNULL,
            start_new_session=True
        )
        
        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(),
                timeout=timeout
            )
            
            return CompletedProcess(
                returncode=process.returncode,
                stdout=stdout,
                stderr=stderr if capture_stderr else b""
            )
            
        except asyncio.TimeoutError:
            kill_process_tree(process)
            await process.wait()
            raise
        except BaseException:
            if process.returncode is None:
                kill_process_tree(process)
                await process.wait()
            raise

class YTDLPCommandBuilder:
    """Build yt-dlp commands on top of a resolved invocation form"""

    @staticmethod
    def _common_options() -> List[str]:
        return [
            '--no-playlist',
            '--socket-timeout', str(config.extractor.socket_timeout),
            '--retries', str(config.extractor.retries),
        ]

    @staticmethod
    def build_version_command(executable: Sequence[str]) -> List[str]:
        """Lightweight probe used to check that an invocation form works"""
        return [*executable, '--version']
    
    @staticmethod
    def build_info_command(executable: Sequence[str], url: str) -> List[str]:
        """Build command for fetching media info"""
        cmd = [*executable, '--dump-json']
        cmd.extend(YTDLPCommandBuilder._common_options())
        cmd.extend(['--', url])
        return cmd

    @staticmethod
    def build_download_command(
        executable: Sequence[str],
        url: str,
        output_template: str,
        format_args: Sequence[str]
    ) -> List[str]:
        """Build command for downloading into the staging directory"""
        cmd = [*executable]
        cmd.extend(format_args)
        cmd.extend(['-o', output_template])
        cmd.extend(YTDLPCommandBuilder._common_options())
        
        # Keep stdout/stderr small, only diagnostics are captured
        cmd.append('--no-progress')
        cmd.append('--quiet')
        cmd.append('--no-warnings')
        # mtime is the staging time the sweep ages files by
        cmd.append('--no-mtime')

        cmd.extend(['--', url])
        return cmd

    @staticmethod
    def build_extractors_command(executable: Sequence[str]) -> List[str]:
        return [*executable, '--list-extractors']
