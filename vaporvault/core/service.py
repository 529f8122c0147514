"""
Runs SteamCMD as a child process and collects its output.
"""

import asyncio
import logging
import os
import shlex
import subprocess
from collections.abc import Callable

import psutil

from vaporvault.core.locator import SteamCmdLocator
from vaporvault.infra.platform_service import PlatformService
from vaporvault.models.result import SteamCmdResult

log = logging.getLogger(__name__)

QUIT_FLAG = "+quit"
READ_CHUNK_SIZE = 65536

OutputCallback = Callable[[str], None]


class SteamCmdService:
    """
    Executes SteamCMD commands.

    Each call provisions SteamCMD through the locator, spawns one process and
    waits for it. If the awaiting task is cancelled, or handling the output
    fails, the process and all of its descendants are killed before the
    exception is re-raised. No retries are attempted.
    """

    def __init__(self, locator: SteamCmdLocator, platform_service: PlatformService):
        self.locator = locator
        self.platform_service = platform_service

    @staticmethod
    def build_arguments(arguments: str) -> str:
        """Appends the terminating ``+quit`` flag to a SteamCMD command line."""
        return f"{arguments} {QUIT_FLAG}"

    async def run_command(
        self, arguments: str, on_output: OutputCallback | None = None
    ) -> SteamCmdResult:
        """
        Runs SteamCMD with ``arguments`` followed by ``+quit``.

        Args:
            arguments: The SteamCMD command line, e.g. ``"+login anonymous"``.
            on_output: Optional callback receiving each stdout line as it arrives.

        Returns:
            The exit code and the captured stdout/stderr text. A non-zero exit
            code is reported through ``SteamCmdResult.success``, not raised.
        """
        steamcmd_path = await self.locator.ensure_available()
        log.debug(
            f"Running SteamCMD command on {self.platform_service.os_description}: "
            f"{arguments}"
        )

        if not self.platform_service.is_windows:
            await self.platform_service.set_executable_permissions(steamcmd_path)

        command_line = self.build_arguments(arguments)
        argv = shlex.split(command_line, posix=not self.platform_service.is_windows)

        env = None
        creationflags = 0
        if self.platform_service.is_windows:
            creationflags = getattr(subprocess, "CREATE_NO_WINDOW", 0)
        else:
            # SteamCMD's runtime needs the caller's PATH to locate its helpers.
            env = dict(os.environ)
            env["PATH"] = os.environ.get("PATH", "")

        try:
            process = await asyncio.create_subprocess_exec(
                steamcmd_path,
                *argv,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=env,
                creationflags=creationflags,
            )
        except Exception as e:
            log.error(f"Failed to execute SteamCMD command: {e}")
            raise

        output: list[str] = []
        error: list[str] = []
        tasks = [
            asyncio.create_task(
                self._pump(process.stdout, output, logging.DEBUG, on_output)
            ),
            asyncio.create_task(self._pump(process.stderr, error, logging.WARNING)),
            asyncio.create_task(process.wait()),
        ]
        try:
            _, _, exit_code = await asyncio.gather(*tasks)
        except asyncio.CancelledError:
            log.warning("SteamCMD operation was cancelled, killing process tree...")
            await self._abort(process, tasks)
            raise
        except Exception as e:
            log.error(f"SteamCMD output handling failed, killing process tree: {e}")
            await self._abort(process, tasks)
            raise

        if exit_code != 0:
            log.error(f"SteamCMD exited with code {exit_code}")

        return SteamCmdResult(
            exit_code=exit_code, output="".join(output), error="".join(error)
        )

    async def download_depot(
        self,
        app_id: int,
        depot_id: int,
        manifest_id: str | None = None,
        on_output: OutputCallback | None = None,
    ) -> SteamCmdResult:
        """Downloads a depot, optionally pinned to a manifest."""
        arguments = f"+download_depot {app_id} {depot_id}"
        if manifest_id:
            arguments += f" {manifest_id}"

        manifest_note = f" (manifest: {manifest_id})" if manifest_id else ""
        log.info(f"Downloading depot {depot_id} for app {app_id}{manifest_note}")

        return await self.run_command(arguments, on_output=on_output)

    @staticmethod
    async def _pump(
        stream: asyncio.StreamReader,
        buffer: list[str],
        level: int,
        on_line: OutputCallback | None = None,
    ) -> None:
        """
        Drains a child pipe into ``buffer`` one line at a time.

        Reads fixed-size chunks and splits them itself, so lines of any
        length are accepted.
        """

        def emit(raw: bytes) -> None:
            line = raw.decode("utf-8", errors="replace").rstrip("\r")
            log.log(level, f"[SteamCMD] {line}")
            buffer.append(line + "\n")
            if on_line:
                on_line(line)

        pending = b""
        while chunk := await stream.read(READ_CHUNK_SIZE):
            *lines, pending = (pending + chunk).split(b"\n")
            for raw in lines:
                emit(raw)
        if pending:
            emit(pending)

    @classmethod
    async def _abort(
        cls, process: asyncio.subprocess.Process, tasks: list[asyncio.Task]
    ) -> None:
        """Stops the pumps and kills the child before an error propagates."""
        for task in tasks:
            task.cancel()
        await cls._kill_process_tree(process)
        await asyncio.gather(*tasks, return_exceptions=True)

    @staticmethod
    async def _kill_process_tree(process: asyncio.subprocess.Process) -> None:
        if process.returncode is not None:
            return

        try:
            children = psutil.Process(process.pid).children(recursive=True)
        except psutil.NoSuchProcess:
            children = []

        for child in children:
            try:
                child.kill()
            except psutil.NoSuchProcess:
                pass

        try:
            process.kill()
        except ProcessLookupError:
            pass

        # The awaiting task is already cancelled; shield the reap from it.
        await asyncio.shield(process.wait())
