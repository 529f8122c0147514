"""Tests for running SteamCMD commands."""

import asyncio
import os
import sys
import time
from unittest.mock import AsyncMock, MagicMock, patch

import psutil
import pytest

from vaporvault.core.service import QUIT_FLAG, SteamCmdService
from vaporvault.infra.platform_service import PlatformService

STEAMCMD_PATH = "/opt/steamcmd/steamcmd"


class FakeProcess:
    """Stands in for ``asyncio.subprocess.Process`` with scripted pipes."""

    def __init__(self, stdout=b"", stderr=b"", exit_code=0, hang=False):
        self.pid = 4242
        self.returncode = None
        self.stdout = asyncio.StreamReader()
        self.stderr = asyncio.StreamReader()
        self.killed = False
        self._exit_code = exit_code
        self._exited = asyncio.Event()

        self.stdout.feed_data(stdout)
        self.stderr.feed_data(stderr)
        if not hang:
            self._finish(exit_code)

    def _finish(self, code):
        self.stdout.feed_eof()
        self.stderr.feed_eof()
        self.returncode = code
        self._exited.set()

    async def wait(self):
        await self._exited.wait()
        return self.returncode

    def kill(self):
        self.killed = True
        self._finish(-9)


def _make_service(platform, path=STEAMCMD_PATH):
    locator = MagicMock()
    locator.ensure_available = AsyncMock(return_value=path)
    return SteamCmdService(locator, platform)


def _patch_spawn(process):
    return patch(
        "vaporvault.core.service.asyncio.create_subprocess_exec",
        AsyncMock(return_value=process),
    )


class TestBuildArguments:
    def test_appends_quit_once(self):
        assert SteamCmdService.build_arguments("+login anonymous") == (
            "+login anonymous +quit"
        )

    def test_empty_arguments(self):
        assert SteamCmdService.build_arguments("").endswith(QUIT_FLAG)


class TestRunCommand:
    @pytest.mark.asyncio
    async def test_successful_run(self, linux_platform):
        service = _make_service(linux_platform)
        process = FakeProcess(stdout=b"Steam>\nLoading...\n", stderr=b"")

        with _patch_spawn(process) as spawn:
            result = await service.run_command("+login anonymous")

        assert result.success
        assert result.exit_code == 0
        assert result.output == "Steam>\nLoading...\n"
        assert result.error == ""
        assert not result.has_errors
        service.locator.ensure_available.assert_awaited_once()

        args = spawn.await_args.args
        assert args == (STEAMCMD_PATH, "+login", "anonymous", "+quit")
        assert args.count(QUIT_FLAG) == 1

    @pytest.mark.asyncio
    async def test_non_zero_exit_is_reported_not_raised(self, linux_platform, caplog):
        service = _make_service(linux_platform)
        process = FakeProcess(
            stdout=b"FAILED\n", stderr=b"login failure\n", exit_code=5
        )

        with _patch_spawn(process):
            result = await service.run_command("+login someone")

        assert not result.success
        assert result.exit_code == 5
        assert result.error == "login failure\n"
        assert result.has_errors
        assert "SteamCMD exited with code 5" in caplog.text

    @pytest.mark.asyncio
    async def test_crlf_lines_are_normalised(self, linux_platform):
        service = _make_service(linux_platform)
        process = FakeProcess(stdout=b"one\r\ntwo\r\n")

        with _patch_spawn(process):
            result = await service.run_command("+app_status 740")

        assert result.output == "one\ntwo\n"

    @pytest.mark.asyncio
    async def test_output_callback_receives_stdout_lines(self, linux_platform):
        service = _make_service(linux_platform)
        process = FakeProcess(stdout=b"a\nb\n", stderr=b"ignored\n")
        lines = []

        with _patch_spawn(process):
            await service.run_command("+info", on_output=lines.append)

        assert lines == ["a", "b"]

    @pytest.mark.asyncio
    async def test_unix_run_sets_permissions_and_path(self, linux_platform):
        service = _make_service(linux_platform)

        with _patch_spawn(FakeProcess()) as spawn:
            await service.run_command("+help")

        linux_platform.set_executable_permissions.assert_awaited_once_with(
            STEAMCMD_PATH
        )
        env = spawn.await_args.kwargs["env"]
        assert env["PATH"] == os.environ.get("PATH", "")

    @pytest.mark.asyncio
    async def test_windows_run_inherits_environment(self, windows_platform):
        service = _make_service(windows_platform, path=r"C:\steamcmd\steamcmd.exe")

        with _patch_spawn(FakeProcess()) as spawn:
            await service.run_command("+help")

        windows_platform.set_executable_permissions.assert_not_awaited()
        assert spawn.await_args.kwargs["env"] is None

    @pytest.mark.asyncio
    async def test_spawn_failure_propagates(self, linux_platform, caplog):
        service = _make_service(linux_platform)

        with patch(
            "vaporvault.core.service.asyncio.create_subprocess_exec",
            AsyncMock(side_effect=FileNotFoundError("steamcmd")),
        ):
            with pytest.raises(FileNotFoundError):
                await service.run_command("+help")

        assert "Failed to execute SteamCMD command" in caplog.text

    @pytest.mark.asyncio
    async def test_cancellation_kills_process_tree(self, linux_platform):
        service = _make_service(linux_platform)
        process = FakeProcess(stdout=b"Downloading...\n", hang=True)
        child = MagicMock()

        with (
            _patch_spawn(process),
            patch("vaporvault.core.service.psutil.Process") as ps_process,
        ):
            ps_process.return_value.children.return_value = [child]
            task = asyncio.create_task(service.run_command("+app_update 740"))
            await asyncio.sleep(0.01)
            task.cancel()

            with pytest.raises(asyncio.CancelledError):
                await task

        ps_process.assert_called_once_with(process.pid)
        ps_process.return_value.children.assert_called_once_with(recursive=True)
        child.kill.assert_called_once()
        assert process.killed

    @pytest.mark.asyncio
    async def test_long_lines_are_not_truncated(self, linux_platform):
        service = _make_service(linux_platform)
        long_line = b"x" * 70_000
        process = FakeProcess(stdout=long_line + b"\nSteam>\n", stderr=long_line)

        with _patch_spawn(process):
            result = await service.run_command("+app_info_print 740")

        assert result.output == "x" * 70_000 + "\nSteam>\n"
        assert result.error == "x" * 70_000 + "\n"

    @pytest.mark.asyncio
    async def test_multibyte_text_split_across_reads(self, linux_platform):
        service = _make_service(linux_platform)
        text = "Загрузка " * 10_000
        process = FakeProcess(stdout=text.encode("utf-8") + b"\n")

        with _patch_spawn(process):
            result = await service.run_command("+info")

        assert result.output == text + "\n"

    @pytest.mark.asyncio
    async def test_callback_error_kills_process_tree(self, linux_platform, caplog):
        service = _make_service(linux_platform)
        process = FakeProcess(stdout=b"Update state 0x61\n", hang=True)

        def reject(line):
            raise RuntimeError("display closed")

        with (
            _patch_spawn(process),
            patch("vaporvault.core.service.psutil.Process") as ps_process,
        ):
            ps_process.return_value.children.return_value = []
            with pytest.raises(RuntimeError, match="display closed"):
                await service.run_command("+app_update 740", on_output=reject)

        assert process.killed
        assert "killing process tree" in caplog.text

    @pytest.mark.asyncio
    async def test_provisioning_failure_prevents_spawn(self, linux_platform):
        service = _make_service(linux_platform)
        service.locator.ensure_available.side_effect = RuntimeError("no network")

        with _patch_spawn(FakeProcess()) as spawn:
            with pytest.raises(RuntimeError, match="no network"):
                await service.run_command("+help")

        spawn.assert_not_awaited()


class TestDownloadDepot:
    @pytest.mark.asyncio
    async def test_without_manifest(self, linux_platform, caplog):
        service = _make_service(linux_platform)

        with (
            _patch_spawn(FakeProcess()) as spawn,
            caplog.at_level("INFO", logger="vaporvault"),
        ):
            await service.download_depot(740, 741)

        assert spawn.await_args.args[1:] == ("+download_depot", "740", "741", "+quit")
        assert "Downloading depot 741 for app 740" in caplog.text
        assert "manifest" not in caplog.text

    @pytest.mark.asyncio
    async def test_with_manifest(self, linux_platform, caplog):
        service = _make_service(linux_platform)

        with (
            _patch_spawn(FakeProcess()) as spawn,
            caplog.at_level("INFO", logger="vaporvault"),
        ):
            await service.download_depot(740, 741, "1234567890")

        assert spawn.await_args.args[1:] == (
            "+download_depot",
            "740",
            "741",
            "1234567890",
            "+quit",
        )
        assert "(manifest: 1234567890)" in caplog.text


@pytest.mark.skipif(sys.platform == "win32", reason="uses a POSIX shell script")
class TestRealProcess:
    """Runs a shell script standing in for SteamCMD."""

    @staticmethod
    def _script(tmp_path, body: str) -> str:
        script = tmp_path / "steamcmd"
        script.write_text(f"#!/bin/sh\n{body}\n")
        script.chmod(0o755)
        return str(script)

    @pytest.mark.asyncio
    async def test_exit_code_and_output(self, tmp_path):
        path = self._script(
            tmp_path, 'echo "args: $*"\necho "Warning: low disk" >&2\nexit 3'
        )
        service = _make_service(PlatformService(), path=path)

        result = await service.run_command("+login anonymous")

        assert result.exit_code == 3
        assert result.output == "args: +login anonymous +quit\n"
        assert result.error == "Warning: low disk\n"

    @pytest.mark.asyncio
    async def test_cancel_stops_long_running_command(self, tmp_path):
        path = self._script(tmp_path, "echo started\nsleep 30")
        service = _make_service(PlatformService(), path=path)
        started = asyncio.Event()

        task = asyncio.create_task(
            service.run_command("+app_update 740", on_output=lambda _: started.set())
        )
        await asyncio.wait_for(started.wait(), timeout=10)
        begin = time.monotonic()
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

        assert time.monotonic() - begin < 10

    @pytest.mark.asyncio
    async def test_line_longer_than_stream_limit(self, tmp_path):
        path = self._script(
            tmp_path, "head -c 70000 /dev/zero | tr '\\0' x\necho\necho done\nexit 0"
        )
        service = _make_service(PlatformService(), path=path)

        result = await service.run_command("+app_info_print 740")

        assert result.success
        assert result.output == "x" * 70000 + "\ndone\n"

    @pytest.mark.asyncio
    async def test_failing_output_callback_kills_child(self, tmp_path):
        pid_file = tmp_path / "steamcmd.pid"
        path = self._script(tmp_path, f"echo $$ > {pid_file}\necho started\nsleep 30")
        service = _make_service(PlatformService(), path=path)

        def reject(line):
            raise RuntimeError(f"cannot handle {line!r}")

        begin = time.monotonic()
        with pytest.raises(RuntimeError, match="cannot handle 'started'"):
            await service.run_command("+app_update 740", on_output=reject)

        assert time.monotonic() - begin < 10
        assert not psutil.pid_exists(int(pid_file.read_text()))
