"""Tests for the lifecycle API (buildwatch.lifecycle).

Tests cover:
- build_once / start_auto returning event channels
- Project keys pointing at project.clj vs. the project directory
- Registry bookkeeping (register on spawn, removal on finish)
- stop_auto on live and unknown projects
- Concurrent processes without cross-talk
- clean() callbacks (success, failure, timeout, spawn failure, async callbacks)
- Error cases (duplicate process, missing project directory, failed start)
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from buildwatch.errors import InvalidProjectError, ProcessAlreadyRunningError
from buildwatch.lifecycle import BuildMonitor
from buildwatch.parser.events import FinishedEvent, SuccessEvent


# ---------------------------------------------------------------------------
# build_once
# ---------------------------------------------------------------------------


class TestBuildOnce:
    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_stream_closes_when_process_exits(self, make_config, project_file: Path):
        monitor = BuildMonitor(make_config("success"))
        channel = await monitor.build_once(project_file)
        events = await channel.drain()

        assert [e.kind for e in events] == ["start", "warning", "success", "finished"]
        assert channel.closed is True
        assert monitor.running() == []

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_project_directory_key(self, make_config, tmp_project_dir: Path):
        monitor = BuildMonitor(make_config("fail"))
        events = await (await monitor.build_once(tmp_project_dir)).drain()
        assert [e.kind for e in events] == ["error", "finished"]

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_build_ids_are_passed(self, make_config, tmp_project_dir: Path):
        monitor = BuildMonitor(make_config("builds"))
        events = await (await monitor.build_once(tmp_project_dir, ["dev", "prod"])).drain()
        targets = [e.target for e in events if e.kind == "start"]
        assert targets == ["dev.js", "prod.js"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_missing_project_directory(self, make_config, tmp_path: Path):
        monitor = BuildMonitor(make_config())
        with pytest.raises(InvalidProjectError):
            await monitor.build_once(tmp_path / "nope" / "project.clj")

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_spawn_failure_unregisters(self, tmp_project_dir: Path):
        from buildwatch.config import CommandConfig, Config

        config = Config(
            commands=CommandConfig(once="definitely-not-a-real-build-tool-xyz once"),
            use_shell=False,
        )
        monitor = BuildMonitor(config)
        events = await (await monitor.build_once(tmp_project_dir)).drain()

        assert [e.kind for e in events] == ["spawn_failed", "finished"]
        assert monitor.running() == []

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_unexpected_start_failure_unregisters(self, make_config, tmp_project_dir: Path):
        monitor = BuildMonitor(make_config("success"))

        with patch(
            "asyncio.create_subprocess_exec",
            side_effect=ValueError("embedded null byte"),
        ):
            with pytest.raises(ValueError):
                await monitor.build_once(tmp_project_dir)
        assert monitor.running() == []

        events = await (await monitor.build_once(tmp_project_dir)).drain()
        assert events[-1] == FinishedEvent()


# ---------------------------------------------------------------------------
# start_auto / stop_auto
# ---------------------------------------------------------------------------


class TestAutoBuild:
    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_start_and_stop(self, make_config, project_file: Path, tmp_project_dir: Path):
        monitor = BuildMonitor(make_config("success"))
        channel = await monitor.start_auto(project_file)

        assert (await channel.get()).kind == "start"
        assert await channel.get() == SuccessEvent(elapsed_seconds=1.0)
        assert monitor.running() == [str(tmp_project_dir.resolve())]

        # Either key form reaches the same process.
        assert await monitor.stop_auto(tmp_project_dir) is True
        assert await channel.drain() == [FinishedEvent()]
        assert monitor.running() == []

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_stop_unknown_project(self, make_config, tmp_project_dir: Path):
        monitor = BuildMonitor(make_config())
        assert await monitor.stop_auto(tmp_project_dir) is False

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_duplicate_start_rejected(self, make_config, project_file: Path):
        monitor = BuildMonitor(make_config("success"))
        channel = await monitor.start_auto(project_file)
        try:
            with pytest.raises(ProcessAlreadyRunningError):
                await monitor.start_auto(project_file)
            with pytest.raises(ProcessAlreadyRunningError):
                await monitor.build_once(project_file)
        finally:
            await monitor.stop_auto(project_file)
        await channel.drain()

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_stop_escalates_to_kill(self, make_config, project_file: Path):
        monitor = BuildMonitor(make_config("stubborn", stop_timeout=0.5))
        channel = await monitor.start_auto(project_file)
        await channel.get()
        await channel.get()

        assert await monitor.stop_auto(project_file) is True
        assert await channel.drain() == [FinishedEvent()]

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_crash_closes_stream(self, make_config, project_file: Path):
        monitor = BuildMonitor(make_config("crash"))
        events = await (await monitor.start_auto(project_file)).drain()
        assert [e.kind for e in events] == ["start", "finished"]
        assert monitor.running() == []

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_context_manager_stops_everything(self, make_config, tmp_path: Path):
        projects = []
        for name in ("a", "b"):
            directory = tmp_path / name
            directory.mkdir()
            projects.append(directory)

        async with BuildMonitor(make_config("success")) as monitor:
            channels = [await monitor.start_auto(p) for p in projects]
            for channel in channels:
                await channel.get()
            assert len(monitor.running()) == 2

        for channel in channels:
            events = await channel.drain()
            assert events[-1] == FinishedEvent()
        assert monitor.running() == []


class TestConcurrency:
    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_processes_do_not_share_parser_state(self, make_config, tmp_path: Path):
        failing = tmp_path / "failing"
        passing = tmp_path / "passing"
        failing.mkdir()
        passing.mkdir()

        fail_monitor = BuildMonitor(make_config("fail"))
        pass_monitor = BuildMonitor(make_config("success"))

        fail_channel = await fail_monitor.build_once(failing)
        pass_channel = await pass_monitor.build_once(passing)
        fail_events, pass_events = await asyncio.gather(
            fail_channel.drain(), pass_channel.drain()
        )

        assert [e.kind for e in fail_events] == ["error", "finished"]
        assert [e.kind for e in pass_events] == ["start", "warning", "success", "finished"]

    @pytest.mark.unit
    def test_each_process_gets_its_own_dispatcher(self, make_config, tmp_path: Path):
        from buildwatch.supervisor.process import BuildMode, BuildProcess

        a = BuildProcess("a", tmp_path, BuildMode.ONCE, ["x"])
        b = BuildProcess("b", tmp_path, BuildMode.ONCE, ["x"])
        a.dispatcher.feed('Compiling "app" failed.\n')

        assert a.dispatcher.state is not b.dispatcher.state
        assert a.dispatcher.state.inside_error_capture is True
        assert b.dispatcher.state.inside_error_capture is False


# ---------------------------------------------------------------------------
# clean
# ---------------------------------------------------------------------------


class TestClean:
    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_success_callback(self, make_config, project_file: Path):
        on_success = MagicMock()
        on_error = MagicMock()
        monitor = BuildMonitor(make_config("success"))

        assert await monitor.clean(project_file, on_success, on_error) is True
        on_success.assert_called_once_with()
        on_error.assert_not_called()

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_error_callback(self, make_config, tmp_project_dir: Path):
        on_success = MagicMock()
        on_error = MagicMock()
        monitor = BuildMonitor(make_config("fail"))

        assert await monitor.clean(tmp_project_dir, on_success, on_error) is False
        on_error.assert_called_once_with()
        on_success.assert_not_called()

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_clean_timeout_reports_error(self, make_config, tmp_project_dir: Path):
        on_success = MagicMock()
        on_error = MagicMock()
        config = make_config("hang")
        config.clean_timeout = 0.5
        monitor = BuildMonitor(config)

        assert await monitor.clean(tmp_project_dir, on_success, on_error) is False
        on_error.assert_called_once_with()
        on_success.assert_not_called()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_async_callbacks(self, make_config, tmp_project_dir: Path, mock_subprocess):
        on_success = AsyncMock()
        proc = mock_subprocess(stdout="Deleting files generated by lein-cljsbuild.", returncode=0)
        monitor = BuildMonitor(make_config())

        with patch("asyncio.create_subprocess_exec", return_value=proc) as exec_mock:
            assert await monitor.clean(tmp_project_dir, on_success=on_success) is True

        on_success.assert_awaited_once()
        assert exec_mock.call_args.kwargs["cwd"] == str(tmp_project_dir.resolve())

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_spawn_failure_reports_error(self, make_config, tmp_project_dir: Path):
        on_error = MagicMock()
        monitor = BuildMonitor(make_config())

        with patch("asyncio.create_subprocess_exec", side_effect=FileNotFoundError("lein")):
            assert await monitor.clean(tmp_project_dir, on_error=on_error) is False
        on_error.assert_called_once_with()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_build_ids_appended(self, make_config, tmp_project_dir: Path, mock_subprocess):
        proc = mock_subprocess(returncode=0)
        monitor = BuildMonitor(make_config())

        with patch("asyncio.create_subprocess_exec", return_value=proc) as exec_mock:
            await monitor.clean(tmp_project_dir, builds=["dev"])

        assert exec_mock.call_args.args[-2:] == ("clean", "dev")
