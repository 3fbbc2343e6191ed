"""Tests for the command-line entry point."""
import argparse
import json
from typing import Any
from unittest.mock import patch

import httpx
import pytest
import respx

from tests.conftest import api
from wouldyou_session import __main__ as cli
from wouldyou_session.core.config import Settings
from wouldyou_session.services.exceptions import GuestQuotaExceededError
from wouldyou_session.services.local_store import LocalStore
from wouldyou_session.services.session_manager import SessionManager
from wouldyou_session.services.streak import StreakTracker


def parse(*argv: str) -> argparse.Namespace:
    return cli.build_parser().parse_args(argv)


class TestBuildParser:
    """Tests for build_parser()."""

    def test__build_parser__requires_command(self) -> None:
        with pytest.raises(SystemExit):
            parse()

    def test__build_parser__login_takes_email(self) -> None:
        args = parse("-v", "login", "a@b.com")

        assert args.command == "login"
        assert args.email == "a@b.com"
        assert args.verbose is True


class TestRunCommand:
    """Tests for run_command()."""

    async def test__status__anonymous(self, manager: SessionManager) -> None:
        snapshot = await cli.run_command(manager, parse("status"))

        assert snapshot["state"] == "anonymous"
        assert snapshot["remaining_free_uses"] == 3

    async def test__guest_then_play__consumes_quota_and_records_streak(
        self, manager: SessionManager, local_store: LocalStore,
    ) -> None:
        streak = StreakTracker(local_store)
        await cli.run_command(manager, parse("guest"))

        snapshot = await cli.run_command(manager, parse("play"), streak)

        assert snapshot["state"] == "guest"
        assert snapshot["guest_usage_count"] == 1
        assert streak.streak == 1

    async def test__play__exhausted_quota_raises(self, manager: SessionManager) -> None:
        await cli.run_command(manager, parse("guest"))
        for _ in range(3):
            await cli.run_command(manager, parse("play"))

        with pytest.raises(GuestQuotaExceededError):
            await cli.run_command(manager, parse("play"))

    async def test__login__prompts_for_password(
        self,
        manager: SessionManager,
        mock_api: respx.MockRouter,
        auth_payload: dict[str, Any],
    ) -> None:
        route = mock_api.post(api("/auth/login")).mock(
            return_value=httpx.Response(200, json=auth_payload),
        )

        with patch.object(cli.getpass, "getpass", return_value="password123"):
            snapshot = await cli.run_command(manager, parse("login", "a@b.com"))

        assert snapshot["is_authenticated"] is True
        assert json.loads(route.calls.last.request.content)["password"] == "password123"


class TestMain:
    """Tests for the exit-code contract of _main()."""

    async def test__main__prints_snapshot(
        self,
        manager: SessionManager,
        settings: Settings,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        with (
            patch.object(cli, "get_settings", return_value=settings),
            patch.object(cli.SessionManager, "from_settings", return_value=manager),
        ):
            exit_code = await cli._main(parse("guest"))

        assert exit_code == 0
        assert json.loads(capsys.readouterr().out)["state"] == "guest"

    async def test__main__quota_exceeded_exits_2(
        self,
        manager: SessionManager,
        settings: Settings,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        with (
            patch.object(cli, "get_settings", return_value=settings),
            patch.object(cli.SessionManager, "from_settings", return_value=manager),
            patch.object(cli, "run_command", side_effect=GuestQuotaExceededError()),
        ):
            exit_code = await cli._main(parse("play"))

        assert exit_code == cli.EXIT_QUOTA_EXCEEDED
        assert "error (quota_exceeded)" in capsys.readouterr().err

    async def test__main__session_error_exits_1(
        self,
        manager: SessionManager,
        settings: Settings,
        mock_api: respx.MockRouter,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        mock_api.post(api("/auth/login")).mock(
            return_value=httpx.Response(401, json={"error": True, "message": "invalid email or password"}),
        )

        with (
            patch.object(cli, "get_settings", return_value=settings),
            patch.object(cli.SessionManager, "from_settings", return_value=manager),
            patch.object(cli.getpass, "getpass", return_value="wrongpass"),
        ):
            exit_code = await cli._main(parse("login", "a@b.com"))

        assert exit_code == cli.EXIT_ERROR
        assert "error (invalid_credentials): invalid email or password" in capsys.readouterr().err
