from __future__ import annotations

from datetime import UTC, date, datetime
from unittest.mock import MagicMock, patch

import pytest

from marketcall.cli import main
from marketcall.config import AppConfig
from marketcall.learning.predictions import SweepResult
from marketcall.models.instrument import Instrument
from marketcall.models.prediction import PredictionRecord, StockPrediction


class TestCLIParsing:
    def test_no_command_fails(self) -> None:
        with pytest.raises(SystemExit):
            main([])

    def test_help_flag(self) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main(["--help"])
        assert exc_info.value.code == 0

    def test_migrate_command(self) -> None:
        with patch("marketcall.cli.cmd_migrate") as mock_cmd:
            main(["migrate"])
            mock_cmd.assert_called_once()

    def test_sweep_all_users(self) -> None:
        with patch("marketcall.cli.cmd_sweep") as mock_cmd:
            main(["sweep"])
            assert mock_cmd.call_args[0][0].user is None

    def test_sweep_one_user(self) -> None:
        with patch("marketcall.cli.cmd_sweep") as mock_cmd:
            main(["sweep", "--user", "u1"])
            assert mock_cmd.call_args[0][0].user == "u1"

    def test_ranking_period(self) -> None:
        with patch("marketcall.cli.cmd_ranking") as mock_cmd:
            main(["ranking", "--period", "weekly"])
            assert mock_cmd.call_args[0][0].period == "weekly"

    def test_ranking_rejects_unknown_period(self) -> None:
        with pytest.raises(SystemExit):
            main(["ranking", "--period", "monthly"])

    def test_stats_requires_user(self) -> None:
        with pytest.raises(SystemExit):
            main(["stats"])

    def test_verbose_flag(self) -> None:
        with patch("marketcall.cli.cmd_token") as mock_cmd:
            main(["-v", "token", "u1"])
            args = mock_cmd.call_args[0][0]
            assert args.verbose is True
            assert args.user_id == "u1"


class TestCommands:
    @patch("marketcall.cli._open_registry")
    def test_migrate(self, mock_open: MagicMock, capsys: pytest.CaptureFixture[str]) -> None:
        db = MagicMock()
        db.run_migrations.return_value = ["001_initial.sql"]
        mock_open.return_value = (db, MagicMock())

        main(["migrate"])

        db.close.assert_called_once()
        assert "1 applied" in capsys.readouterr().out

    @patch("marketcall.learning.predictions.PredictionManager.auto_confirm_pending")
    @patch("marketcall.cli._open_registry")
    def test_sweep(
        self, mock_open: MagicMock, mock_sweep: MagicMock, capsys: pytest.CaptureFixture[str]
    ) -> None:
        mock_open.return_value = (MagicMock(), MagicMock())
        mock_sweep.return_value = SweepResult(examined=2, confirmed=["r1"], not_ready=["r2"])

        main(["sweep", "--user", "u1"])

        mock_sweep.assert_called_once_with("u1")
        out = capsys.readouterr().out
        assert "Examined 2" in out
        assert "Confirmed: 1" in out

    @patch("marketcall.cli._open_registry")
    def test_stats(self, mock_open: MagicMock, capsys: pytest.CaptureFixture[str]) -> None:
        registry = MagicMock()
        registry.get_all.return_value = [
            PredictionRecord(
                user_id="u1",
                date=date(2025, 3, 10),
                predictions={Instrument.NIKKEI: StockPrediction(38000.0, 0.5, 0.2, 0.3)},
                confirmed_at=datetime(2025, 3, 10, 7, tzinfo=UTC),
            )
        ]
        mock_open.return_value = (MagicMock(), registry)

        main(["stats", "u1"])

        out = capsys.readouterr().out
        assert "Nikkei 225: avg dev 0.30" in out
        assert "S&P 500: no confirmed predictions" in out

    @patch("marketcall.cli.load_config")
    def test_token_requires_secret(self, mock_load: MagicMock) -> None:
        mock_load.return_value = AppConfig(db_dsn="")
        with pytest.raises(SystemExit):
            main(["token", "u1"])

    @patch("marketcall.cli.load_config")
    def test_token(self, mock_load: MagicMock, capsys: pytest.CaptureFixture[str]) -> None:
        from marketcall.api.auth import decode_user_id

        mock_load.return_value = AppConfig(db_dsn="", auth_secret_key="s3cret")
        main(["token", "u1"])
        token = capsys.readouterr().out.strip()
        assert decode_user_id(token, "s3cret") == "u1"
