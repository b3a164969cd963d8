"""Tests for the command line entry point."""

from unittest.mock import patch

import pytest

import main
from src.scheduler.poll_cycle import CycleOutcome, CycleResult


@pytest.fixture
def mock_engine_cls():
    with patch("main.setup_logging"):
        with patch("main.StoryEngine") as engine_cls:
            yield engine_cls


class TestParseArgs:
    """Tests for parse_args."""

    def test_defaults(self):
        args = main.parse_args([])
        assert args.once is False
        assert args.interval is None
        assert args.db_path is None

    def test_options(self):
        args = main.parse_args(["--once", "--interval", "2.5", "--model", "ollama:llama3"])
        assert args.once is True
        assert args.interval == 2.5
        assert args.model == "ollama:llama3"


class TestMain:
    """Tests for main()."""

    def test_once_success(self, mock_engine_cls):
        engine = mock_engine_cls.create.return_value
        engine.run_cycle_once.return_value = CycleResult(outcome=CycleOutcome.ADVANCED)

        assert main.main(["--once"]) == 0
        engine.start_scheduler.assert_not_called()

    def test_once_failure(self, mock_engine_cls):
        engine = mock_engine_cls.create.return_value
        engine.run_cycle_once.return_value = CycleResult(
            outcome=CycleOutcome.FAILED, error="disk full"
        )

        assert main.main(["--once"]) == 1

    def test_cli_overrides_reach_config(self, mock_engine_cls):
        engine = mock_engine_cls.create.return_value
        engine.run_cycle_once.return_value = CycleResult(outcome=CycleOutcome.POLL_OPEN)

        main.main(["--once", "--db-path", "/tmp/x.db", "--model", "ollama:qwen", "--interval", "3"])

        config = mock_engine_cls.create.call_args.args[0]
        assert config.db_path == "/tmp/x.db"
        assert config.model_spec == "ollama:qwen"
        assert config.scheduler_interval_seconds == 3.0

    def test_invalid_interval(self, mock_engine_cls):
        assert main.main(["--interval", "0"]) == 2
        mock_engine_cls.create.assert_not_called()

    def test_foreground_scheduler(self, mock_engine_cls):
        engine = mock_engine_cls.create.return_value
        engine.get_status.return_value = {
            "total_runs": 3, "succeeded": 3, "failed": 0, "skipped": 0,
        }

        with patch("main.signal.signal") as mock_signal:
            assert main.main([]) == 0

        engine.start_scheduler.assert_called_once_with(blocking=True)
        assert mock_signal.call_count == 2
