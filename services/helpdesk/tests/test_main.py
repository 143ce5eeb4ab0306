"""Tests for the process entrypoint."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import pytest

from services.common.config import RequiredFieldError
from services.helpdesk import main as entrypoint


class TestMain:
    """main() loads configuration before starting the bot."""

    @pytest.fixture(autouse=True)
    def quiet_logging(self):
        with patch.object(entrypoint, "configure_logging") as configure:
            yield configure

    @pytest.mark.unit
    def test_config_error_exits_nonzero(self):
        """Test that configuration errors exit with status 1."""
        run_bot = AsyncMock()
        with (
            patch.object(entrypoint, "load_config", side_effect=RequiredFieldError("token", "DISCORD_BOT_TOKEN")),
            patch.object(entrypoint, "run_bot", run_bot),
            pytest.raises(SystemExit) as exc_info,
        ):
            entrypoint.main()

        assert exc_info.value.code == 1
        run_bot.assert_not_called()

    @pytest.mark.unit
    def test_runs_bot_with_loaded_config(self, quiet_logging):
        """Test normal startup."""
        config = SimpleNamespace(
            logging=SimpleNamespace(level="DEBUG", json_logs=False, service_name="helpdesk", full_tracebacks=True),
            discord=SimpleNamespace(review_channel_id=4242),
        )
        run_bot = AsyncMock()
        with (
            patch.object(entrypoint, "load_config", return_value=config),
            patch.object(entrypoint, "run_bot", run_bot),
        ):
            entrypoint.main()

        run_bot.assert_awaited_once_with(config)
        quiet_logging.assert_called_with(
            "DEBUG", json_logs=False, service_name="helpdesk", full_tracebacks=True
        )
