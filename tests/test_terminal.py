"""
Unit tests for local terminal helpers and the progress spinner.
"""

import io
from unittest.mock import MagicMock, patch

from mlogin.terminal import LocalTerminal, Progress


class TestLocalTerminal:
    """Test the LocalTerminal class."""

    def test_write_local_uses_crlf(self):
        stdout = MagicMock()
        terminal = LocalTerminal(stdin=io.StringIO(), stdout=stdout)

        terminal.write_local("job: abc\nescape: ~\n")

        stdout.buffer.write.assert_called_once_with(b"job: abc\r\nescape: ~\r\n")
        stdout.flush.assert_called_once()

    def test_raw_mode_skipped_without_tty(self):
        terminal = LocalTerminal(stdin=io.StringIO(), stdout=MagicMock())
        assert not terminal.isatty()

        terminal.enter_raw_mode()
        terminal.restore()

    def test_term_falls_back(self, monkeypatch):
        monkeypatch.delenv("TERM", raising=False)
        assert LocalTerminal(stdin=io.StringIO()).term() == "xterm"
        monkeypatch.setenv("TERM", "screen-256color")
        assert LocalTerminal(stdin=io.StringIO()).term() == "screen-256color"


class TestProgress:
    """Test the progress spinner."""

    @patch("mlogin.terminal.typer.echo")
    def test_spinner_cleared_on_finish(self, mock_echo):
        progress = Progress(label="waiting")
        progress.advance()
        progress.advance()
        progress.finish()

        assert mock_echo.call_count == 3
        assert mock_echo.call_args_list[0][0][0] == "\rwaiting |"
        assert mock_echo.call_args_list[1][0][0] == "\rwaiting /"

    @patch("mlogin.terminal.typer.echo")
    def test_disabled_is_silent(self, mock_echo):
        progress = Progress(enabled=False)
        progress.advance()
        progress.finish()
        mock_echo.assert_not_called()

    @patch("mlogin.terminal.typer.echo")
    def test_finish_without_advance_is_silent(self, mock_echo):
        Progress().finish()
        mock_echo.assert_not_called()

