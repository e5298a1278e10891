"""Tests for command line helpers."""

import io
import json
import logging

import pytest
from unittest.mock import AsyncMock, patch

from newscast.__main__ import JSONFormatter, _read_multiline, cmd_delete, cmd_publish, main


class TestJSONFormatter:
    """Tests for structured log output."""

    def test_format(self):
        record = logging.LogRecord(
            "newscast.server.driver", logging.INFO, __file__, 1, "Loaded %d articles", (3,), None
        )

        data = json.loads(JSONFormatter().format(record))

        assert data["level"] == "INFO"
        assert data["component"] == "newscast.server.driver"
        assert data["message"] == "Loaded 3 articles"


class TestReadMultiline:
    """Tests for interactive article entry."""

    def test_stops_at_done(self, monkeypatch):
        monkeypatch.setattr("sys.stdin", io.StringIO("first line\nsecond line\ndone\nignored\n"))

        assert _read_multiline("Enter the content:") == "first line\nsecond line"

    def test_stops_at_eof(self, monkeypatch):
        monkeypatch.setattr("sys.stdin", io.StringIO("only line\n"))

        assert _read_multiline("Enter the content:") == "only line"


class TestCommands:
    """Tests for operator subcommands."""

    @pytest.mark.asyncio
    async def test_publish(self, capsys):
        args = type("Args", (), {"config": None, "api_url": None, "headline": "A", "content": "alpha"})()
        result = {
            "article": {"id": "1", "headline": "A", "content": "alpha", "timestamp": ""},
            "persisted": True,
            "broadcast": True,
        }

        with patch("newscast.__main__.OperatorClient.publish", new=AsyncMock(return_value=result)):
            assert await cmd_publish(args) == 0

        out = capsys.readouterr().out
        assert "Article 1 created: A" in out
        assert "Article sent to all clients!" in out

    @pytest.mark.asyncio
    async def test_delete_unknown(self, capsys):
        args = type("Args", (), {"config": None, "api_url": "http://server:8080", "article_id": "9"})()

        with patch("newscast.__main__.OperatorClient.delete", new=AsyncMock(return_value=False)):
            assert await cmd_delete(args) == 1

        assert "Article not found." in capsys.readouterr().out

    def test_no_command_prints_help(self, monkeypatch):
        monkeypatch.setattr("sys.argv", ["newscast"])

        assert main() == 1
