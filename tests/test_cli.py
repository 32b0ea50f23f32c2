"""
Tests for the CLI interface.
"""
import json
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, call, patch

import pytest
from typer.testing import CliRunner

from claude_pulse.cli.main import app, EXIT_CODE_OK, EXIT_CODE_ERROR
from claude_pulse.config.loader import Theme, load_settings
from tests.test_parser import make_entry

runner = CliRunner()


def _iso(moment: datetime) -> str:
    return moment.strftime("%Y-%m-%dT%H:%M:%S.%fZ")


@pytest.fixture
def corpus(tmp_path):
    """Create a small corpus with recent activity."""
    now = datetime.now(timezone.utc)
    shard = tmp_path / "projects" / "my-project" / "session.jsonl"
    shard.parent.mkdir(parents=True)
    lines = [
        make_entry("req_001", output_tokens=100, timestamp=_iso(now - timedelta(minutes=10))),
        make_entry("req_001", output_tokens=100, timestamp=_iso(now - timedelta(minutes=10))),
        make_entry("req_002", output_tokens=200, timestamp=_iso(now - timedelta(minutes=5)),
                   model="claude-opus-4-6"),
        json.dumps({"type": "user", "timestamp": _iso(now)}),
    ]
    shard.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return tmp_path / "projects"


@pytest.fixture
def settings_path(tmp_path):
    return tmp_path / "settings.yaml"


class TestSnapshotCommand:
    """Test the snapshot command."""

    def test_json_output(self, corpus, settings_path):
        """JSON output reflects deduplicated records."""
        result = runner.invoke(app, [
            "snapshot", "--root", str(corpus), "--settings", str(settings_path), "--json",
        ])

        assert result.exit_code == EXIT_CODE_OK
        data = json.loads(result.output)
        assert data["window"]["message_count"] == 2
        assert data["window"]["session_count"] == 1
        assert data["window"]["total_output_tokens"] == 300
        assert [m["model"] for m in data["models"]] == [
            "claude-opus-4-6", "claude-sonnet-4-5-20250929",
        ]

    def test_rendered_output(self, corpus, settings_path):
        """The default view renders window, week and model sections."""
        result = runner.invoke(app, [
            "snapshot", "--root", str(corpus), "--settings", str(settings_path),
        ])

        assert result.exit_code == EXIT_CODE_OK
        assert "Rolling Window" in result.output
        assert "This Week" in result.output
        assert "Opus 4.6" in result.output

    def test_usage_meter_shown_with_limit(self, corpus, settings_path):
        """A configured usage limit adds a meter to the window section."""
        settings_path.write_text("usage_limit_tokens: 1000\n", encoding="utf-8")
        cached = json.loads(make_entry(
            "req_003", output_tokens=0,
            timestamp=_iso(datetime.now(timezone.utc) - timedelta(minutes=1)),
        ))
        cached["message"]["usage"]["cache_read_input_tokens"] = 400
        cached["message"]["usage"]["cache_creation_input_tokens"] = 100
        (corpus / "my-project" / "cached.jsonl").write_text(json.dumps(cached) + "\n", encoding="utf-8")

        result = runner.invoke(app, [
            "snapshot", "--root", str(corpus), "--settings", str(settings_path),
        ])

        assert result.exit_code == EXIT_CODE_OK
        # 30 input + 300 output + 400 cache read + 100 cache write of 1,000
        assert "(83%)" in result.output

    def test_window_hours_override(self, corpus, settings_path):
        """--window-hours narrows the rolling window."""
        result = runner.invoke(app, [
            "snapshot", "--root", str(corpus), "--settings", str(settings_path),
            "--json", "--window-hours", "0.1",
        ])

        data = json.loads(result.output)
        assert data["window"]["message_count"] == 1

    def test_invalid_window_hours(self, corpus, settings_path):
        """Non-positive window lengths are rejected."""
        result = runner.invoke(app, [
            "snapshot", "--root", str(corpus), "--settings", str(settings_path),
            "--window-hours", "0",
        ])

        assert result.exit_code == EXIT_CODE_ERROR

    @pytest.mark.parametrize("hours", ["inf", "nan"])
    def test_non_finite_window_hours(self, corpus, settings_path, hours):
        """Infinite or NaN window lengths are rejected before aggregation."""
        result = runner.invoke(app, [
            "snapshot", "--root", str(corpus), "--settings", str(settings_path),
            "--window-hours", hours,
        ])

        assert result.exit_code == EXIT_CODE_ERROR
        assert "finite" in result.output

    def test_empty_corpus(self, tmp_path, settings_path):
        """A missing corpus is reported, not treated as an error."""
        result = runner.invoke(app, [
            "snapshot", "--root", str(tmp_path / "missing"), "--settings", str(settings_path),
        ])

        assert result.exit_code == EXIT_CODE_OK
        assert "No usage data found" in result.output

    def test_bad_settings_file(self, corpus, settings_path):
        """An invalid settings file exits with an error."""
        settings_path.write_text("window_hours: -1\n", encoding="utf-8")

        result = runner.invoke(app, [
            "snapshot", "--root", str(corpus), "--settings", str(settings_path),
        ])

        assert result.exit_code == EXIT_CODE_ERROR
        assert "Error loading settings" in result.output


class TestWatchCommand:
    """Test the watch command."""

    def test_renders_then_stops_on_interrupt(self, corpus, settings_path):
        """Watch renders a snapshot and exits cleanly on Ctrl-C."""
        watcher = MagicMock()
        watcher.get.side_effect = KeyboardInterrupt
        with patch("claude_pulse.cli.main.ShardWatcher") as watcher_class:
            watcher_class.return_value.__enter__.return_value = watcher
            result = runner.invoke(app, [
                "watch", "--root", str(corpus), "--settings", str(settings_path),
            ])

        assert result.exit_code == EXIT_CODE_OK
        assert "Rolling Window" in result.output
        assert "Stopped watching" in result.output
        watcher.get.assert_called_once_with(timeout=180)

    def test_burst_of_changes_renders_once(self, corpus, settings_path):
        """Events queued while rendering are drained into a single re-render."""
        watcher = MagicMock()
        change = MagicMock()
        watcher.get.side_effect = [change, change, None, KeyboardInterrupt]
        with patch("claude_pulse.cli.main.ShardWatcher") as watcher_class, \
                patch("claude_pulse.cli.main._display_snapshot") as display:
            watcher_class.return_value.__enter__.return_value = watcher
            result = runner.invoke(app, [
                "watch", "--root", str(corpus), "--settings", str(settings_path),
            ])

        assert result.exit_code == EXIT_CODE_OK
        assert display.call_count == 2
        assert watcher.get.call_args_list == [
            call(timeout=180), call(timeout=0), call(timeout=0), call(timeout=180),
        ]


class TestSettingsCommands:
    """Test settings show/set."""

    def test_set_then_show(self, settings_path):
        """Settings written by set are shown and persisted."""
        result = runner.invoke(app, [
            "settings", "set", "--settings", str(settings_path),
            "--window-hours", "3", "--theme", "dark", "--usage-limit", "5000",
        ])

        assert result.exit_code == EXIT_CODE_OK
        saved = load_settings(settings_path)
        assert saved.window_hours == 3.0
        assert saved.theme == Theme.DARK
        assert saved.usage_limit_tokens == 5000

        shown = runner.invoke(app, ["settings", "show", "--settings", str(settings_path)])
        assert shown.exit_code == EXIT_CODE_OK
        assert "window_hours" in shown.output
        assert "dark" in shown.output

    def test_usage_limit_zero_clears(self, settings_path):
        """--usage-limit 0 removes the limit."""
        settings_path.write_text("usage_limit_tokens: 100\n", encoding="utf-8")

        result = runner.invoke(app, [
            "settings", "set", "--settings", str(settings_path), "--usage-limit", "0",
        ])

        assert result.exit_code == EXIT_CODE_OK
        assert load_settings(settings_path).usage_limit_tokens is None

    def test_invalid_value_rejected(self, settings_path):
        """Invalid values are reported and nothing is written."""
        result = runner.invoke(app, [
            "settings", "set", "--settings", str(settings_path), "--theme", "neon",
        ])

        assert result.exit_code == EXIT_CODE_ERROR
        assert not settings_path.exists()

    def test_rejects_infinite_window(self, settings_path):
        """settings set refuses a non-finite window length."""
        result = runner.invoke(app, [
            "settings", "set", "--settings", str(settings_path), "--window-hours", "inf",
        ])

        assert result.exit_code == EXIT_CODE_ERROR
        assert not settings_path.exists()
