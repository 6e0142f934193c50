"""
Tests for the command-line interface.
"""

import json
from unittest.mock import patch

import pytest
from agencyrank import __version__
from agencyrank.app import main
from agencyrank.errors import TransientError
from agencyrank.fallback import degraded_fallback
from agencyrank.history import ChangeHistory
from agencyrank.models import ChangePoint, RankedResult

from conftest import FakeClient, make_agencies


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    for key in ("AGENCYRANK_CAP", "AGENCYRANK_CONCURRENCY", "AGENCYRANK_BASE_URL", "AGENCYRANK_LOG_LEVEL"):
        monkeypatch.delenv(key, raising=False)


class TestRankCommand:
    def test_prints_table(self, capsys):
        fake = FakeClient(
            agencies=make_agencies("a", "b"),
            word_counts={"a": 1000, "b": TransientError("down")},
            change_counts={"a": 5, "b": 20},
        )
        with patch("agencyrank.engine.MetricsClient", return_value=fake):
            main(["rank", "--cap", "2", "--concurrency", "1"])

        out = capsys.readouterr().out
        lines = out.splitlines()
        assert "Agency A" in lines[1]
        assert "1,005" in lines[1]
        assert lines[2].endswith(" *")
        assert "counted as 0" in out

    def test_json_output(self, capsys):
        fake = FakeClient(agencies=make_agencies("epa"), word_counts={"epa": 500000}, change_counts={"epa": 8})
        with patch("agencyrank.engine.MetricsClient", return_value=fake):
            main(["rank", "--json"])

        data = json.loads(capsys.readouterr().out)
        assert data["degraded"] is False
        assert data["records"][0]["score"] == 500008

    def test_fallback_warning(self, capsys):
        with patch("agencyrank.app.compute_ranking", return_value=degraded_fallback()):
            main(["rank"])

        out = capsys.readouterr().out
        assert out.startswith("[warn] Could not compute bureaucracy ranking")
        assert "620,000" in out

    def test_cli_overrides_passed_through(self):
        with patch("agencyrank.app.compute_ranking", return_value=degraded_fallback()) as compute:
            main(["rank", "--cap", "7", "--concurrency", "3", "--base-url", "https://ecfr.test"])

        settings = compute.call_args.kwargs["settings"]
        assert (settings.cap, settings.concurrency, settings.base_url) == (7, 3, "https://ecfr.test")

    def test_invalid_concurrency_exits(self):
        with pytest.raises(SystemExit, match="concurrency"):
            main(["rank", "--concurrency", "0"])

    def test_invalid_log_level_exits(self, monkeypatch):
        monkeypatch.setenv("AGENCYRANK_LOG_LEVEL", "verbose")
        with pytest.raises(SystemExit, match="Invalid configuration: log_level"):
            main(["agencies"])

    def test_metrics_logged_with_json(self, capsys, quiet_logger):
        fake = FakeClient(agencies=make_agencies("epa"), word_counts={"epa": 10})
        with patch("agencyrank.engine.MetricsClient", return_value=fake), \
                patch.object(quiet_logger, "log_metrics_summary") as summary:
            main(["rank", "--json", "--metrics"])

        summary.assert_called_once()
        assert json.loads(capsys.readouterr().out)["records"][0]["score"] == 10

    def test_metrics_logged_for_empty_ranking(self, capsys, quiet_logger):
        with patch("agencyrank.app.compute_ranking", return_value=RankedResult()), \
                patch.object(quiet_logger, "log_metrics_summary") as summary:
            main(["rank", "--metrics"])

        summary.assert_called_once()
        assert "No agencies returned." in capsys.readouterr().out

    def test_cancelled_warning(self, capsys):
        with patch("agencyrank.app.compute_ranking", return_value=RankedResult(cancelled=True)):
            main(["rank"])

        assert "[warn] Run cancelled" in capsys.readouterr().out


class TestAgenciesCommand:
    def test_lists_agencies(self, capsys):
        fake = FakeClient(agencies=make_agencies("a", "b", "c"))
        with patch("agencyrank.app._client", return_value=_Managed(fake)):
            main(["agencies", "--limit", "2"])

        out = capsys.readouterr().out
        assert "Found 2 agencies" in out
        assert "Agency C" not in out

    def test_listing_failure_exits(self):
        fake = FakeClient(listing_error=TransientError("down"))
        with patch("agencyrank.app._client", return_value=_Managed(fake)):
            with pytest.raises(SystemExit, match="Could not list agencies"):
                main(["agencies"])


class TestWordCountCommand:
    def test_prints_count(self, capsys):
        fake = FakeClient(word_counts={"epa": 500000})
        with patch("agencyrank.app._client", return_value=_Managed(fake)):
            main(["wordcount", "--agency", "epa"])

        assert capsys.readouterr().out.strip() == "Word count for epa: 500,000"
        assert fake.calls == [("word", "epa")]
        assert fake.closed

    def test_failure_exits(self):
        fake = FakeClient(word_counts={"epa": TransientError("down")})
        with patch("agencyrank.app._client", return_value=_Managed(fake)):
            with pytest.raises(SystemExit, match="Could not fetch word count for epa"):
                main(["wordcount", "--agency", "epa"])


class TestChangesCommand:
    def test_prints_series(self, capsys):
        history = ChangeHistory("epa", "1year", (ChangePoint("2024-01-01", 3), ChangePoint("2024-01-02", 5)))
        with patch("agencyrank.app.load_change_history", return_value=history), \
                patch("agencyrank.app._client", return_value=_Managed(FakeClient())):
            main(["changes", "--agency", "epa"])

        out = capsys.readouterr().out
        assert "Changes for epa (1year)" in out
        assert "Total: 8" in out

    def test_query_across_agencies(self, capsys):
        history = ChangeHistory(None, "1year", (ChangePoint("2024-01-01", 4),), query="climate")
        with patch("agencyrank.app.load_change_history", return_value=history) as load, \
                patch("agencyrank.app._client", return_value=_Managed(FakeClient())):
            main(["changes", "--query", "climate"])

        assert load.call_args.args[1:] == (None, "1year")
        assert load.call_args.kwargs["query"] == "climate"
        out = capsys.readouterr().out
        assert 'Changes for "climate" (1year)' in out
        assert "Total: 4" in out

    def test_needs_agency_or_query(self):
        with pytest.raises(SystemExit, match="--agency, --query"):
            main(["changes"])

    def test_degraded_warning(self, capsys):
        history = ChangeHistory("epa", "all", (ChangePoint("2024-01-01", 10),), degraded=True)
        with patch("agencyrank.app.load_change_history", return_value=history), \
                patch("agencyrank.app._client", return_value=_Managed(FakeClient())):
            main(["changes", "--agency", "epa", "--range", "all"])

        assert "[warn]" in capsys.readouterr().out


class TestMisc:
    def test_version(self, capsys):
        main(["--version"])
        assert capsys.readouterr().out.strip() == __version__


class _Managed:
    """Context-manager wrapper so a FakeClient can stand in for MetricsClient."""

    def __init__(self, client):
        self.client = client

    def __enter__(self):
        return self.client

    def __exit__(self, *exc_info):
        self.client.close()
