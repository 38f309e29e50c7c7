"""Terminal client over the offline sample catalog."""

from pathlib import Path

import cli_search

ROOT = Path(__file__).resolve().parent.parent


def test_batch_queries_skip_blank_lines(tmp_path):
    batch = tmp_path / "queries.txt"
    batch.write_text("samsung galaxy s25\n\n  washing machine  \n", encoding="utf-8")

    assert list(cli_search.batch_queries(batch)) == ["samsung galaxy s25", "washing machine"]


def test_sample_search_prints_ranked_rows(monkeypatch, capsys):
    monkeypatch.chdir(ROOT)

    assert cli_search.main(["--sample", "samsung galaxy s25"]) == 0

    out = capsys.readouterr().out
    assert "Query: samsung galaxy s25 | category: mobile_phones" in out
    assert " 01. score=" in out
    assert "Galaxy S25" in out


def test_blank_query_prints_error(monkeypatch, capsys):
    monkeypatch.chdir(ROOT)

    cli_search.main(["--sample", "   "])

    assert "Search query is required" in capsys.readouterr().out
