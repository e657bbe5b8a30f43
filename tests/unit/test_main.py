"""
Unit tests for main.py - the command line interface.
"""
import sys

import polars as pl
import pytest

from core.schemas import load_payload, serialize_payload
from main import main


@pytest.fixture
def payload_file(tmp_path, redux_payload):
    path = tmp_path / "graph.json"
    path.write_bytes(serialize_payload(redux_payload))
    return path


def run_cli(monkeypatch, *argv):
    monkeypatch.setattr(sys, "argv", ["inspector", *argv])
    main()


def test_summary_embedded(monkeypatch, capsys, payload_file):
    """
    Verifies:
    - loadOffers, loadOffersSuccess and loadOffersError are folded by default
    - Counts of raw, initial and rendered graphs are printed
    """
    run_cli(monkeypatch, "summary", str(payload_file))

    out = capsys.readouterr().out
    assert "Raw nodes:       11" in out
    assert "Embedded:        yes" in out
    assert "Initial nodes:   8" in out
    assert "Rendered nodes:  8" in out


def test_summary_raw_with_view(monkeypatch, capsys, payload_file):
    run_cli(monkeypatch, "summary", str(payload_file), "--raw", "--view", "focusId=payments%2Fpay")

    out = capsys.readouterr().out
    assert "Embedded:        no" in out
    assert "Initial nodes:   11" in out
    assert "Rendered nodes:  3" in out
    assert "Focus:           payments/pay" in out


def test_export_csv(monkeypatch, payload_file, tmp_path):
    out_dir = tmp_path / "export"

    run_cli(monkeypatch, "export", str(payload_file), "--output", str(out_dir), "--format", "csv")

    assert pl.read_csv(out_dir / "nodes.csv").height == 8
    assert (out_dir / "edges.csv").exists()


def test_export_json_reloads(monkeypatch, payload_file, tmp_path):
    out_dir = tmp_path / "export"

    run_cli(monkeypatch, "export", str(payload_file), "--output", str(out_dir), "--format", "json")

    reloaded = load_payload(out_dir / "graph.json")
    assert len(reloaded.nodes) == 8
    assert "booking/loadOffers" not in reloaded.nodes


def test_check_valid_graph(monkeypatch, capsys, payload_file):
    run_cli(monkeypatch, "check", str(payload_file))

    assert capsys.readouterr().out.rstrip().endswith("OK")


def test_missing_payload_exits(monkeypatch, tmp_path):
    with pytest.raises(SystemExit) as exc_info:
        run_cli(monkeypatch, "summary", str(tmp_path / "absent.json"))

    assert exc_info.value.code == 1


def test_invalid_payload_exits(monkeypatch, tmp_path):
    path = tmp_path / "bad.json"
    path.write_text('{"nodes": {"a": {"type": "widget", "name": "a"}}}', encoding="utf-8")

    with pytest.raises(SystemExit) as exc_info:
        run_cli(monkeypatch, "check", str(path))

    assert exc_info.value.code == 1


def test_no_command_prints_help(monkeypatch, capsys):
    with pytest.raises(SystemExit) as exc_info:
        run_cli(monkeypatch)

    assert exc_info.value.code == 2
    assert "summary" in capsys.readouterr().out
