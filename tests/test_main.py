"""Tests for the command-line entry point."""

import sys

import pytest

import main
from clinic_scheduler.schemas.resource_schema import Resource


def _run(monkeypatch, capsys, *argv):
    monkeypatch.setattr(sys, "argv", ["main.py", *argv])
    main.main()
    return capsys.readouterr().out


class TestCommands:
    def test_grid(self, monkeypatch, capsys):
        out = _run(monkeypatch, capsys, "grid", "--resource", "room:R1", "--date", "2024-06-01")
        assert "09:00-10:00  BUSY" in out
        assert "10/12 slots free" in out

    def test_check_conflict(self, monkeypatch, capsys):
        out = _run(
            monkeypatch, capsys,
            "check", "--resource", "doctor:D1", "--start", "2024-06-01T14:30+00:00",
        )
        assert "NOT available" in out
        assert "conflicts with BK-" in out

    def test_check_back_to_back(self, monkeypatch, capsys):
        out = _run(
            monkeypatch, capsys,
            "check", "--resource", "doctor:D1", "--start", "2024-06-01T15:00+00:00",
        )
        assert ": available" in out

    def test_demo(self, monkeypatch, capsys):
        out = _run(monkeypatch, capsys, "demo")
        assert "Submit 14:00 -> rejected (slot_conflict)" in out
        assert "Submit 15:00 -> committed" in out

    def test_unknown_resource_exits(self, monkeypatch, capsys):
        with pytest.raises(SystemExit) as excinfo:
            _run(monkeypatch, capsys, "grid", "--resource", "room:R404")
        assert excinfo.value.code == 1

    def test_bad_resource_syntax(self, monkeypatch, capsys):
        with pytest.raises(SystemExit) as excinfo:
            _run(monkeypatch, capsys, "grid", "--resource", "nurse:N1")
        assert excinfo.value.code == 2


class TestFormatGrid:
    def test_counts_free_slots(self):
        service = main.SchedulingService(main.build_demo_store(), clock=lambda: main.DEMO_NOW)
        text = main.format_grid(service.get_slot_grid(Resource.doctor("D1"), main.DEMO_DAY))
        assert text.splitlines()[0] == "doctor:D1 on 2024-06-01"
        assert "14:00-15:00  BUSY" in text
