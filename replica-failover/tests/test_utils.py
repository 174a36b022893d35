"""Tests for result types, report formatting and persistence."""

import json

from probe_errors import ProbeConnectionError
from utils import (
    ProbeOutcome,
    ReplicationPosition,
    SelectionResult,
    format_bytes,
    format_selection_report,
    save_selection_to_file,
)


def _result(make_endpoint) -> SelectionResult:
    a, b, c = make_endpoint("A"), make_endpoint("B"), make_endpoint("C")
    outcomes = [
        ProbeOutcome.success(a, ReplicationPosition(500, 500)),
        ProbeOutcome.success(b, ReplicationPosition(800, 790)),
        ProbeOutcome.failure(c, ProbeConnectionError("connection refused", stage="connect")),
    ]
    return SelectionResult(candidate=b, position=outcomes[1].position, outcomes=outcomes, candidate_index=1)


class TestReplicationPosition:
    def test_replay_backlog(self) -> None:
        assert ReplicationPosition(800, 790).replay_backlog == 10
        assert ReplicationPosition(100, 200).replay_backlog == 0

    def test_replay_ahead_is_warned(self, make_endpoint) -> None:
        outcome = ProbeOutcome.success(make_endpoint(), ReplicationPosition(100, 200))
        assert outcome.position.is_consistent is False
        assert len(outcome.warnings()) == 1


class TestFormatting:
    def test_format_bytes(self) -> None:
        assert format_bytes(None) == "N/A"
        assert format_bytes(10) == "10 B"
        assert format_bytes(2048) == "2.00 KB"
        assert format_bytes(3 * 1024 * 1024) == "3.00 MB"
        assert format_bytes(5 * 1024 ** 4) == "5.00 TB"
        assert format_bytes(-300) == "-300 B"
        assert format_bytes(-2048) == "-2.00 KB"

    def test_report_keeps_duplicate_endpoint(self, make_endpoint) -> None:
        """The same endpoint listed twice is reported against the winner by position in the list."""
        a = make_endpoint("A")
        outcomes = [
            ProbeOutcome.success(a, ReplicationPosition(500, 500)),
            ProbeOutcome.success(a, ReplicationPosition(800, 800)),
        ]
        result = SelectionResult(candidate=a, position=outcomes[1].position, outcomes=outcomes, candidate_index=1)

        report = format_selection_report(result)

        assert "A is 300 B behind" in report
        assert "A is 0 B behind" not in report

    def test_report_lists_every_endpoint(self, make_endpoint) -> None:
        report = format_selection_report(_result(make_endpoint))
        assert "Replicas probed: 3 (2 ok, 1 failed)" in report
        assert "✓ A: receive location=500 replay location=500" in report
        assert "✗ C: connection error during connect: connection refused" in report
        assert "Selected replica: B" in report
        assert "A is 300 B behind" in report

    def test_report_without_candidate(self, make_endpoint) -> None:
        outcome = ProbeOutcome.failure(make_endpoint("A"), ProbeConnectionError("refused"))
        report = format_selection_report(SelectionResult(candidate=None, outcomes=[outcome]))
        assert "NO CANDIDATE" in report


class TestSaveSelection:
    def test_appends_json_lines(self, make_endpoint, tmp_path) -> None:
        result = _result(make_endpoint)
        filepath = tmp_path / "logs" / "selection.jsonl"

        save_selection_to_file(result, filepath)
        save_selection_to_file(result, filepath)

        lines = filepath.read_text().splitlines()
        assert len(lines) == 2
        record = json.loads(lines[0])
        assert record["candidate"] == "B"
        assert record["receive_offset"] == 800
        assert record["outcomes"][2]["error_kind"] == "connection"
        assert record["outcomes"][2]["succeeded"] is False

    def test_passwords_not_written(self, make_endpoint, tmp_path) -> None:
        result = _result(make_endpoint)
        filepath = tmp_path / "selection.jsonl"

        save_selection_to_file(result, filepath)

        content = filepath.read_text()
        for outcome in result.outcomes:
            assert outcome.endpoint.password not in content
