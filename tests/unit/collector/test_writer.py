# tests/unit/collector/test_writer.py
"""Tests for collector batch parsing, line formatting and the log file writer."""

import json
import threading
from pathlib import Path

import pytest

from llm_debugger.collector.writer import LogFileWriter, format_entry, parse_batch

TS = "2025-01-01T12:00:00.000Z"


# =============================================================================
# format_entry
# =============================================================================


class TestFormatEntry:
    def test_console_entry(self) -> None:
        line = format_entry({"timestamp": TS, "type": "console", "level": "ERROR", "message": "Something broke"})

        assert line == f"[{TS}] ERROR: Something broke"

    def test_level_defaults_to_debug(self) -> None:
        assert format_entry({"timestamp": TS, "message": "plain"}) == f"[{TS}] DEBUG: plain"

    def test_missing_timestamp(self) -> None:
        assert format_entry({"message": "bare"}) == "[] DEBUG: bare"

    def test_network_response_with_body(self) -> None:
        line = format_entry(
            {
                "timestamp": TS,
                "type": "network",
                "subType": "fetch_response",
                "method": "get",
                "url": "http://api/x",
                "status": 200,
                "body": {"ok": True},
            }
        )

        assert line == f'[{TS}] NETWORK: GET http://api/x -> 200 {{"ok":true}}'

    def test_network_request(self) -> None:
        line = format_entry(
            {
                "timestamp": TS,
                "type": "network",
                "subType": "fetch_request",
                "method": "POST",
                "url": "http://api/x",
                "requestBody": "[Body type: bytes]",
            }
        )

        assert line == f"[{TS}] NETWORK: POST http://api/x [Body type: bytes]"

    def test_network_error(self) -> None:
        line = format_entry(
            {"timestamp": TS, "type": "network", "subType": "fetch_error", "method": "GET", "url": "http://api/x", "error": "refused"}
        )

        assert line == f"[{TS}] NETWORK: GET http://api/x failed: refused"

    def test_resource_check(self) -> None:
        line = format_entry(
            {"timestamp": TS, "type": "resourceCheck", "subType": "failed", "tagName": "LINK", "url": "http://s/a.css", "status": 404}
        )

        assert line == f"[{TS}] RESOURCE: LINK http://s/a.css (404)"

    def test_invalid_url_resource_uses_original_url(self) -> None:
        line = format_entry(
            {
                "timestamp": TS,
                "type": "resourceCheck",
                "subType": "error",
                "tagName": "SCRIPT",
                "url": None,
                "originalUrl": "http://[x",
                "status": "Invalid URL",
                "error": "bad host",
            }
        )

        assert line == f"[{TS}] RESOURCE: SCRIPT http://[x (Invalid URL): bad host"

    def test_error_entry_with_stack(self) -> None:
        line = format_entry({"timestamp": TS, "type": "error", "message": "boom", "stack": "Traceback\n  line 1\n"})

        assert line == f"[{TS}] ERROR: boom\nTraceback\n  line 1"


# =============================================================================
# parse_batch
# =============================================================================


class TestParseBatch:
    def test_json_envelope(self) -> None:
        body = json.dumps({"messages": [{"message": "a"}, {"message": "b"}]}).encode()

        assert parse_batch(body, "application/json") == [{"message": "a"}, {"message": "b"}]

    def test_single_object(self) -> None:
        assert parse_batch(b'{"message":"only"}', "application/json") == [{"message": "only"}]

    def test_array(self) -> None:
        assert parse_batch(b'[{"message":"x"}, "raw"]', None) == [{"message": "x"}, {"message": "raw"}]

    def test_text_lines(self) -> None:
        body = b'{"message":"first"}\nnot json at all\n\n{"message":"third"}'

        assert parse_batch(body, "text/plain") == [
            {"message": "first"},
            {"message": "not json at all"},
            {"message": "third"},
        ]

    def test_empty_body(self) -> None:
        assert parse_batch(b"  ", "application/json") == []

    def test_declared_json_that_does_not_parse(self) -> None:
        with pytest.raises(ValueError):
            parse_batch(b"{broken", "application/json")


# =============================================================================
# LogFileWriter
# =============================================================================


class TestLogFileWriter:
    def test_appends_one_line_per_entry(self, tmp_path: Path) -> None:
        path = tmp_path / "nested" / "logs.txt"
        writer = LogFileWriter(path)

        assert writer.write_entries([{"timestamp": TS, "message": "a"}, {"timestamp": TS, "message": "b"}]) == 2
        writer.close()

        assert path.read_text(encoding="utf-8") == f"[{TS}] DEBUG: a\n[{TS}] DEBUG: b\n"

    def test_appends_to_existing_file(self, tmp_path: Path) -> None:
        path = tmp_path / "logs.txt"
        path.write_text("existing\n", encoding="utf-8")

        writer = LogFileWriter(path)
        writer.write_entries([{"message": "new"}])
        writer.close()

        assert path.read_text(encoding="utf-8").splitlines() == ["existing", "[] DEBUG: new"]

    def test_write_after_close_rejected(self, tmp_path: Path) -> None:
        writer = LogFileWriter(tmp_path / "logs.txt")
        writer.close()
        writer.close()

        assert writer.closed
        with pytest.raises(ValueError, match="closed"):
            writer.write_entries([{"message": "late"}])

    def test_concurrent_batches_stay_contiguous(self, tmp_path: Path) -> None:
        path = tmp_path / "logs.txt"
        writer = LogFileWriter(path)

        def write(batch_index: int) -> None:
            writer.write_entries([{"message": f"{batch_index}-{i}"} for i in range(20)])

        threads = [threading.Thread(target=write, args=(n,)) for n in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        writer.close()

        lines = path.read_text(encoding="utf-8").splitlines()
        assert len(lines) == 160
        for start in range(0, 160, 20):
            batch_ids = {line.split(": ")[1].split("-")[0] for line in lines[start : start + 20]}
            assert len(batch_ids) == 1
