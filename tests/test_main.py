"""
Tests for the command-line entry point (in-memory store only).

Run with: pytest tests/test_main.py -v
"""

import json

from main import main, parse_args


class TestParseArgs:
    def test_defaults(self):
        args = parse_args([])
        assert args.categories == []
        assert args.sort == "popularity"
        assert args.chunk_size == 450
        assert not args.memory

    def test_ingest_options(self):
        args = parse_args(["--ingest", "feed.json", "-c", "dresses", "--variant", "curvy"])
        assert args.ingest == "feed.json"
        assert args.categories == ["dresses"]
        assert args.variant == "curvy"


class TestMain:
    def test_memory_ingest_and_show(self, tmp_path, raw_row):
        path = tmp_path / "feed.json"
        path.write_text(json.dumps([raw_row]), encoding="utf-8")

        code = main(
            ["--memory", "--no-log-file", "--ingest", str(path), "-c", "dresses", "--show", "--stats"]
        )
        assert code == 0

    def test_unknown_category(self):
        assert main(["--memory", "--no-log-file", "--show", "-c", "shoes"]) == 2

    def test_invalid_upload(self, tmp_path):
        path = tmp_path / "feed.json"
        path.write_text('{"not": "an array"}', encoding="utf-8")
        assert main(["--memory", "--no-log-file", "--ingest", str(path), "-c", "dresses"]) == 1

    def test_invalid_chunk_size(self):
        assert main(["--memory", "--no-log-file", "--show", "--chunk-size", "0"]) == 2

    def test_nothing_to_do(self):
        assert main(["--memory", "--no-log-file"]) == 0
