"""Tests for the command-line tools."""

import base64
import json
import os
import subprocess
import sys
from pathlib import Path

import pytest

from crawlwarc.warcformat import WarcRecord, open_record_stream

ROOT = Path(__file__).parent.parent


def run_tool(module, *args, input=None):
    """Run one of the crawlwarc tools as a module."""
    env = dict(os.environ)
    env["PYTHONPATH"] = os.pathsep.join(
        p for p in (str(ROOT / "src"), env.get("PYTHONPATH")) if p
    )
    return subprocess.run(
        [sys.executable, "-m", f"crawlwarc.{module}", *args],
        capture_output=True,
        text=True,
        input=input,
        cwd=ROOT,
        env=env,
    )


@pytest.fixture
def crawl_file(tmp_path):
    """JSON lines with a response, a binary resource and a bad URL."""
    lines = [
        {
            "url": "http://example.com/page one",
            "content": "<html>Hello World</html>",
            "metadata": {
                "_response.headers_": "HTTP/1.1 200 OK\r\nContent-Type: text/html",
                "_ip_": "93.184.216.34",
            },
        },
        {
            "url": "http://example.com/logo.png",
            "content_base64": base64.b64encode(b"\x89PNG\r\n\x1a\n").decode("ascii"),
            "metadata": {"Content-Type": ["image/png"]},
        },
        {"url": "ht tp://broken", "content": "nope"},
    ]
    path = tmp_path / "crawl.jsonl"
    path.write_text("\n".join(json.dumps(line) for line in lines) + "\n", encoding="utf-8")
    return path


def test_warcwrite_help():
    result = run_tool("warcwrite", "--help")
    assert result.returncode == 0
    assert "Write crawl results" in result.stdout or "Usage:" in result.stdout


def test_warccheck_help():
    result = run_tool("warccheck", "--help")
    assert result.returncode == 0
    assert "Validate WARC files" in result.stdout or "Usage:" in result.stdout


def test_write_and_check(crawl_file, tmp_path):
    out_dir = tmp_path / "warcs"
    result = run_tool(
        "warcwrite",
        "-o",
        str(out_dir),
        "--operator",
        "tester",
        "-F",
        "description=integration test",
        str(crawl_file),
    )
    assert result.returncode == 0, result.stderr
    assert "skipping line 3" in result.stderr

    files = result.stdout.split()
    assert len(files) == 1
    path = files[0]
    assert path.endswith(".warc.gz")

    with open_record_stream(path) as stream:
        records = list(stream)
    assert [r.type for r in records] == [
        WarcRecord.WARCINFO,
        WarcRecord.RESPONSE,
        WarcRecord.RESOURCE,
    ]
    warcinfo = records[0]
    assert b"operator: tester\r\n" in warcinfo.content
    assert b"description: integration test\r\n" in warcinfo.content
    assert warcinfo.get_header(WarcRecord.FILENAME) == os.path.basename(path).encode("ascii")
    assert records[1].url == b"http://example.com/page%20one"
    assert records[1].get_header(WarcRecord.IP_ADDRESS) == b"93.184.216.34"
    assert records[2].content == b"\x89PNG\r\n\x1a\n"
    assert records[2].content_type == b"image/png"

    check = run_tool("warccheck", "-v", path)
    assert check.returncode == 0, check.stderr
    assert "resource" in check.stdout


def test_fail_on_invalid(crawl_file, tmp_path):
    result = run_tool(
        "warcwrite", "-o", str(tmp_path / "warcs"), "--fail-on-invalid", str(crawl_file)
    )
    assert result.returncode != 0
    assert "line 3" in result.stderr


def test_rotation_from_cli(crawl_file, tmp_path):
    result = run_tool(
        "warcwrite",
        "-o",
        str(tmp_path / "warcs"),
        "--no-gzip",
        "--max-size",
        "1",
        "--no-warcinfo",
        str(crawl_file),
    )
    assert result.returncode == 0, result.stderr
    files = result.stdout.split()
    assert len(files) == 2
    for path in files:
        with open(path, "rb") as f:
            assert f.read(10) == b"WARC/1.0\r\n"


def test_warccheck_detects_bad_length(tmp_path):
    record = (
        b"WARC/1.0\r\n"
        b"WARC-Record-ID: <urn:uuid:00000000-0000-0000-0000-000000000001>\r\n"
        b"Content-Length: 5\r\n"
        b"WARC-Date: 2024-03-01T12:00:05Z\r\n"
        b"WARC-Type: resource\r\n"
        b"WARC-Target-URI: http://example.com/\r\n"
        b"Content-Type: text/plain\r\n"
        b"\r\n"
        b"abc\r\n\r\n"
    )
    path = tmp_path / "bad.warc"
    path.write_bytes(record)

    result = run_tool("warccheck", str(path))
    assert result.returncode == 1
    assert "warc errors" in result.stderr


def test_badly_typed_results_are_skipped(tmp_path):
    lines = [
        {"url": "http://example.com/ip", "metadata": {"_ip_": 1234}},
        {"url": 5, "content": "x"},
        {"url": "http://example.com/list", "metadata": [1, 2]},
        {"url": "http://example.com/values", "metadata": {"Content-Type": ["text/html", None]}},
        {"url": "http://example.com/b64", "content_base64": 7},
        {"url": "http://example.com/ok", "content": "fine", "metadata": {"Content-Type": "text/plain"}},
    ]
    path = tmp_path / "crawl.jsonl"
    path.write_text("\n".join(json.dumps(line) for line in lines) + "\n", encoding="utf-8")

    result = run_tool("warcwrite", "-o", str(tmp_path / "warcs"), "--no-warcinfo", str(path))
    assert result.returncode == 0, result.stderr
    for lineno in range(1, 6):
        assert f"skipping line {lineno}:" in result.stderr

    (warc,) = result.stdout.split()
    with open_record_stream(warc) as stream:
        (record,) = list(stream)
    assert record.url == b"http://example.com/ok"
