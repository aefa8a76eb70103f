"""Tests for the rotating WARC writer."""

import gzip
import os
from datetime import datetime, timezone
from types import MappingProxyType

import pytest

from crawlwarc.warcformat import (
    BoundaryConfig,
    ConfigurationError,
    CrawlResult,
    EncodingError,
    FileBoundaryPolicy,
    FixedProvider,
    InvalidInputError,
    RotatingWarcWriter,
    WarcRecord,
    WarcRecordFormat,
    open_record_stream,
)
from crawlwarc.warcformat import storage

INSTANT = datetime(2024, 3, 1, 12, 0, 5, tzinfo=timezone.utc)


@pytest.fixture
def policy():
    config = BoundaryConfig.create(
        warc_fields={"operator": "test", "software": "crawlwarc"},
        optional_header_fields={"WARC-Filename": None},
    )
    return FileBoundaryPolicy(config, FixedProvider(INSTANT))


def sample_results(n, content=b"<html>hello</html>"):
    return [
        CrawlResult(
            f"http://example.com/page{i}",
            content,
            {"_response.headers_": "HTTP/1.1 200 OK\r\nContent-Type: text/html", "_ip_": "10.0.0.1"},
        )
        for i in range(n)
    ]


def read_file(path):
    with open_record_stream(path) as stream:
        return list(stream)


def test_file_starts_with_warcinfo(tmp_path, policy):
    with RotatingWarcWriter(str(tmp_path), boundary=policy) as writer:
        for result in sample_results(3):
            writer.write(result)

    assert len(writer.files) == 1
    path = writer.files[0]
    assert path.endswith(".warc.gz")

    records = read_file(path)
    assert [r.type for r in records] == [
        WarcRecord.WARCINFO,
        WarcRecord.RESPONSE,
        WarcRecord.RESPONSE,
        WarcRecord.RESPONSE,
    ]
    assert records[0].get_header(WarcRecord.FILENAME) == os.path.basename(path).encode("ascii")
    assert [r.url for r in records[1:]] == [
        b"http://example.com/page0",
        b"http://example.com/page1",
        b"http://example.com/page2",
    ]
    for record in records:
        assert record.validate() == []


def test_each_record_is_a_gzip_member(tmp_path, policy):
    with RotatingWarcWriter(str(tmp_path), boundary=policy) as writer:
        writer.write(sample_results(1)[0])

    with open(writer.files[0], "rb") as f:
        raw = f.read()
    data = gzip.decompress(raw)
    assert data.count(b"WARC/1.0\r\n") == 2
    assert os.path.getsize(writer.files[0]) == writer.bytes_written


def test_rotation_starts_new_files_with_bootstrap_records(tmp_path, policy):
    with RotatingWarcWriter(str(tmp_path), boundary=policy, max_bytes=1) as writer:
        for result in sample_results(3):
            writer.write(result)

    assert len(writer.files) == 3
    assert len(set(writer.files)) == 3
    for path in writer.files:
        records = read_file(path)
        assert [r.type for r in records] == [WarcRecord.WARCINFO, WarcRecord.RESPONSE]
        assert records[0].get_header(WarcRecord.FILENAME) == os.path.basename(path).encode("ascii")


def test_rotation_counts_compressed_bytes(tmp_path, policy):
    results = sample_results(2, content=b"a" * 100000)

    with RotatingWarcWriter(
        str(tmp_path / "gz"), boundary=policy, max_bytes=50000, compress=True
    ) as writer:
        for result in results:
            writer.write(result)
    assert len(writer.files) == 1

    with RotatingWarcWriter(
        str(tmp_path / "plain"), boundary=policy, max_bytes=50000, compress=False
    ) as writer:
        for result in results:
            writer.write(result)
    assert len(writer.files) == 2


def test_uncompressed_output(tmp_path, policy):
    with RotatingWarcWriter(str(tmp_path), boundary=policy, compress=False) as writer:
        writer.write(sample_results(1)[0])

    path = writer.files[0]
    assert path.endswith(".warc")
    with open(path, "rb") as f:
        assert f.read(10) == b"WARC/1.0\r\n"
    assert len(read_file(path)) == 2


def test_invalid_result_writes_nothing(tmp_path, policy):
    with RotatingWarcWriter(str(tmp_path), boundary=policy) as writer:
        with pytest.raises(InvalidInputError):
            writer.write(CrawlResult("ht tp://example.com/", b"x"))
        assert writer.files == []

        writer.write(sample_results(1)[0])
        size = writer.bytes_written
        with pytest.raises(InvalidInputError):
            writer.write(CrawlResult("http://exa<mple.com/", b"x"))
        assert writer.bytes_written == size

    assert os.path.getsize(writer.files[0]) == size
    assert len(read_file(writer.files[0])) == 2


def test_no_bootstrap_records_without_config(tmp_path):
    with RotatingWarcWriter(str(tmp_path), sync_every=1) as writer:
        writer.write(CrawlResult("http://example.com/", None))

    (record,) = read_file(writer.files[0])
    assert record.type == WarcRecord.RESOURCE
    assert record.content_length == 0


def test_shared_record_format(tmp_path, policy):
    record_format = WarcRecordFormat(FixedProvider(INSTANT, ids=["<urn:uuid:fixed-1>"]))
    with RotatingWarcWriter(str(tmp_path), boundary=policy, record_format=record_format) as writer:
        writer.write(CrawlResult("http://example.com/", b"x"))

    records = read_file(writer.files[0])
    assert records[1].id == b"<urn:uuid:fixed-1>"
    assert records[1].date == b"2024-03-01T12:00:05Z"


@pytest.mark.parametrize("kwargs", [{"max_bytes": 0}, {"sync_every": 0}])
def test_bad_writer_config(tmp_path, kwargs):
    with pytest.raises(ConfigurationError):
        RotatingWarcWriter(str(tmp_path), **kwargs)


def test_failed_bootstrap_leaves_no_file(tmp_path):
    # bypasses create(), so the bad field only shows up when a file starts
    config = BoundaryConfig(warc_fields=MappingProxyType({"operator": "\ud800"}))
    policy = FileBoundaryPolicy(config, FixedProvider(INSTANT))
    with RotatingWarcWriter(str(tmp_path), boundary=policy) as writer:
        for _ in range(2):
            with pytest.raises(EncodingError):
                writer.write(sample_results(1)[0])
        assert writer.file is None

    assert writer.files == []
    assert os.listdir(tmp_path) == []


def test_existing_file_is_not_overwritten(tmp_path, policy, monkeypatch):
    monkeypatch.setattr(storage.time, "strftime", lambda fmt, t=None: "20240301120005")

    with RotatingWarcWriter(str(tmp_path), boundary=policy) as first:
        first.write(sample_results(1)[0])
    with RotatingWarcWriter(str(tmp_path), boundary=policy) as second:
        second.write(sample_results(1)[0])

    assert first.files[0].endswith("crawl-20240301120005-00000.warc.gz")
    assert second.files[0].endswith("crawl-20240301120005-00001.warc.gz")
    assert len(read_file(first.files[0])) == 2

    warcinfo = read_file(second.files[0])[0]
    assert warcinfo.get_header(WarcRecord.FILENAME) == b"crawl-20240301120005-00001.warc.gz"
