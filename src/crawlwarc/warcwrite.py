#!/usr/bin/env python
"""warcwrite - write crawl results (JSON lines) to rotating WARC files

Each input line is a JSON object:

    {"url": "...", "content": "..." or "content_base64": "...",
     "metadata": {"_response.headers_": "...", "_ip_": "...", "Content-Type": "..."}}
"""

import base64
import json
import logging
import re
import sys

import click

from .warcformat import (
    BoundaryConfig,
    CrawlResult,
    FileBoundaryPolicy,
    RotatingWarcWriter,
    WarcFormatError,
)
from .warcformat.storage import DEFAULT_MAX_BYTES, DEFAULT_SYNC_EVERY

logger = logging.getLogger("crawlwarc.warcwrite")

size_rx = re.compile(r"^\s*(?P<number>\d+(\.\d+)?)\s*(?P<unit>[kmgt]?)i?b?\s*$", re.IGNORECASE)
UNITS = {"": 1, "k": 1024, "m": 1024**2, "g": 1024**3, "t": 1024**4}


def parse_size(text: str) -> int:
    """Parse a byte count such as 1048576, 512M or 1GiB."""
    match = size_rx.match(text)
    if not match:
        raise click.BadParameter(f"not a size: {text}")
    return int(float(match.group("number")) * UNITS[match.group("unit").lower()])


def parse_metadata(metadata, url):
    """Check the metadata object maps strings to a string or a list of strings."""
    if metadata is None:
        return {}
    if not isinstance(metadata, dict):
        raise WarcFormatError(f"metadata of {url} must be an object")
    for key, value in metadata.items():
        values = value if isinstance(value, list) else [value]
        if not all(isinstance(v, str) for v in values):
            raise WarcFormatError(f"metadata {key} of {url} must be a string or a list of strings")
    return metadata


def parse_crawl_result(line: str) -> CrawlResult:
    """Build a CrawlResult from one JSON line."""
    try:
        item = json.loads(line)
    except ValueError as e:
        raise WarcFormatError(f"malformed JSON: {e}") from e
    if not isinstance(item, dict) or "url" not in item:
        raise WarcFormatError("crawl result needs a url")
    if not isinstance(item["url"], str):
        raise WarcFormatError(f"url must be a string, got {item['url']!r}")

    content = None
    if item.get("content_base64") is not None:
        if not isinstance(item["content_base64"], str):
            raise WarcFormatError(f"content_base64 of {item['url']} must be a string")
        try:
            content = base64.b64decode(item["content_base64"], validate=True)
        except ValueError as e:
            raise WarcFormatError(f"bad base64 content for {item['url']}: {e}") from e
    elif item.get("content") is not None:
        if not isinstance(item["content"], str):
            raise WarcFormatError(f"content of {item['url']} must be a string")
        content = item["content"].encode("utf-8")

    metadata = parse_metadata(item.get("metadata"), item["url"])
    return CrawlResult(item["url"], content, metadata)


def parse_fields(pairs: tuple[str, ...]) -> dict[str, str]:
    fields = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise click.BadParameter(f"expected KEY=VALUE, got {pair}")
        fields[key.strip()] = value.strip()
    return fields


def write_results(lines, writer: RotatingWarcWriter, fail_on_invalid: bool) -> tuple[int, int]:
    """Write every crawl result, returning (written, skipped)."""
    written = skipped = 0
    for lineno, line in enumerate(lines, 1):
        if not line.strip():
            continue
        try:
            writer.write(parse_crawl_result(line))
            written += 1
        except WarcFormatError as e:
            if fail_on_invalid:
                raise click.ClickException(f"line {lineno}: {e}") from e
            logger.warning("skipping line %d: %s", lineno, e)
            skipped += 1
    return written, skipped


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.option(
    "-o",
    "--output-dir",
    "output_dir",
    help="directory for the WARC files",
    type=click.Path(file_okay=False),
    default=".",
)
@click.option("-p", "--prefix", "prefix", help="file name prefix", default="crawl")
@click.option(
    "-s",
    "--max-size",
    "max_size",
    help="rotate once a file reaches this compressed size (e.g. 1G, 512M)",
    default=str(DEFAULT_MAX_BYTES),
)
@click.option(
    "--gzip/--no-gzip",
    "gzip",
    help="compress output, record by record",
    default=True,
)
@click.option(
    "--sync-every",
    "sync_every",
    help="fsync after this many records",
    type=int,
    default=DEFAULT_SYNC_EVERY,
)
@click.option("--operator", "operator", help="warcinfo operator field", default=None)
@click.option("--software", "software", help="warcinfo software field", default="crawlwarc")
@click.option("--description", "description", help="warcinfo description field", default=None)
@click.option(
    "-F",
    "--warc-field",
    "warc_fields",
    help="extra warcinfo field KEY=VALUE, repeatable",
    multiple=True,
)
@click.option(
    "--no-warcinfo",
    "no_warcinfo",
    is_flag=True,
    help="do not start files with a warcinfo record",
    default=False,
)
@click.option(
    "--no-filename",
    "no_filename",
    is_flag=True,
    help="leave WARC-Filename out of the warcinfo header",
    default=False,
)
@click.option(
    "--header-file",
    "header_file",
    help="raw bytes written at the start of each file (deprecated)",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
)
@click.option(
    "--fail-on-invalid",
    "fail_on_invalid",
    is_flag=True,
    help="stop at the first crawl result that cannot be written",
    default=False,
)
@click.option("-L", "--log-level", "log_level", help="Log level", default="info")
@click.argument("inputs", nargs=-1, type=click.Path(exists=True, dir_okay=False))
def main(
    output_dir: str,
    prefix: str,
    max_size: str,
    gzip: bool,
    sync_every: int,
    operator: str | None,
    software: str | None,
    description: str | None,
    warc_fields: tuple[str, ...],
    no_warcinfo: bool,
    no_filename: bool,
    header_file: str | None,
    fail_on_invalid: bool,
    log_level: str,
    inputs: tuple[str, ...],
) -> None:
    """Write crawl results to rotating WARC files."""
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    header = None
    if header_file:
        logger.warning("--header-file is deprecated, use the warcinfo options instead")
        with open(header_file, "rb") as f:
            header = f.read()

    fields = None
    optional_header_fields = None
    if not no_warcinfo:
        fields = {}
        for key, value in (
            ("software", software),
            ("operator", operator),
            ("description", description),
        ):
            if value:
                fields[key] = value
        fields["format"] = "WARC File Format 1.0"
        fields.update(parse_fields(warc_fields))
        optional_header_fields = {} if no_filename else {"WARC-Filename": None}

    try:
        config = BoundaryConfig.create(header, fields, optional_header_fields)
        writer = RotatingWarcWriter(
            output_dir,
            prefix=prefix,
            max_bytes=parse_size(max_size),
            compress=gzip,
            boundary=FileBoundaryPolicy(config),
            sync_every=sync_every,
        )
    except WarcFormatError as e:
        raise click.ClickException(str(e)) from e

    with writer:
        if not inputs:
            written, skipped = write_results(sys.stdin, writer, fail_on_invalid)
        else:
            written = skipped = 0
            for name in inputs:
                with open(name, encoding="utf-8") as f:
                    w, s = write_results(f, writer, fail_on_invalid)
                written += w
                skipped += s

    logger.info(
        "wrote %d records to %d files, skipped %d", written, len(writer.files), skipped
    )
    for path in writer.files:
        print(path)


def run() -> None:
    """Entry point for the command-line interface."""
    main()


if __name__ == "__main__":
    run()
