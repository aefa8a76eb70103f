#!/usr/bin/env python
"""warccheck - check that WARC files are well framed"""

import logging
import sys

import click

from .warcformat import open_record_stream

logger = logging.getLogger("crawlwarc.warccheck")


def check_file(name: str, verbose: bool) -> bool:
    """Validate every record of one file, reporting problems on stderr."""
    correct = True
    records = 0
    with open_record_stream(name) as fh:
        for offset, record, errors in fh.read_records(limit=None):
            where = f"{name}:{offset if offset is not None else records}"
            if errors:
                print(f"warc errors at {where}", file=sys.stderr)
                print(errors, file=sys.stderr)
                correct = False
                break
            if record is None:
                break
            records += 1
            problems = record.validate()
            if problems:
                print(f"warc errors at {where}", file=sys.stderr)
                print(problems, file=sys.stderr)
                correct = False
            elif verbose:
                print(
                    f"{where} {record.type.decode('latin1')} "
                    f"{record.content_length} {(record.url or b'-').decode('latin1')}"
                )
    logger.info("%s: %d records", name, records)
    return correct


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.option("-v", "--verbose", "verbose", is_flag=True, help="list every record", default=False)
@click.option("-L", "--log-level", "log_level", help="Log level", default="warning")
@click.argument("warc_files", nargs=-1, required=True, type=click.Path(exists=True))
def main(verbose: bool, log_level: str, warc_files: tuple[str, ...]) -> None:
    """Validate WARC files."""
    logging.basicConfig(level=getattr(logging, log_level.upper(), logging.WARNING))
    correct = True
    for name in warc_files:
        try:
            if not check_file(name, verbose):
                correct = False
        except (OSError, EOFError) as e:
            print(f"Exception: {e}", file=sys.stderr)
            correct = False

    sys.exit(0 if correct else 1)


def run() -> None:
    """Entry point for the command-line interface."""
    main()


if __name__ == "__main__":
    run()
