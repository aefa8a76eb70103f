"""Crawl output as WARC files: record serialization, rotation and checking tools."""
