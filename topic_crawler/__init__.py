"""Resumable, sequential crawler for paginated news topic listings."""

from .articles import ArticleRecord, build_record, normalize_text, parse_article_id
from .controller import CrawlController, CrawlStats
from .records import RecordStore

__all__ = [
    "ArticleRecord",
    "CrawlController",
    "CrawlStats",
    "RecordStore",
    "build_record",
    "normalize_text",
    "parse_article_id",
]
