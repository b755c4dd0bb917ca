"""Article data model and text extraction helpers."""

from __future__ import annotations

import re
from dataclasses import dataclass
from urllib.parse import urlparse

_SEPARATOR_SUBSTITUTE = "、"
_NEWLINE_TABLE = str.maketrans({"\n": None, "\r": None, ",": _SEPARATOR_SUBSTITUTE})
_ID_PATTERN = re.compile(r"[+-]?[0-9]+", re.ASCII)
SUMMARY_LINES = 3


class ArticleIdError(ValueError):
    """Raised when an article link does not end in a numeric identifier."""


class ExtractionError(RuntimeError):
    """Raised when extracted article text cannot be turned into a record."""


@dataclass(frozen=True, slots=True)
class ArticleRecord:
    id: int
    title: str
    body: str
    summary1: str
    summary2: str
    summary3: str

    def as_row(self) -> list[str]:
        return [
            str(self.id),
            self.title,
            self.body,
            self.summary1,
            self.summary2,
            self.summary3,
        ]


def normalize_text(text: str) -> str:
    """Strip newlines and swap ASCII commas for the ideographic comma."""
    return text.translate(_NEWLINE_TABLE)


def parse_article_id(href: str | None) -> int:
    """Return the integer held by the last path segment of an article link.

    Query strings, fragments and trailing slashes are ignored, so both
    ``https://news.livedoor.com/topics/detail/12345/`` and ``/detail/12345``
    resolve to ``12345``.
    """

    if not href or not href.strip():
        raise ArticleIdError("Article link is empty")
    path = urlparse(href.strip()).path.rstrip("/")
    segment = path.rsplit("/", 1)[-1]
    try:
        return parse_id_field(segment)
    except ArticleIdError as exc:
        raise ArticleIdError(f"No numeric identifier at the end of {href!r}") from exc


def parse_id_field(text: str) -> int:
    """Parse an optionally signed run of ASCII digits, with nothing around it."""
    if not _ID_PATTERN.fullmatch(text):
        raise ArticleIdError(f"Not an article id: {text!r}")
    return int(text)


def split_summary(summary: str) -> tuple[str, str, str]:
    lines = summary.split("\n")
    if len(lines) < SUMMARY_LINES:
        raise ExtractionError(
            f"Summary block has {len(lines)} line(s); expected at least {SUMMARY_LINES}"
        )
    return lines[0], lines[1], lines[2]


def build_record(article_id: int, title: str, summary: str, body: str) -> ArticleRecord:
    """Build a normalized record from the raw text read off the article pages."""

    first, second, third = split_summary(summary)
    return ArticleRecord(
        id=article_id,
        title=normalize_text(title),
        body=normalize_text(body),
        summary1=normalize_text(first),
        summary2=normalize_text(second),
        summary3=normalize_text(third),
    )
