from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any

import trafilatura
from bs4 import BeautifulSoup

log = logging.getLogger("browsechat.extract")


@dataclass(frozen=True)
class Article:
    title: str = ""
    text: str = ""

    @property
    def empty(self) -> bool:
        return not self.title and not self.text

    def as_text(self) -> str:
        return f"{self.title}\n{self.text}".strip()


def _normalize_whitespace(text: str) -> str:
    return re.sub(r"\s+", " ", text).strip()


def _tag_text(tag: Any) -> str:
    return _normalize_whitespace(" ".join(tag.stripped_strings))


def _extract_title(soup: BeautifulSoup) -> str:
    og = soup.find("meta", attrs={"property": "og:title"})
    if og is not None and og.get("content"):
        return _normalize_whitespace(str(og["content"]))
    if soup.title and soup.title.string:
        return _normalize_whitespace(soup.title.string)
    h1 = soup.find("h1")
    if h1 is not None:
        return _tag_text(h1)
    return ""


class ContentExtractor:
    """Main-content extraction: trafilatura for the article body, bs4 for the title.

    Never raises: unparseable or empty documents give an empty
    :class:`Article`, and a page with no readable body keeps its title.
    """

    def __init__(self, parser: str = "lxml", *, include_tables: bool = True) -> None:
        self.parser = parser
        self.include_tables = include_tables

    def extract(self, html: str) -> Article:
        if not html or not html.strip():
            return Article()
        try:
            title = _extract_title(BeautifulSoup(html, self.parser))
            text = trafilatura.extract(
                html,
                include_comments=False,
                include_tables=self.include_tables,
                favor_recall=True,
            )
        except Exception as exc:  # noqa: BLE001
            log.warning("could not extract content: %s", exc)
            return Article()
        text = (text or "").strip()
        if not text:
            log.warning("no readable content found (title=%r)", title)
        return Article(title=title, text=text)
