"""
Search-results parsing.

Scraping depends on the provider's current markup, so the selectors live in
one ResultsParser per provider. Swap the parser when the markup changes;
nothing else in the search flow knows about CSS classes.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol
from urllib.parse import quote_plus

from bs4 import BeautifulSoup


@dataclass(frozen=True)
class SearchResult:
    title: str
    description: str


class ResultsParser(Protocol):
    #: selector that appears once results have rendered
    wait_selector: str

    def url_for(self, query: str) -> str: ...

    def parse(self, html: str) -> list[SearchResult]: ...


class GoogleResultsParser:
    wait_selector = ".g"
    title_selector = "h3"
    snippet_selector = ".VwiC3b"

    def __init__(self, base_url: str = "https://www.google.com/search") -> None:
        self.base_url = base_url

    def url_for(self, query: str) -> str:
        return f"{self.base_url}?q={quote_plus(query)}"

    def parse(self, html: str) -> list[SearchResult]:
        soup = BeautifulSoup(html, "lxml")
        results: list[SearchResult] = []
        for item in soup.select(self.wait_selector):
            title_tag = item.select_one(self.title_selector)
            snippet_tag = item.select_one(self.snippet_selector)
            title = title_tag.get_text(" ", strip=True) if title_tag else ""
            description = snippet_tag.get_text(" ", strip=True) if snippet_tag else ""
            if title or description:
                results.append(SearchResult(title=title, description=description))
        return results


def format_results(results: list[SearchResult]) -> str:
    return "\n\n".join(f"{item.title}\n{item.description}" for item in results)
