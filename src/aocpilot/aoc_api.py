"""Advent of Code platform access: puzzle input, descriptions and answer submission."""

from __future__ import annotations

from dataclasses import dataclass, field

import requests
from bs4 import BeautifulSoup

from .config import PuzzleIdentity
from .parsing import SubmissionOutcome, classify_submission

DEFAULT_BASE_URL = "https://adventofcode.com"
DEFAULT_USER_AGENT = "aocpilot (+https://pypi.org/project/aocpilot/)"


def _page_text(soup: BeautifulSoup) -> str:
    return soup.get_text()


def extract_article_text(html: str, *, full_statement: bool) -> str:
    """Return puzzle prose from a day page.

    Part-1-only mode reads the first <article>. Full mode joins every
    `article.day-desc` block with a blank line so the Part 2 delta follows
    the Part 1 rules it modifies.
    """

    soup = BeautifulSoup(html, "html.parser")

    if full_statement:
        blocks = soup.select("article.day-desc")
        if blocks:
            return "\n\n".join(block.get_text() for block in blocks)
        return _page_text(soup)

    article = soup.find("article")
    if article is not None:
        return article.get_text()
    return _page_text(soup)


def extract_main_text(html: str) -> str:
    """Text of the main content area of a response page."""

    soup = BeautifulSoup(html, "html.parser")
    for selector in ("main", "article"):
        node = soup.find(selector)
        if node is not None:
            return node.get_text()
    return _page_text(soup)


@dataclass
class AdventOfCodeClient:
    """Thin wrapper around the puzzle site, authenticated by session cookie."""

    session_token: str
    base_url: str = DEFAULT_BASE_URL
    timeout_sec: float | None = 30
    user_agent: str = DEFAULT_USER_AGENT
    http: requests.Session = field(default_factory=requests.Session, repr=False)

    def __post_init__(self) -> None:
        if not self.session_token:
            raise ValueError("A platform session token is required")
        self.http.headers.update(
            {
                "Cookie": f"session={self.session_token}",
                "User-Agent": self.user_agent,
            }
        )

    def _day_url(self, identity: PuzzleIdentity) -> str:
        return f"{self.base_url.rstrip('/')}/{identity.year}/day/{identity.day}"

    def _get(self, url: str) -> str:
        response = self.http.get(url, timeout=self.timeout_sec)
        response.raise_for_status()
        return response.text

    def fetch_input(self, identity: PuzzleIdentity) -> str:
        return self._get(f"{self._day_url(identity)}/input").rstrip()

    def fetch_description(self, identity: PuzzleIdentity, *, full_statement: bool = False) -> str:
        html = self._get(self._day_url(identity))
        return extract_article_text(html, full_statement=full_statement)

    def submit_answer(self, identity: PuzzleIdentity, part: int, answer: str) -> SubmissionOutcome:
        if part not in (1, 2):
            raise ValueError(f"Part must be 1 or 2, got {part}")

        response = self.http.post(
            f"{self._day_url(identity)}/answer",
            data={"level": str(part), "answer": str(answer)},
            timeout=self.timeout_sec,
        )
        response.raise_for_status()
        return classify_submission(extract_main_text(response.text))
