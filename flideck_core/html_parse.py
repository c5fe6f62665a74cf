"""
HTML document parsing for title and card inference.

Uses BeautifulSoup with the stdlib ``html.parser`` backend, which tolerates
unclosed tags and stray markup instead of failing.
"""

import logging
import posixpath
from typing import List, Optional
from urllib.parse import unquote, urlsplit

from bs4 import BeautifulSoup, Tag

from flideck_core.models import CardElement, ParsedDocument
from flideck_core.ports import DocumentParser

logger = logging.getLogger(__name__)

CARD_DATA_ATTRS = ("data-slide", "data-file")
HTML_SUFFIXES = (".html", ".htm")
HEADINGS = ["h1", "h2", "h3", "h4", "h5", "h6"]


def get_text(element: Optional[Tag]) -> str:
    """Whitespace-normalized text of an element."""
    if element is None:
        return ""
    return " ".join(element.get_text(" ").split())


def normalize_href(href: Optional[str]) -> Optional[str]:
    """Reduce a link to a local HTML file name, or None if it is not one."""
    if not href:
        return None
    parts = urlsplit(href.strip())
    if parts.scheme or parts.netloc:
        return None
    name = unquote(posixpath.basename(parts.path))
    if not name.lower().endswith(HTML_SUFFIXES):
        return None
    return name


def _has_card_class(element: Tag) -> bool:
    classes = element.get("class") or []
    if isinstance(classes, str):
        classes = classes.split()
    return any("card" in c for c in classes)


def is_card(element: Tag) -> bool:
    return _has_card_class(element) or any(element.get(a) for a in CARD_DATA_ATTRS)


def _card_href(element: Tag) -> Optional[str]:
    for attr in CARD_DATA_ATTRS:
        if element.get(attr):
            return element[attr]
    if element.name == "a" and element.get("href"):
        return element["href"]
    link = element.find("a", href=True)
    return link["href"] if link is not None else None


def _card_title(element: Tag) -> Optional[str]:
    if element.get("data-title"):
        return element["data-title"].strip()
    heading = element.find(HEADINGS)
    text = get_text(heading) or get_text(element)
    return text[:200] or None


class SoupDocumentParser(DocumentParser):
    """BeautifulSoup implementation of ``DocumentParser``."""

    def __init__(self, features: str = "html.parser"):
        self.features = features

    def parse(self, content: str) -> ParsedDocument:
        soup = BeautifulSoup(content or "", self.features)

        title = get_text(soup.title) if soup.title is not None else ""
        if not title:
            title = get_text(soup.find("h1"))

        cards: List[CardElement] = []
        seen = set()
        for element in soup.find_all(is_card):
            # containers such as .card-grid hold the real cards
            if element.find(is_card) is not None and not any(element.get(a) for a in CARD_DATA_ATTRS):
                continue
            href = normalize_href(_card_href(element))
            if href is None or href in seen:
                continue
            seen.add(href)
            cards.append(CardElement(href=href, title=_card_title(element)))

        return ParsedDocument(title=title or None, cards=cards)
