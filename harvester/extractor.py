"""
Selector matching over fetched pages, backed by BeautifulSoup.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union

from bs4 import BeautifulSoup


@dataclass
class Element:
    """Attributes of one matched element."""

    attrs: Dict[str, str] = field(default_factory=dict)

    def attr(self, name: str) -> str:
        return self.attrs.get(name, "")


def _parse(body: Union[bytes, str]) -> BeautifulSoup:
    if isinstance(body, bytes):
        body = body.decode("utf-8", errors="replace")
    return BeautifulSoup(body, "html.parser")


def _attrs(tag) -> Dict[str, str]:
    # bs4 returns multi-valued attributes (class, rel) as lists
    return {
        key: " ".join(value) if isinstance(value, list) else value
        for key, value in tag.attrs.items()
    }


def extract(body: Union[bytes, str], selector: str) -> List[Element]:
    """Return every element in ``body`` matching the CSS ``selector``, in document order."""
    soup = _parse(body)
    return [Element(attrs=_attrs(tag)) for tag in soup.select(selector)]


def first(body: Union[bytes, str], selector: str) -> Optional[Element]:
    tag = _parse(body).select_one(selector)
    if tag is None:
        return None
    return Element(attrs=_attrs(tag))
