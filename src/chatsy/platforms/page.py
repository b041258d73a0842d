"""Host page model: the structural surface the adapters read and write.

The browser bridge (external) mirrors the live DOM into a BeautifulSoup tree
and reports changes as MutationRecord batches. Everything in chatsy reads the
page through this module; the only write path is HostPage.write_text, called
by adapters from insert_text.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal
from urllib.parse import urlparse

from bs4 import BeautifulSoup, Tag

MutationKind = Literal["child_list", "attributes"]


@dataclass(frozen=True)
class MutationRecord:
    """One structural change reported by the host.

    Attributes:
        kind: "child_list" for inserted nodes, "attributes" for attribute changes.
        target: Parent of the inserted nodes, or the element whose attribute changed.
        added_nodes: Inserted elements in document order (child_list only).
        attribute_name: Changed attribute (attributes only).
    """

    kind: MutationKind
    target: Tag
    added_nodes: tuple[Tag, ...] = ()
    attribute_name: str | None = None


@dataclass
class HostPage:
    """Snapshot-backed view of the messaging page."""

    url: str
    document: BeautifulSoup
    title: str | None = None
    writes: list[tuple[Tag, str]] = field(default_factory=list)

    @classmethod
    def from_html(cls, url: str, html: str, title: str | None = None) -> "HostPage":
        """Build a page from an HTML string."""
        return cls(url=url, document=BeautifulSoup(html, "html.parser"), title=title)

    @property
    def hostname(self) -> str:
        return urlparse(self.url).hostname or ""

    @property
    def pathname(self) -> str:
        return urlparse(self.url).path or "/"

    def page_title(self) -> str:
        """Explicit title if set, else the document <title> text."""
        if self.title is not None:
            return self.title.strip()
        node = self.document.find("title")
        return node.get_text(strip=True) if node else ""

    def select_one(self, selector: str) -> Tag | None:
        return self.document.select_one(selector)

    def select(self, selector: str) -> list[Tag]:
        return list(self.document.select(selector))

    def navigate(self, url: str, title: str | None = None) -> None:
        """Record an in-app navigation (URL and optionally title change)."""
        self.url = url
        if title is not None:
            self.title = title

    def write_text(self, element: Tag, text: str) -> None:
        """Replace an input element's content and record the write."""
        if element.name == "input":
            element["value"] = text
        else:
            element.clear()
            element.append(text)
        self.writes.append((element, text))


def is_visible(element: Tag) -> bool:
    """True unless the element or an ancestor is hidden."""
    node: Tag | None = element
    while node is not None and isinstance(node, Tag):
        if node.has_attr("hidden") or node.get("aria-hidden") == "true":
            return False
        style = str(node.get("style", "")).replace(" ", "").lower()
        if "display:none" in style or "visibility:hidden" in style:
            return False
        node = node.parent
    return True


def element_children(node: Tag) -> list[Tag]:
    """Direct element children (text nodes skipped)."""
    return [child for child in node.children if isinstance(child, Tag)]


def iter_subtree(node: Tag):
    """Yield node and every descendant element in document order."""
    yield node
    for descendant in node.descendants:
        if isinstance(descendant, Tag):
            yield descendant
