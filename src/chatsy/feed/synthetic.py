"""Synthetic structural change feed.

Builds MutationRecord batches from HTML fragments against a HostPage, the same
records the browser bridge would produce. Used by tests and to replay captured
conversations without a browser.
"""

from __future__ import annotations

from bs4 import BeautifulSoup, Tag

from chatsy.platforms.page import HostPage, MutationRecord


class SyntheticFeed:
    """Mutates a HostPage and returns the matching mutation records."""

    def __init__(self, page: HostPage) -> None:
        self.page = page

    def _require(self, selector: str) -> Tag:
        node = self.page.select_one(selector)
        if node is None:
            raise LookupError(f"no element matches {selector!r}")
        return node

    def append_html(self, parent_selector: str, html: str) -> MutationRecord:
        """Append parsed fragment under parent; returns a child_list record."""
        parent = self._require(parent_selector)
        fragment = BeautifulSoup(html, "html.parser")
        nodes = [node for node in list(fragment.contents) if isinstance(node, Tag)]
        for node in nodes:
            parent.append(node.extract())
        return MutationRecord(kind="child_list", target=parent, added_nodes=tuple(nodes))

    def set_attribute(self, selector: str, name: str, value: str) -> MutationRecord:
        """Set an attribute on the first match; returns an attributes record."""
        target = self._require(selector)
        if name == "class":
            target[name] = value.split()
        else:
            target[name] = value
        return MutationRecord(kind="attributes", target=target, attribute_name=name)

    def remove(self, selector: str) -> None:
        """Remove every match (removals produce no records)."""
        for node in self.page.select(selector):
            node.decompose()
