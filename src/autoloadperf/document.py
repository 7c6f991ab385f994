"""Parse and serialize HTML documents.

BeautifulSoup with the stdlib ``html.parser`` builder is the DOM engine. Each
call to ``parse_document`` returns a private tree; nothing is shared between
optimizer calls.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from bs4 import BeautifulSoup, Doctype
from bs4.dammit import EntitySubstitution
from bs4.formatter import HTMLFormatter

if TYPE_CHECKING:
    from collections.abc import Iterator

    from bs4 import Tag


class _SourceOrderFormatter(HTMLFormatter):
    """HTML formatter that keeps attributes in insertion order.

    Void elements render without a closing slash and empty attributes render
    as bare booleans (``crossorigin`` rather than ``crossorigin=""``).
    """

    def __init__(self) -> None:
        super().__init__(
            entity_substitution=EntitySubstitution.substitute_xml,
            void_element_close_prefix=None,
            empty_attributes_are_booleans=True,
        )

    def attributes(self, tag: Tag) -> Iterator[tuple[str, Any]]:  # type: ignore[override]
        if tag.attrs is None:
            return iter(())
        return iter(
            (key, None if value == "" else value) for key, value in tag.attrs.items()
        )


FORMATTER = _SourceOrderFormatter()


def ends_inside_markup(html: str) -> bool:
    """Return True when ``html`` stops inside an unfinished tag or comment.

    ``html.parser`` demotes such a tail to text, which would then render as
    visible page content, so truncated documents are not rewritten.
    """
    if html.rfind("<!--") > html.rfind("-->"):
        return True
    start = html.rfind("<")
    if start == -1 or start + 1 == len(html):
        return False
    opener = html[start + 1]
    if not (opener.isalpha() or opener in "/!?"):
        return False
    return html.find(">", start) == -1


def parse_document(html: str) -> BeautifulSoup:
    """Parse HTML into a fresh, mutable tree.

    Attribute values are kept as plain strings (``rel="preload stylesheet"``
    is not split) so serialization reproduces the source attributes.
    """
    return BeautifulSoup(html, "html.parser", multi_valued_attributes=None)


def serialize_document(soup: BeautifulSoup) -> str:
    """Render the tree back to HTML."""
    return soup.decode(formatter=FORMATTER)


def ensure_head(soup: BeautifulSoup) -> Tag:
    """Return the document's ``<head>``, creating one when missing."""
    head = soup.head
    if head is not None:
        return head
    head = soup.new_tag("head")
    if soup.html is not None:
        soup.html.insert(0, head)
    else:
        soup.insert(_after_doctype(soup), head)
    return head


def _after_doctype(soup: BeautifulSoup) -> int:
    for index, node in enumerate(soup.contents):
        if isinstance(node, Doctype):
            return index + 1
    return 0


def attr(tag: Tag, name: str) -> str | None:
    """Return an attribute as a string, or None when absent."""
    value = tag.get(name)
    if value is None:
        return None
    if isinstance(value, list):
        return " ".join(value)
    return str(value)


def rel_tokens(tag: Tag) -> list[str]:
    """Return the lowercase tokens of a tag's ``rel`` attribute."""
    return (attr(tag, "rel") or "").lower().split()
