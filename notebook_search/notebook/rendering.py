"""Markdown cell rendering reduced to the plain text a reader sees."""

from __future__ import annotations

from functools import lru_cache
from html.parser import HTMLParser

import markdown

_BLOCK_TAGS = {
    "p", "div", "pre", "blockquote", "li", "ul", "ol", "table", "tr",
    "h1", "h2", "h3", "h4", "h5", "h6", "hr", "br",
}


class _TextExtractor(HTMLParser):
    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self._parts: list[str] = []

    def handle_starttag(self, tag, attrs):
        if tag in _BLOCK_TAGS:
            self._break()
        elif tag in {"td", "th"} and self._parts and not self._parts[-1].endswith(("\n", "\t")):
            self._parts.append("\t")

    def handle_endtag(self, tag):
        if tag in _BLOCK_TAGS:
            self._break()

    def handle_data(self, data):
        # Newlines between block tags are markup layout, not text.
        if data and (data.strip() or "\n" not in data):
            self._parts.append(data)

    def _break(self) -> None:
        if self._parts and not self._parts[-1].endswith("\n"):
            self._parts.append("\n")

    def text(self) -> str:
        lines = [line.rstrip() for line in "".join(self._parts).splitlines()]
        return "\n".join(line for line in lines if line.strip())


def render_markdown_html(source: str) -> str:
    return markdown.markdown(str(source or ""), extensions=["tables", "fenced_code"])


@lru_cache(maxsize=256)
def rendered_markdown_text(source: str) -> str:
    """Plain text of the rendered cell, one line per block element."""
    extractor = _TextExtractor()
    extractor.feed(render_markdown_html(source))
    extractor.close()
    return extractor.text()
