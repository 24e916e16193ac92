"""
Unit tests for rendering markdown cells to plain text.
"""

from notebook_search.notebook.rendering import render_markdown_html, rendered_markdown_text


def test_heading_and_paragraphs():
    text = rendered_markdown_text("# Title\n\nFirst *para*.\n\nSecond para.")

    assert text == "Title\nFirst para.\nSecond para."


def test_inline_markup_removed():
    assert rendered_markdown_text("a **bold** and `code` word") == "a bold and code word"


def test_lists_one_item_per_line():
    assert rendered_markdown_text("- one\n- two") == "one\ntwo"


def test_table_cells_tab_separated():
    source = "| a | b |\n|---|---|\n| 1 | 2 |"

    assert rendered_markdown_text(source) == "a\tb\n1\t2"


def test_entities_decoded():
    assert rendered_markdown_text("x &amp; y") == "x & y"


def test_html_uses_markdown_library():
    assert render_markdown_html("# T").startswith("<h1")
