"""
Unit tests for reading and writing .ipynb files.
"""

import json

import pytest

from notebook_search.notebook import (
    CellKind,
    NotebookFormatError,
    load_notebook,
    notebook_from_dict,
    notebook_to_dict,
    save_notebook,
)
from notebook_search.notebook.ipynb_io import output_text


def test_load_fixture(notebook):
    assert len(notebook) == 6
    assert [cell.kind for cell in notebook.cells] == [
        CellKind.MARKDOWN,
        CellKind.MARKDOWN,
        CellKind.CODE,
        CellKind.CODE,
        CellKind.RAW,
        CellKind.CODE,
    ]
    assert notebook.cell(0).cell_id == "intro"
    assert notebook.cell(0).source.startswith("Test with one notebook withr\n\n\n")
    assert notebook.cell(5).outputs == ["with outputs\ndone with it\n", "'with with with with with with'"]
    assert notebook.cell(5).execution_count == 1


def test_markdown_unrendered_by_default(notebook_path):
    assert not load_notebook(str(notebook_path)).cell(0).rendered
    assert load_notebook(str(notebook_path), render_markdown=True).cell(0).rendered


def test_output_text_variants():
    assert output_text({"output_type": "stream", "text": ["a", "b"]}) == "ab"
    assert output_text({"output_type": "display_data", "data": {"text/plain": "x"}}) == "x"
    assert output_text({"output_type": "display_data", "data": {"image/png": "..."}}) == ""
    assert output_text({"output_type": "error", "ename": "ValueError", "evalue": "bad"}) == "ValueError: bad"


def test_source_as_string():
    nb = notebook_from_dict({"cells": [{"cell_type": "code", "source": "x = 1"}]})

    assert nb.cell(0).source == "x = 1"
    assert nb.cell(0).cell_id


@pytest.mark.parametrize(
    "payload",
    [
        [],
        {"cells": "nope"},
        {"cells": [1]},
        {"cells": [{"cell_type": "widget"}]},
    ],
)
def test_bad_payloads(payload):
    with pytest.raises(NotebookFormatError):
        notebook_from_dict(payload)


def test_invalid_json_file(tmp_path):
    path = tmp_path / "broken.ipynb"
    path.write_text("{", encoding="utf-8")

    with pytest.raises(NotebookFormatError):
        load_notebook(str(path))


def test_save_and_reload(tmp_path, notebook):
    notebook.set_source(3, "value = 2\nprint(value)")
    target = tmp_path / "out" / "saved.ipynb"

    save_notebook(notebook, str(target))
    reloaded = load_notebook(str(target))

    assert [cell.source for cell in reloaded.cells] == [cell.source for cell in notebook.cells]
    assert [cell.cell_id for cell in reloaded.cells] == [cell.cell_id for cell in notebook.cells]
    assert json.loads(target.read_text(encoding="utf-8"))["nbformat"] == 4
    assert list(target.parent.iterdir()) == [target]


def _payload():
    return {
        "cells": [
            {
                "cell_type": "markdown",
                "id": "doc",
                "metadata": {"tags": ["intro"]},
                "attachments": {"pic.png": {"image/png": "iVBORw0KGgo="}},
                "source": ["with ![pic](attachment:pic.png)"],
            },
            {
                "cell_type": "code",
                "id": "plot",
                "metadata": {"collapsed": True},
                "execution_count": 7,
                "outputs": [
                    {"output_type": "display_data", "data": {"image/png": "AAAA"}, "metadata": {}},
                    {
                        "output_type": "execute_result",
                        "execution_count": 7,
                        "data": {"text/plain": "'with'", "text/html": "<b>with</b>"},
                        "metadata": {},
                    },
                    {"output_type": "error", "ename": "KeyError", "evalue": "'k'", "traceback": ["..."]},
                ],
                "source": "show()",
            },
        ],
        "metadata": {
            "kernelspec": {"display_name": "Python 3", "language": "python", "name": "python3"},
            "language_info": {"name": "python"},
        },
        "nbformat": 4,
        "nbformat_minor": 5,
    }


def test_save_keeps_fields_it_does_not_edit():
    payload = _payload()
    nb = notebook_from_dict(payload)

    nb.set_source(1, "show(with_axes=True)")
    saved = notebook_to_dict(nb)

    assert saved["metadata"] == payload["metadata"]
    assert saved["cells"][0]["attachments"] == payload["cells"][0]["attachments"]
    assert saved["cells"][0]["metadata"] == {"tags": ["intro"]}
    assert saved["cells"][1]["metadata"] == {"collapsed": True}
    assert saved["cells"][1]["outputs"] == payload["cells"][1]["outputs"]
    assert saved["cells"][1]["execution_count"] == 7
    assert saved["cells"][1]["source"] == ["show(with_axes=True)"]


def test_loaded_outputs_still_searchable_as_text():
    nb = notebook_from_dict(_payload())

    assert nb.cell(1).outputs == ["'with'", "KeyError: 'k'"]


def test_outputs_from_a_run_replace_loaded_ones():
    nb = notebook_from_dict(_payload())

    nb.set_outputs(1, ["done\n"], execution_count=1)
    saved = notebook_to_dict(nb)

    assert saved["cells"][1]["execution_count"] == 1
    assert saved["cells"][1]["outputs"] == [{"output_type": "stream", "name": "stdout", "text": ["done\n"]}]
    assert saved["metadata"]["kernelspec"]["name"] == "python3"


def test_new_cells_get_minimal_entries():
    nb = notebook_from_dict(_payload())
    nb.insert_cell(2)

    entry = notebook_to_dict(nb)["cells"][2]

    assert entry["metadata"] == {}
    assert entry["outputs"] == []
    assert entry["execution_count"] is None


def test_old_minor_version_is_raised_for_cell_ids():
    payload = _payload()
    payload["nbformat_minor"] = 2

    assert notebook_to_dict(notebook_from_dict(payload))["nbformat_minor"] == 5
