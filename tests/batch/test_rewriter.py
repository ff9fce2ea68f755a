from __future__ import annotations

import json

import pytest

from fixtures import FlakyStore
from vault_images.batch.rewriter import relink, rewrite_references
from vault_images.batch.scanner import DocumentKind, ReferringDocument


def _note(store, path, *links):
    return ReferringDocument(
        store.resolve(path), DocumentKind.NOTE, len(links), tuple(links)
    )


def test_rewrites_full_vault_paths_in_note(vault_builder):
    vault_builder.note(
        "n.md", "![[att/a.png]]\n\n![x](att/a.png)\n\nkeep att/b.png\n"
    )
    store = vault_builder.vault()

    count = rewrite_references(
        store, _note(store, "n.md", "att/a.png"), "att/a.png", "att/a.webp"
    )

    assert count == 2
    assert vault_builder.read("n.md") == (
        "![[att/a.webp]]\n\n![x](att/a.webp)\n\nkeep att/b.png\n"
    )


def test_rewrites_short_link_spellings_only_as_whole_targets(vault_builder):
    vault_builder.note(
        "n.md", "![[a.png|200]] and ![x](a.png) but not xa.png or a.pngx\n"
    )
    store = vault_builder.vault()

    count = rewrite_references(
        store, _note(store, "n.md", "a.png"), "att/a.png", "att/a.webp"
    )

    assert count == 2
    assert vault_builder.read("n.md") == (
        "![[a.webp|200]] and ![x](a.webp) but not xa.png or a.pngx\n"
    )


def test_rewrites_percent_encoded_links(vault_builder):
    vault_builder.note("n.md", "![x](My%20Pic.png)\n")
    store = vault_builder.vault()

    rewrite_references(
        store,
        _note(store, "n.md", "My%20Pic.png"),
        "att/My Pic.png",
        "att/My Pic.webp",
    )

    assert vault_builder.read("n.md") == "![x](My%20Pic.webp)\n"


def test_rewrites_canvas_json(vault_builder):
    canvas = {
        "nodes": [
            {"id": "1", "type": "file", "file": "att/a.png"},
            {"id": "2", "type": "file", "file": "att/b.png"},
        ]
    }
    vault_builder.write("board.canvas", json.dumps(canvas, indent=2))
    store = vault_builder.vault()
    document = ReferringDocument(
        store.resolve("board.canvas"), DocumentKind.CANVAS
    )

    count = rewrite_references(store, document, "att/a.png", "att/a.webp")

    assert count == 1
    data = json.loads(vault_builder.read("board.canvas"))
    assert [node["file"] for node in data["nodes"]] == [
        "att/a.webp",
        "att/b.png",
    ]


def test_canvas_only_rewrites_exact_file_nodes(vault_builder):
    canvas = {
        "nodes": [
            {"id": "1", "type": "file", "file": "a.png"},
            {"id": "2", "type": "file", "file": "photoa.png"},
            {"id": "3", "type": "file", "file": "sub/a.png"},
            {"id": "4", "type": "text", "text": "see a.png"},
            {
                "id": "5",
                "type": "group",
                "children": [{"id": "6", "type": "file", "file": "a.png"}],
            },
        ]
    }
    vault_builder.write("board.canvas", json.dumps(canvas))
    store = vault_builder.vault()
    document = ReferringDocument(
        store.resolve("board.canvas"), DocumentKind.CANVAS
    )

    count = rewrite_references(store, document, "a.png", "a.webp")

    assert count == 2
    nodes = json.loads(vault_builder.read("board.canvas"))["nodes"]
    assert [node.get("file") for node in nodes] == [
        "a.webp",
        "photoa.png",
        "sub/a.png",
        None,
        None,
    ]
    assert nodes[3]["text"] == "see a.png"
    assert nodes[4]["children"][0]["file"] == "a.webp"


def test_unchanged_document_is_not_written(vault_builder):
    vault_builder.note("n.md", "nothing here\n")
    store = FlakyStore(vault_builder.vault())

    count = rewrite_references(
        store, _note(store, "n.md", "a.png"), "a.png", "a.webp"
    )

    assert count == 0
    assert store.operations == []


def test_same_path_is_a_no_op(vault_builder):
    vault_builder.note("n.md", "![[a.png]]")
    store = FlakyStore(vault_builder.vault())

    assert rewrite_references(
        store, _note(store, "n.md"), "a.png", "a.png"
    ) == 0
    assert store.operations == []


@pytest.mark.parametrize(
    "link, expected",
    [
        ("a.png", "a.webp"),
        ("att/a.png", "att/a.webp"),
        ("../att/a.png", "../att/a.webp"),
        ("My%20a.png", None),
        ("xa.png", None),
        ("b.png", None),
    ],
)
def test_relink(link, expected):
    assert relink(link, "att/a.png", "att/a.webp") == expected


def test_external_urls_containing_the_name_are_left_alone(vault_builder):
    vault_builder.note(
        "n.md", "![](https://example.com/a.png)\n\n![[a.png]] a.png\n"
    )
    store = vault_builder.vault()

    count = rewrite_references(
        store, _note(store, "n.md", "a.png"), "a.png", "a.webp"
    )

    assert count == 1
    assert vault_builder.read("n.md") == (
        "![](https://example.com/a.png)\n\n![[a.webp]] a.png\n"
    )
