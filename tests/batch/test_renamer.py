from __future__ import annotations

from vault_images.batch.config import ConflictMode
from vault_images.batch.renamer import resolve_conflict


def test_increment_returns_free_name_unchanged(vault_builder):
    store = vault_builder.vault()

    assert (
        resolve_conflict(store, "", "a.webp", ConflictMode.INCREMENT)
        == "a.webp"
    )


def test_increment_appends_first_free_counter(vault_builder):
    store = vault_builder.create(
        {"att": {"a.webp": b"1", "a-1.webp": b"2", "a-3.webp": b"3"}}
    )

    assert (
        resolve_conflict(store, "att", "a.webp", ConflictMode.INCREMENT)
        == "a-2.webp"
    )


def test_increment_is_scoped_to_destination_folder(vault_builder):
    store = vault_builder.create({"other": {"a.webp": b"1"}, "att": None})

    assert (
        resolve_conflict(store, "att", "a.webp", ConflictMode.INCREMENT)
        == "a.webp"
    )


def test_reuse_returns_desired_name_even_when_taken(vault_builder):
    store = vault_builder.create({"a.webp": b"1"})

    assert resolve_conflict(store, "", "a.webp") == "a.webp"
    assert (
        resolve_conflict(store, "", "a.webp", ConflictMode.REUSE) == "a.webp"
    )
