from pathlib import Path

import pytest

from booktalk.exceptions import ConfigError, StoreError
from booktalk.storage.database import get_engine, make_session_factory, normalize_url
from booktalk.storage.models import Annotation, AnnotationType, Book
from booktalk.storage.store import RecordStore

# ---------- Books ----------


def test_add_and_find_book(store: RecordStore) -> None:
    book = store.add_book("Middlemarch", author="George Eliot", isbn="9780141439549")

    found = store.find_book(book.id)
    assert found is not None
    assert found.title == "Middlemarch"
    assert found.author == "George Eliot"
    assert found.archived is False
    assert found.created_at == book.created_at


def test_find_book_unknown_returns_none(store: RecordStore) -> None:
    assert store.find_book("NOPE") is None


def test_blank_title_is_rejected(store: RecordStore) -> None:
    with pytest.raises(ValueError):
        store.add_book("   ")


def test_list_books_most_recently_updated_first(store: RecordStore) -> None:
    a = store.add_book("A")
    b = store.add_book("B")
    c = store.add_book("C")
    assert [x.id for x in store.list_books()] == [c.id, b.id, a.id]

    # Saving refreshes updated_at and moves the book to the front
    a.author = "Someone"
    saved = store.save_book(a)
    assert saved.updated_at > c.updated_at
    assert [x.id for x in store.list_books()] == [a.id, c.id, b.id]


def test_archived_books_are_listed_separately(store: RecordStore) -> None:
    kept = store.add_book("Kept")
    shelved = store.add_book("Shelved")

    archived = store.set_archived(shelved.id, True)
    assert archived is not None and archived.archived is True

    assert [b.id for b in store.list_books()] == [kept.id]
    assert [b.id for b in store.list_books(archived=True)] == [shelved.id]

    toggled = store.toggle_archived(shelved.id)
    assert toggled is not None and toggled.archived is False
    assert {b.id for b in store.list_books()} == {kept.id, shelved.id}


def test_toggle_archived_unknown_book(store: RecordStore) -> None:
    assert store.toggle_archived("missing") is None
    assert store.set_archived("missing", True) is None


def test_save_book_upserts_existing_row(store: RecordStore) -> None:
    book = store.add_book("Draft title")
    book.title = "Final title"
    store.save_book(book)

    assert store.find_book(book.id).title == "Final title"
    assert len(store.list_books()) == 1


def test_save_book_assigns_identity_to_new_instance(store: RecordStore) -> None:
    saved = store.save_book(Book(title="Fresh"))
    assert saved.id
    assert saved.archived is False
    assert store.find_book(saved.id) is not None


# ---------- Annotations ----------


def test_annotations_for_book_newest_first_and_counted(store: RecordStore) -> None:
    book = store.add_book("Dune")
    other = store.add_book("Emma")
    first = store.add_annotation(book.id, "text", caption="first")
    second = store.add_annotation(book.id, AnnotationType.TEXT, caption="second")
    store.add_annotation(other.id, "text", caption="elsewhere")

    listed = store.list_annotations_for_book(book.id)
    assert [a.id for a in listed] == [second.id, first.id]
    assert store.count_annotations_for_book(book.id) == 2
    assert store.count_annotations_for_book(other.id) == 1
    assert store.count_annotations_for_book("missing") == 0


def test_find_annotation_roundtrips_fields(store: RecordStore) -> None:
    book = store.add_book("Dune")
    created = store.add_annotation(
        book.id, "audio", audio_path="a.m4a", duration=12.5, page_number="p. 42"
    )

    found = store.find_annotation(created.id)
    assert found is not None
    assert found.type is AnnotationType.AUDIO
    assert found.audio_path == "a.m4a"
    assert found.duration == 12.5
    assert found.page_number == "p. 42"
    assert found.transcription is None
    assert store.find_annotation("missing") is None


@pytest.mark.parametrize(
    "kind, paths",
    [
        ("audio", {}),
        ("image", {"audio_path": "x.m4a"}),
        ("video", {"video_path": "v.mov", "image_path": "i.jpg"}),
        ("text", {"image_path": "i.jpg"}),
    ],
)
def test_media_paths_must_match_type(store: RecordStore, kind: str, paths: dict) -> None:
    book = store.add_book("Dune")
    with pytest.raises(ValueError):
        store.add_annotation(book.id, kind, **paths)
    assert store.count_annotations_for_book(book.id) == 0


def test_unknown_annotation_type_rejected(store: RecordStore) -> None:
    book = store.add_book("Dune")
    with pytest.raises(ValueError):
        store.add_annotation(book.id, "sketch")


def test_annotation_for_missing_book_raises_store_error(store: RecordStore) -> None:
    with pytest.raises(StoreError):
        store.add_annotation("no-such-book", "text", caption="orphan")


def test_update_text_targets_transcription_for_audio(store: RecordStore) -> None:
    book = store.add_book("Dune")
    audio = store.add_annotation(book.id, "audio", audio_path="a.m4a")
    note = store.add_annotation(book.id, "text", caption="old")

    updated_audio = store.update_text(audio.id, "spoken words", "12")
    updated_note = store.update_text(note.id, "new", None)

    assert updated_audio.transcription == "spoken words"
    assert updated_audio.caption is None
    assert updated_audio.page_number == "12"
    assert updated_note.caption == "new"
    assert store.find_annotation(note.id).caption == "new"


def test_single_field_updates(store: RecordStore) -> None:
    book = store.add_book("Dune")
    photo = store.add_annotation(book.id, "image", image_path="p.jpg")

    store.update_caption(photo.id, "margin scribbles")
    store.update_page_number(photo.id, "xii")
    found = store.find_annotation(photo.id)
    assert found.caption == "margin scribbles"
    assert found.page_number == "xii"

    assert store.update_transcription("missing", "x") is None


def test_save_annotation_upserts(store: RecordStore) -> None:
    book = store.add_book("Dune")
    note = store.add_annotation(book.id, "text", caption="v1")
    note.caption = "v2"
    store.save_annotation(note)

    assert store.find_annotation(note.id).caption == "v2"
    assert store.count_annotations_for_book(book.id) == 1


def test_delete_annotation_removes_media(store: RecordStore, media_root: Path) -> None:
    book = store.add_book("Dune")
    audio_file = media_root / "audio" / "rec.m4a"
    audio_file.parent.mkdir(parents=True)
    audio_file.write_bytes(b"\x00\x01")
    audio = store.add_annotation(book.id, "audio", audio_path="rec.m4a")

    assert store.delete_annotation(audio.id) is True
    assert store.find_annotation(audio.id) is None
    assert not audio_file.exists()
    assert store.delete_annotation(audio.id) is False


def test_list_and_paginate_annotations_newest_first(store: RecordStore) -> None:
    book = store.add_book("Dune")
    created = [store.add_annotation(book.id, "text", caption=f"n{i}") for i in range(5)]
    newest_first = [a.id for a in reversed(created)]

    assert [a.id for a in store.list_annotations()] == newest_first
    assert [a.id for a in store.list_annotations(limit=2)] == newest_first[:2]
    assert [a.id for a in store.paginate_annotations(2, 2)] == newest_first[2:4]
    assert store.paginate_annotations(2, 10) == []


def test_find_books_batch_skips_unknown(store: RecordStore) -> None:
    a = store.add_book("A")
    b = store.add_book("B")

    books = store.find_books([a.id, b.id, a.id, "gone"])
    assert set(books) == {a.id, b.id}
    assert store.find_books([]) == {}


# ---------- Cascade ----------


def test_delete_book_cascades_to_annotations_and_media(
    store: RecordStore, media_root: Path
) -> None:
    book = store.add_book("Dune", cover_image_path="cover.jpg")
    keep = store.add_book("Emma")
    (media_root / "covers").mkdir(parents=True)
    (media_root / "covers" / "cover.jpg").write_bytes(b"jpg")
    (media_root / "images").mkdir(parents=True)
    (media_root / "images" / "page.jpg").write_bytes(b"jpg")

    ids = [
        store.add_annotation(book.id, "text", caption="sandworm").id,
        store.add_annotation(book.id, "image", image_path="page.jpg", caption="sandworm map").id,
        store.add_annotation(book.id, "audio", audio_path="never-written.m4a").id,
    ]
    survivor = store.add_annotation(keep.id, "text", caption="sandworm cameo")

    assert store.delete_book(book.id) is True

    assert store.find_book(book.id) is None
    assert all(store.find_annotation(i) is None for i in ids)
    assert store.count_annotations_for_book(book.id) == 0
    assert not (media_root / "covers" / "cover.jpg").exists()
    assert not (media_root / "images" / "page.jpg").exists()
    assert store.find_annotation(survivor.id) is not None
    assert store.delete_book(book.id) is False


# ---------- Errors / configuration ----------


def test_unreachable_database_raises_store_error(tmp_path: Path) -> None:
    engine = get_engine(str(tmp_path / "no" / "such" / "dir" / "db.sqlite"))
    store = RecordStore(make_session_factory(engine))
    with pytest.raises(StoreError):
        store.find_book("x")


def test_missing_schema_raises_store_error(tmp_path: Path) -> None:
    engine = get_engine(str(tmp_path / "empty.sqlite"))
    store = RecordStore(make_session_factory(engine))
    with pytest.raises(StoreError):
        store.list_books()


def test_normalize_url() -> None:
    assert normalize_url("sqlite:///x.db") == "sqlite:///x.db"
    assert normalize_url("/var/data/x.db") == "sqlite:////var/data/x.db"
    with pytest.raises(ConfigError):
        normalize_url("postgresql://user:pw@host/db")


def test_annotation_validate_directly() -> None:
    Annotation(type=AnnotationType.TEXT, caption="ok").validate()
    Annotation(type=AnnotationType.VIDEO, video_path="v.mov").validate()
    with pytest.raises(ValueError):
        Annotation(type=AnnotationType.VIDEO, image_path="i.jpg").validate()


# ---------- Ranked matches ----------


def test_match_annotations_loads_rows_and_ranks_in_one_statement(store: RecordStore) -> None:
    from sqlalchemy import event

    book = store.add_book("Dune")
    note = store.add_annotation(book.id, "text", caption="the spice must flow", page_number="4")
    store.add_annotation(book.id, "text", caption="nothing relevant")

    statements: list = []

    def record(conn, cursor, statement, parameters, context, executemany) -> None:  # noqa: ANN001
        statements.append(statement)

    event.listen(store.engine, "before_cursor_execute", record)
    try:
        matches = store.match_annotations('"spice"*', 10)
    finally:
        event.remove(store.engine, "before_cursor_execute", record)

    assert len(statements) == 1
    assert len(matches) == 1
    found, rank = matches[0]
    assert found.id == note.id
    assert found.book_id == book.id
    assert found.type is AnnotationType.TEXT
    assert found.caption == "the spice must flow"
    assert found.page_number == "4"
    assert rank <= 0
