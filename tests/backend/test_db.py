import threading
from typing import Any

import pytest

from bucketmap_lib import (
    DB,
    BucketNotEmptyError,
    BucketNotFoundError,
    EncodingError,
    IncompatibleValueError,
    MapperConfig,
    Model,
    NotFoundError,
    Params,
    PreconditionError,
    StoreError,
    open_db,
)
from tests.helpers import Note, Person, save_people


def test_open(tmp_path):
    path = tmp_path / "sub" / "test.db"
    db = open_db(path, log_operations=True)
    assert db.file == str(path)
    assert db.is_open
    assert db.log is True
    db.close()
    assert not db.is_open
    # closing twice is harmless
    db.close()


def test_open_error(tmp_path):
    blocker = tmp_path / "file"
    blocker.write_text("x")
    with pytest.raises(StoreError):
        DB.open(blocker / "test.db")


def test_closed_db_rejects_calls(tmp_path):
    db = DB.open(tmp_path / "test.db")
    db.close()
    with pytest.raises(PreconditionError):
        db.save(["people"], Person())
    with pytest.raises(PreconditionError):
        db.find(["people"], "1", Person)
    assert db.count(["people"]) == 0


@pytest.mark.parametrize("path", [[], ()])
def test_empty_path_rejected(db, path):
    with pytest.raises(PreconditionError):
        db.save(path, Person())
    with pytest.raises(PreconditionError):
        db.list(path, [], Person)
    with pytest.raises(PreconditionError):
        db.get(path, "1")
    assert db.count(path) == 0


def test_save(db):
    p = Person(name="John Doe")
    assert db.save(["people"], p) == "1"
    assert p.id == "1"
    assert p.active is False
    assert p.created is not None

    p.active = True
    db.save(["people"], p)
    assert p.id == "1"
    assert db.find(["people"], "1", Person).active is True
    assert db.count(["people"]) == 1


def test_ids_increase_per_bucket(db):
    ids = [p.id for p in save_people(db, ["a"], "x", "y", "z")]
    assert ids == ["1", "2", "3"]
    assert save_people(db, ["b"], "w")[0].id == "1"
    assert save_people(db, ["a", "nested"], "v")[0].id == "1"


def test_find_roundtrip(db):
    p = Person(name="John Doe")
    db.save(["people"], p)

    p1 = db.find(["people"], p.id, Person)
    assert p1 == p

    target = Person()
    assert db.find(["people"], p.id, target) is target
    assert target == p


def test_find_missing(db):
    with pytest.raises(NotFoundError):
        db.find(["nobody"], "1", Person)
    db.save(["people"], Person(name="x"))
    assert db.find(["people"], "42", Person).id == ""


def test_caller_supplied_id_is_upsert(db):
    n = Note(id="intro", title="v1")
    db.save(["notes"], n)
    n.title = "v2"
    db.save(["notes"], n)
    assert db.count(["notes"]) == 1
    assert db.find(["notes"], "intro", Note).title == "v2"
    # sequence untouched by explicit ids
    assert db.save(["notes"], Note(title="auto")) == "1"


def test_list(db):
    p, p1 = save_people(db, ["peoplelist"], "John Doe", "John1 Doe")

    res = db.list(["peoplelist"], [], Person)
    assert res == [p, p1]

    missing = []
    with pytest.raises(NotFoundError):
        db.list(["nope"], missing, Person)


def test_list_destination_checks(db):
    save_people(db, ["people"], "a")
    with pytest.raises(PreconditionError):
        db.list(["people"], None, Person)
    with pytest.raises(PreconditionError):
        db.list(["people"], (), Person)
    with pytest.raises(PreconditionError):
        db.list(["people"], [], Person, {"limit": 1})


@pytest.mark.parametrize("offset,limit", [(0, 3), (2, 3), (8, 5), (10, 1), (0, 0), (4, 100)])
def test_list_pagination(db, offset, limit):
    people = save_people(db, ["paged"], *[f"p{i}" for i in range(1, 10)])
    res = db.list(["paged"], [], Person, Params(offset=offset, limit=limit))
    assert len(res) == max(0, min(limit, 9 - offset))
    assert res == people[offset:offset + limit]


def test_list_reverse(db):
    people = save_people(db, ["rev"], "a", "b", "c", "d")
    res = db.list(["rev"], [], Person, Params(offset=1, limit=2, reverse=True))
    assert [r.name for r in res] == ["c", "b"]
    assert db.list(["rev"], [], Person, Params(reverse=True)) == people[::-1]


def test_list_skips_empty_values_and_buckets(db):
    save_people(db, ["mixed"], "a")
    db.save_value(["mixed"], "5", b"")
    db.save_value(["mixed", "child"], "1", b"x")
    res = db.list(["mixed"], [], Person)
    assert [r.name for r in res] == ["a"]


def test_list_decode_error_keeps_partial(db):
    save_people(db, ["broken"], "a")
    db.save_value(["broken"], "1x", b"{not json")
    save_people(db, ["broken"], "c")
    dest = []
    with pytest.raises(EncodingError):
        db.list(["broken"], dest, Person)
    assert [r.name for r in dest] == ["a"]


def test_default_limit_from_config(tmp_path):
    with DB.open(tmp_path / "t.db", MapperConfig(default_limit=2)) as db:
        save_people(db, ["people"], "a", "b", "c")
        assert len(db.list(["people"], [], Person)) == 2


def test_list_keys(db):
    p, p1, p2, p3 = save_people(db, ["list2"], "John Doe", "John1 Doe", "John2 Doe", "John3 Doe")
    res = db.list_keys(["list2"], [p3.id, p.id, "11111"], [], Person)
    assert res == [p3, p]


def test_list_items_and_values(db):
    save_people(db, ["peoplelist1"], "John Doe", "John1 Doe")
    db.save_value(["peoplelist1", "sub"], "k", b"v")

    items = db.list_items(["peoplelist1"])
    assert list(items) == ["1", "2", "sub"]
    assert items["sub"] is None
    assert b"John1 Doe" in items["2"]

    assert len(db.list_items(["peoplelist1"], Params(limit=1))) == 1
    assert len(db.values(["peoplelist1"])) == 3
    assert db.values(["peoplelist1"], Params(offset=2)) == [None]


def test_save_value_and_get(db):
    db.save_value(["raw", "deep"], "key", b"\x00\x01")
    db.save_value(["raw", "deep"], "text", "hello")
    assert db.get(["raw", "deep"], "key") == b"\x00\x01"
    assert db.get(["raw", "deep"], "text") == b"hello"
    assert db.get(["raw", "deep"], "missing") is None
    with pytest.raises(NotFoundError):
        db.get(["raw", "other"], "key")


def test_delete(db):
    p = Person(name="John Doe")
    db.save(["people1"], p)
    db.save(["people1"], Person(name="other"))
    assert db.count(["people1"]) == 2

    db.delete(["people1"], p)

    assert db.find(["people1"], p.id, Person).id == ""
    assert db.count(["people1"]) == 1
    # ids are not reused after deletion
    assert db.save(["people1"], Person(name="new")) == "3"


def test_delete_keys(db):
    save_people(db, ["people"], "a", "b", "c")
    db.delete_keys(["people"], ["1", "3", "404"])
    assert [p.name for p in db.list(["people"], [], Person)] == ["b"]
    with pytest.raises(NotFoundError):
        db.delete_keys(["nope"], ["1"])


def test_delete_bucket(db):
    db.save_value(["buck1", "buck2"], "1", b"2")

    with pytest.raises(IncompatibleValueError):
        db.delete_buckets(["buck1", "buck2"], ["1"])

    db.delete_buckets(["buck1"], ["buck2"])
    assert db.list_items(["buck1"]) == {}


def test_delete_bucket_with_children_fails_atomically(db):
    db.save_value(["root", "empty"], "k", b"v")
    db.delete_keys(["root", "empty"], ["k"])
    db.save_value(["root", "parent", "child"], "k", b"v")

    with pytest.raises(BucketNotEmptyError):
        db.delete_buckets(["root"], ["empty", "parent"])
    # nothing deleted
    assert list(db.list_items(["root"])) == ["empty", "parent"]

    db.delete_buckets(["root"], ["empty"])
    assert list(db.list_items(["root"])) == ["parent"]


def test_delete_bucket_value_policy(tmp_path):
    with DB.open(tmp_path / "t.db", MapperConfig(purge_bucket_values=False)) as db:
        db.save_value(["a", "b"], "k", b"v")
        with pytest.raises(BucketNotEmptyError):
            db.delete_buckets(["a"], ["b"])
        db.delete_buckets(["a"], ["b"], purge_values=True)
        assert db.list_items(["a"]) == {}


def test_delete_missing_bucket(db):
    db.save_value(["a"], "k", b"v")
    with pytest.raises(BucketNotFoundError):
        db.delete_buckets(["a"], ["missing"])
    with pytest.raises(NotFoundError):
        db.delete_buckets(["nope"], ["x"])


class Blob(Model):
    payload: Any = None


def test_failed_save_rolls_back(db):
    b = Blob(payload=object())
    with pytest.raises(EncodingError):
        db.save(["blobs"], b)
    assert b.id == ""
    assert db.count(["blobs"]) == 0

    ok = Blob(payload={"x": 1})
    assert db.save(["blobs"], ok) == "1"


class Plain:
    def __init__(self):
        self.id = ""


def test_unsupported_type_is_encoding_error(db):
    p = Plain()
    with pytest.raises(EncodingError):
        db.save(["plain"], p)
    assert p.id == ""
    assert db.count(["plain"]) == 0

    db.save_value(["plain"], "1", b'{"id": "1"}')
    with pytest.raises(EncodingError):
        db.find(["plain"], "1", Plain)


def test_concurrent_creation(db):
    ids = []
    lock = threading.Lock()

    def worker():
        p = Person(name="John Doe")
        db.save(["pep31"], p)
        with lock:
            ids.append(p.id)

    threads = [threading.Thread(target=worker) for _ in range(100)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(set(ids)) == 100
    assert len(db.list(["pep31"], [], Person)) == 100
    assert db.count(["pep31"]) == 100


def test_count(db):
    assert db.count(["never"]) == 0
    save_people(db, ["pep311"], *["x"] * 10)
    assert db.count(["pep311"]) == 10


def test_events(db):
    got = []
    for name in ("PersonCreated", "PersonUpdated", "PersonDeleted"):
        db.events.subscribe(name, got.append)

    p = Person(name="John Doe")
    db.save(["people"], p)
    db.events.join()
    assert [(e.name, e.payload) for e in got] == [("PersonCreated", p)]

    db.save(["people"], p)
    db.events.join()
    assert [e.name for e in got] == ["PersonCreated", "PersonUpdated"]

    db.delete(["people"], p)
    db.events.join()
    assert [e.name for e in got] == ["PersonCreated", "PersonUpdated", "PersonDeleted"]


def test_failed_write_emits_nothing(db):
    got = []
    db.events.subscribe("BlobCreated", got.append)
    with pytest.raises(EncodingError):
        db.save(["blobs"], Blob(payload=object()))
    db.events.join()
    assert got == []


def test_subscriber_errors_do_not_affect_writes(db):
    def boom(event):
        raise RuntimeError("subscriber failure")

    db.events.subscribe("PersonCreated", boom)
    assert db.save(["people"], Person(name="a")) == "1"
    db.events.join()


def test_yaml_codec(tmp_path):
    with DB.open(tmp_path / "t.db", MapperConfig(codec="yaml")) as db:
        n = Note(title="yaml", tags=["a"])
        db.save(["notes"], n)
        assert db.get(["notes"], n.id).startswith(b"id: '1'")
        assert db.find(["notes"], n.id, Note) == n


def test_operation_logging(tmp_path, caplog):
    import logging

    caplog.set_level(logging.INFO, logger="bucketmap_lib.oplog")
    with open_db(tmp_path / "t.db", log_operations=True) as db:
        db.save(["people"], Person(name="logged"))
        with pytest.raises(NotFoundError):
            db.find(["missing"], "1", Person)
    messages = [r.getMessage() for r in caplog.records]
    assert any("SAVE people:" in m and "logged" in m for m in messages)
    assert any("FIND missing:1" in m and "Error:" in m for m in messages)
