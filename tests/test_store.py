# -*- coding: utf-8 -*-

import os
import zlib

import pytest
from fs import memoryfs

from hashgit import (
    Blob,
    HashAddress,
    HashMismatch,
    InvalidArgument,
    Malformed,
    NotFound,
    ObjectId,
    ObjectStore,
    Tree,
    TreeEntry,
)
from hashgit.objects import MODE_FILE


EMPTY_BLOB = "e69de29bb2d1d6434b8b29ae775ad8c2e48c5391"


@pytest.fixture
def testpath(tmpdir):
    return tmpdir.mkdir("repo")


@pytest.fixture
def store(testpath):
    return ObjectStore(str(testpath))


@pytest.fixture
def memstore():
    return ObjectStore(memoryfs.MemoryFS())


def put_range(store, count):
    return dict(
        (address.id, address)
        for address in (store.save(Blob("{0}".format(i).encode())) for i in range(count))
    )


def assert_object_saved(store, testpath, address):
    dir_parts = address.relpath.split("/")

    assert dir_parts[0] == "objects"
    assert len(dir_parts[1]) == 2
    assert len(dir_parts[2]) == 38
    assert "".join(dir_parts[1:]) == address.id.hex
    assert os.path.isfile(str(testpath.join(address.relpath)))
    assert store.exists(address.id)


def test_store_save(store, testpath):
    address = store.save(Blob(b""))

    assert isinstance(address, HashAddress)
    assert address.id.hex == EMPTY_BLOB
    assert address.relpath == "objects/e6/9de29bb2d1d6434b8b29ae775ad8c2e48c5391"
    assert not address.is_duplicate
    assert_object_saved(store, testpath, address)

    with open(str(testpath.join(address.relpath)), "rb") as fileobj:
        assert zlib.decompress(fileobj.read()) == b"blob 0\x00"


def test_store_save_duplicate(store, testpath):
    address_a = store.save(Blob(b"foo"))
    path = str(testpath.join(address_a.relpath))
    with open(path, "rb") as fileobj:
        before = fileobj.read()

    address_b = store.save(Blob(b"foo"))

    assert not address_a.is_duplicate
    assert address_b.is_duplicate
    assert address_a.id == address_b.id
    with open(path, "rb") as fileobj:
        assert fileobj.read() == before
    assert store.count() == 1


def test_store_save_replaces_truncated(store, testpath):
    blob = Blob(b"hello world" * 100)
    data = blob.encode()
    path = testpath.join("objects", blob.id.hex[:2], blob.id.hex[2:])
    path.dirpath().ensure(dir=True)
    path.write_binary(data[:len(data) // 2])

    address = store.save(blob)

    assert not address.is_duplicate
    assert path.read_binary() == data
    assert store.find(blob.id) == blob
    assert store.count() == 1


def test_store_save_replaces_wrong_content(memstore):
    blob = Blob(b"foo")
    path = "objects/{0}/{1}".format(blob.id.hex[:2], blob.id.hex[2:])
    memstore.fs.makedirs("objects/" + blob.id.hex[:2])
    memstore.fs.writebytes(path, Blob(b"bar").encode())

    address = memstore.save(blob)

    assert not address.is_duplicate
    assert memstore.find(blob.id) == blob
    assert memstore.fs.listdir("objects/" + blob.id.hex[:2]) == [blob.id.hex[2:]]


def test_store_save_leaves_no_temporary_files(store, testpath):
    address = store.save(Blob(b"foo"))

    assert testpath.join(address.relpath).dirpath().listdir() == [
        testpath.join(address.relpath)
    ]


def test_store_save_level(testpath):
    store = ObjectStore(str(testpath), level=9)
    address = store.save(Blob(b"foo" * 100))

    assert store.find(address.id) == Blob(b"foo" * 100)


@pytest.mark.parametrize(
    "key",
    [
        lambda oid: oid,
        lambda oid: oid.hex,
        lambda oid: oid.hex.upper(),
        lambda oid: oid.hex[:4],
        lambda oid: oid.hex[:11],
    ],
)
def test_store_find(store, key):
    blob = Blob(b"foo\n")
    address = store.save(blob)

    found = store.find(key(address.id))

    assert found == blob
    assert found.id == address.id


def test_store_find_tree(memstore):
    blob = memstore.save(Blob(b"a")).id
    tree = Tree.from_entries([TreeEntry(MODE_FILE, "a.txt", blob)])
    address = memstore.save(tree)

    assert memstore.find(address.id) == tree


def test_store_find_uppercase_path():
    filesystem = memoryfs.MemoryFS()
    filesystem.makedirs("objects/E6")
    filesystem.writebytes("objects/E6/" + EMPTY_BLOB[2:].upper(), Blob(b"").encode())
    store = ObjectStore(filesystem)

    assert store.find(EMPTY_BLOB) == Blob(b"")
    assert list(store) == [ObjectId.from_hex(EMPTY_BLOB)]


def test_store_find_negative_utc_commit(memstore):
    payload = (
        b"tree " + b"01" * 20 + b"\n"
        b"author A <a@b> 1 -0000\n"
        b"committer A <a@b> 1 -0000\n"
        b"\nmsg\n"
    )
    oid = ObjectId.for_payload("commit", payload)
    memstore.fs.makedirs("objects/" + oid.hex[:2])
    memstore.fs.writebytes(
        "objects/{0}/{1}".format(oid.hex[:2], oid.hex[2:]),
        zlib.compress(b"commit %d\x00" % len(payload) + payload),
    )

    commit = memstore.find(oid.hex)

    assert commit.id == oid
    assert commit.author.serialize() == "A <a@b> 1 -0000"


def test_store_find_uppercase_commit_ids(memstore):
    payload = (
        b"tree " + b"AB" * 20 + b"\n"
        b"author A <a@b> 1 +0000\n"
        b"committer A <a@b> 1 +0000\n"
        b"\nmsg\n"
    )
    oid = ObjectId.for_payload("commit", payload)
    memstore.fs.makedirs("objects/" + oid.hex[:2])
    memstore.fs.writebytes(
        "objects/{0}/{1}".format(oid.hex[:2], oid.hex[2:]),
        zlib.compress(b"commit %d\x00" % len(payload) + payload),
    )

    assert memstore.find(oid).tree == ObjectId(b"\xab" * 20)
    assert list(memstore.corrupted()) == []


def test_store_find_not_found(store):
    with pytest.raises(NotFound):
        store.find(EMPTY_BLOB)

    store.save(Blob(b"foo"))

    with pytest.raises(NotFound):
        store.find(EMPTY_BLOB)
    with pytest.raises(NotFound):
        store.find(EMPTY_BLOB[:6])


@pytest.mark.parametrize("key", ["", "e69", "xyz0", "g" * 40, EMPTY_BLOB + "0"])
def test_store_find_invalid(store, key):
    with pytest.raises(InvalidArgument):
        store.find(key)


def test_store_find_ambiguous(memstore):
    memstore.fs.makedirs("objects/ab")
    memstore.fs.writebytes("objects/ab/cd" + "0" * 36, Blob(b"").encode())
    memstore.fs.writebytes("objects/ab/cd" + "1" * 36, Blob(b"").encode())

    with pytest.raises(InvalidArgument):
        memstore.find("abcd")


def test_store_find_length_mismatch(memstore):
    path = "objects/e6/" + EMPTY_BLOB[2:]
    memstore.fs.makedirs("objects/e6")
    memstore.fs.writebytes(path, zlib.compress(b"blob 5\x00foo"))

    with pytest.raises(Malformed):
        memstore.find(EMPTY_BLOB)


def test_store_find_hash_mismatch(store, testpath):
    address = store.save(Blob(b"foo"))
    with open(str(testpath.join(address.relpath)), "wb") as fileobj:
        fileobj.write(Blob(b"bar").encode())

    with pytest.raises(HashMismatch) as excinfo:
        store.find(address.id)

    assert excinfo.value.expected == address.id
    assert excinfo.value.actual == Blob(b"bar").id


def test_store_corrupted(store, testpath):
    good = store.save(Blob(b"good"))
    bad = store.save(Blob(b"foo"))
    with open(str(testpath.join(bad.relpath)), "wb") as fileobj:
        fileobj.write(Blob(b"bar").encode())

    corrupted = list(store.corrupted())

    assert corrupted == [(bad.relpath, Blob(b"bar").id)]
    assert store.exists(good.id)
    assert store.exists(bad.id)


def test_store_exists(store):
    address = store.save(Blob(b"foo"))

    assert store.exists(address.id)
    assert store.exists(address.id.hex)
    assert address.id in store
    assert address.id.hex in store
    assert EMPTY_BLOB not in store


def test_store_files(store):
    count = 5
    addresses = put_range(store, count)
    files = list(store.files())

    assert len(files) == count
    assert set(files) == set(addresses)


def test_store_iter(store):
    count = 5
    addresses = put_range(store, count)

    assert set(store) == set(addresses)


def test_store_count(store):
    assert store.count() == 0

    put_range(store, 5)

    assert store.count() == 5
    assert len(store) == 5


def test_store_ignores_foreign_files(memstore):
    put_range(memstore, 2)
    memstore.fs.makedirs("objects/info")
    memstore.fs.writetext("objects/info/packs", "")

    assert memstore.count() == 2


def test_store_missing_root(tmpdir):
    with pytest.raises(NotFound):
        ObjectStore(str(tmpdir.join("missing")))
