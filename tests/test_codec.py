# -*- coding: utf-8 -*-

import zlib

import pytest

from hashgit import Malformed, codec


def test_codec_encode():
    data = codec.encode("blob", b"foo")

    assert zlib.decompress(data) == b"blob 3\x00foo"


def test_codec_encode_empty():
    assert zlib.decompress(codec.encode("tree", b"")) == b"tree 0\x00"


@pytest.mark.parametrize("level", [0, 1, 9])
def test_codec_decode(level):
    assert codec.decode(codec.encode("commit", b"a\nb\x00c", level)) == (
        "commit",
        b"a\nb\x00c",
    )


def test_codec_decode_keeps_unknown_kind():
    assert codec.decode(zlib.compress(b"tag 2\x00ok")) == ("tag", b"ok")


@pytest.mark.parametrize(
    "raw",
    [
        b"blob 5\x00foo",
        b"blob 2\x00foo",
        b"blob 3",
        b"blob\x00",
        b" 3\x00foo",
        b"blob x\x00",
        b"blob -3\x00foo",
        b"blob \x00",
        b"\xff\xfe 3\x00foo",
    ],
)
def test_codec_decode_malformed(raw):
    with pytest.raises(Malformed):
        codec.decode(zlib.compress(raw))


def test_codec_decode_not_compressed():
    with pytest.raises(Malformed):
        codec.decode(b"blob 3\x00foo")
