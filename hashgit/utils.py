# -*- coding: utf-8 -*-


"""
common utils for hashgit
"""


import string
from collections import namedtuple
from contextlib import contextmanager
from typing import List, Union

import fs as pyfs
from fs.base import FS

from .errors import IOFailure, NotFound


HEXDIGITS = frozenset(string.hexdigits)


class HashAddress(namedtuple("HashAddress", ["id", "relpath", "is_duplicate"])):
    """Location of a stored object.

    Attributes:
        id (ObjectId): Content id of the object.
        relpath (str): Path of the loose object relative to the repository
            root.
        is_duplicate (bool): Whether the object was already present when it
            was saved.
    """

    def __new__(cls, id, relpath, is_duplicate=False):
        return super(HashAddress, cls).__new__(cls, id, relpath, is_duplicate)


def compact(items):
    """Return only truthy elements of `items`."""
    return [item for item in items if item]


def is_hex(text: str) -> bool:
    return bool(text) and all(char in HEXDIGITS for char in text)


def shard(digest, depth, width) -> List[str]:
    # This creates a list of `depth` number of tokens with width
    # `width` from the first part of the id plus the remainder.
    return compact(
        [digest[i * width : width * (i + 1)] for i in range(depth)]
        + [digest[depth * width :]]
    )


def load_fs(root: Union[FS, str], create: bool = False) -> FS:
    """Return `root` if it already is a filesystem, else open the directory it
    names.

    Raises:
        NotFound: If `root` is a path that does not exist and `create` is
            false.
    """
    if isinstance(root, FS):
        return root

    with fs_errors("open", root):
        return pyfs.open_fs(root, create=create)


@contextmanager
def fs_errors(action: str, path: str):
    """Translate PyFilesystem errors raised inside the block into hashgit
    errors.
    """
    try:
        yield
    except (pyfs.errors.ResourceNotFound, pyfs.errors.CreateFailed) as exc:
        raise NotFound("cannot {0} {1!r}: no such file or directory".format(
            action, path)) from exc
    except pyfs.errors.FSError as exc:
        raise IOFailure("cannot {0} {1!r}: {2}".format(action, path, exc)) from exc
