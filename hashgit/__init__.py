# -*- coding: utf-8 -*-
"""hashgit is a content-addressable object store. What does that mean?
Simply, that hashgit keeps blobs, trees and commits in a directory where each
record is saved under the SHA-1 of its content, using the same loose-object
format as git.

Typical use cases for this kind of system are ones where:

- Records are written once and never change.
- Identical content should be stored exactly once.
- Snapshots of a directory need a stable, verifiable id.
"""

from .__meta__ import (
    __title__,
    __summary__,
    __url__,
    __version__,
    __author__,
    __email__,
    __license__,
)

from .errors import (
    HashgitError,
    HashMismatch,
    InvalidArgument,
    IOFailure,
    Malformed,
    NotFound,
)
from .objects import Blob, Commit, ObjectId, PersonStamp, Tree, TreeEntry, Unknown
from .repository import Repository, find_root, init_repository
from .store import ObjectStore
from .tree import build_tree
from .utils import HashAddress


__all__ = (
    "Blob",
    "Commit",
    "HashAddress",
    "HashgitError",
    "HashMismatch",
    "IOFailure",
    "InvalidArgument",
    "Malformed",
    "NotFound",
    "ObjectId",
    "ObjectStore",
    "PersonStamp",
    "Repository",
    "Tree",
    "TreeEntry",
    "Unknown",
    "build_tree",
    "find_root",
    "init_repository",
)
