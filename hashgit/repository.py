"""Repository level operations backing the command line."""

import logging
import os
import time
from pathlib import Path
from typing import Iterable, Mapping, Optional, Tuple, Union

import fs as pyfs
from fs.base import FS

from . import codec
from .errors import InvalidArgument, NotFound
from .objects import Blob, Commit, Object, ObjectId, PersonStamp, Tree
from .store import Key, ObjectStore
from .tree import build_tree
from .utils import fs_errors, load_fs

logger = logging.getLogger(__name__)

GIT_DIR = ".git"
HEAD = "HEAD"
HEAD_CONTENTS = "ref: refs/heads/master\n"

DEFAULT_NAME = "hashgit"
DEFAULT_EMAIL = "hashgit@localhost"


def init_repository(root: Union[FS, str] = ".") -> "Repository":
    """Create an empty repository in `root`. Running it again on an existing
    repository leaves its contents alone.
    """
    worktree = load_fs(root, create=True)

    with fs_errors("initialize", GIT_DIR):
        worktree.makedirs(pyfs.path.join(GIT_DIR, "objects"), recreate=True)
        worktree.makedirs(pyfs.path.join(GIT_DIR, "refs"), recreate=True)
        head = pyfs.path.join(GIT_DIR, HEAD)
        if not worktree.exists(head):
            worktree.writetext(head, HEAD_CONTENTS)

    logger.debug("Initialized repository in %s", worktree)
    return Repository(worktree)


def find_root(start: str = ".") -> str:
    """Return the nearest directory at or above `start` that contains a
    ``.git`` directory.

    Raises:
        NotFound: If no such directory exists up to the filesystem root.
    """
    path = Path(start).resolve()
    for candidate in (path, *path.parents):
        if (candidate / GIT_DIR).is_dir():
            return str(candidate)
    raise NotFound("not a repository (or any parent up to /): {0}".format(path))


def read_file(path: str) -> bytes:
    """Return the contents of the file at the system path `path`."""
    directory, name = os.path.split(os.path.abspath(path))
    with fs_errors("read", path):
        return load_fs(directory).readbytes(name)


def parse_date(text: str) -> Tuple[int, int]:
    """Parse ``<epoch-seconds> <+HHMM>``, optionally with a leading ``@``.

    Raises:
        InvalidArgument: If the date does not parse.
    """
    parts = text.strip().lstrip("@").split()
    if len(parts) != 2:
        raise InvalidArgument("invalid date {0!r}".format(text))
    try:
        return int(parts[0]), int(parts[1])
    except ValueError as exc:
        raise InvalidArgument("invalid date {0!r}".format(text)) from exc


def local_timezone(timestamp: int) -> int:
    """Return the local UTC offset at `timestamp` in signed HHMM form."""
    gmtoff = time.localtime(timestamp).tm_gmtoff
    hours, minutes = divmod(abs(gmtoff) // 60, 60)
    offset = hours * 100 + minutes
    return -offset if gmtoff < 0 else offset


def identity(role: str, environ: Optional[Mapping[str, str]] = None) -> PersonStamp:
    """Build the person stamp for `role` (``"author"`` or ``"committer"``)
    from the ``GIT_<ROLE>_NAME``, ``_EMAIL`` and ``_DATE`` variables.
    """
    if environ is None:
        environ = os.environ
    prefix = "GIT_{0}_".format(role.upper())

    date = environ.get(prefix + "DATE")
    if date:
        timestamp, timezone = parse_date(date)
    else:
        timestamp = int(time.time())
        timezone = local_timezone(timestamp)

    return PersonStamp(
        environ.get(prefix + "NAME", DEFAULT_NAME),
        environ.get(prefix + "EMAIL", DEFAULT_EMAIL),
        timestamp,
        timezone,
    )


class Repository(object):
    """A working tree and the object store in its ``.git`` directory.

    Attributes:
        worktree: Filesystem of the working tree.
        objects (ObjectStore): Store over ``.git``.
    """

    def __init__(self,
                 worktree: Union[FS, str],
                 dmode: int = 0o755,
                 level: int = codec.DEFAULT_LEVEL):
        self.worktree = load_fs(worktree)

        with fs_errors("open", GIT_DIR):
            if not self.worktree.isdir(GIT_DIR):
                raise NotFound("not a repository: {0}".format(worktree))
            gitdir = self.worktree.opendir(GIT_DIR)

        self.objects = ObjectStore(gitdir, dmode=dmode, level=level)

    @classmethod
    def discover(cls, start: str = ".", **kwargs) -> "Repository":
        """Open the repository containing `start`."""
        return cls(find_root(start), **kwargs)

    def hash_object(self, data: bytes, write: bool = False) -> ObjectId:
        """Return the id of `data` as a blob, storing it if `write` is set."""
        blob = Blob(data)
        if write:
            return self.objects.save(blob).id
        return blob.id

    def cat_file(self, k: Key) -> Object:
        return self.objects.find(k)

    def ls_tree(self, k: Key) -> Tree:
        """Return the tree named by `k`.

        Raises:
            InvalidArgument: If `k` names an object that is not a tree.
        """
        return self._find_kind(k, Tree)

    def write_tree(self) -> ObjectId:
        """Store the whole working tree, ``.git`` excluded, and return the id
        of its root tree.
        """
        tree, collected = build_tree(self.worktree)
        written = sum(1 for obj in collected if not self.objects.save(obj).is_duplicate)
        logger.debug("Wrote tree %s (%d new objects)", tree.id, written)
        return tree.id

    def commit_tree(self,
                    tree: Key,
                    parents: Iterable[Key] = (),
                    message: str = "",
                    author: Optional[PersonStamp] = None,
                    committer: Optional[PersonStamp] = None) -> ObjectId:
        """Create a commit of `tree` on top of `parents`.

        The tree and every parent are looked up before anything is written,
        so a failed lookup leaves the store untouched.

        Raises:
            NotFound: If the tree or a parent is not stored.
            InvalidArgument: If an id names an object of the wrong kind.
        """
        tree_id = self._find_kind(tree, Tree).id
        parent_ids = tuple(self._find_kind(parent, Commit).id for parent in parents)

        commit = Commit(
            tree=tree_id,
            parents=parent_ids,
            author=author or identity("author"),
            committer=committer or identity("committer"),
            message=message,
        )
        oid = self.objects.save(commit).id
        logger.debug("Committed %s (tree %s)", oid, tree_id)
        return oid

    def _find_kind(self, k: Key, cls) -> Object:
        obj = self.objects.find(k)
        if not isinstance(obj, cls):
            raise InvalidArgument(
                "object {0} is a {1}, not a {2}".format(k, obj.kind, cls.kind)
            )
        return obj
