"""Module for ObjectStore class."""

import logging
import uuid
from contextlib import closing
from typing import Iterable, Iterator, Tuple, Union

import fs as pyfs
from fs.base import FS
from fs.permissions import Permissions

from . import codec, objects
from .errors import HashMismatch, InvalidArgument, Malformed, NotFound
from .objects import Object, ObjectId
from .utils import HashAddress, fs_errors, is_hex, load_fs, shard

logger = logging.getLogger(__name__)

Key = Union[str, ObjectId]

OBJECTS_DIR = "objects"

#: Shortest abbreviated id accepted by :meth:`ObjectStore.find`.
MIN_ABBREV = 4


class ObjectStore(object):
    """Content addressable object database laid out as git loose objects.

    Each object lives at ``objects/<2 hex>/<38 hex>`` below `root`,
    compressed with zlib. Objects are only ever created or read.

    Attributes:
        fs: Filesystem holding the repository metadata directory.
        depth (int): Number of shard directories. Always ``1`` for git.
        width (int): Characters per shard directory. Always ``2`` for git.
        dmode (int, optional): Directory mode permission to set for shard
            directories. Defaults to ``0o755``.
        level (int, optional): zlib compression level. Defaults to ``1``,
            which favours speed.
    """

    depth = 1
    width = 2

    def __init__(self,
                 root: Union[FS, str],
                 dmode: int = 0o755,
                 level: int = codec.DEFAULT_LEVEL):

        self.fs = load_fs(root)
        self.dmode = dmode
        self.level = level

    def save(self, obj: Object) -> HashAddress:
        """Store `obj` under its content id. Saving an object that is already
        present writes nothing.

        Args:
            obj: Object to persist.

        Returns:
            Object's hash address.
        """
        oid = obj.id
        path = self._hashid_to_path(oid.hex)

        with fs_errors("write", path):
            if self.fs.isfile(path):
                if self._is_intact(oid, path):
                    logger.debug("Object %s already stored", oid)
                    return HashAddress(oid, path, True)
                logger.warning("Replacing damaged object file %s", path)

            self._makedirs(pyfs.path.dirname(path))
            data = obj.encode(self.level)
            self._copy(data, path)

        logger.debug("Stored %s %s (%d bytes)", obj.kind, oid, len(data))
        return HashAddress(oid, path, False)

    def find(self, k: Key) -> Object:
        """Read and verify the object named by `k`.

        Args:
            k: Object id, its 40 character hex form, or an abbreviation of
                at least four hex characters.

        Returns:
            The decoded object.

        Raises:
            InvalidArgument: If `k` is not valid hex or is ambiguous.
            NotFound: If no object matches.
            Malformed: If the stored file does not decode.
            HashMismatch: If the stored object does not hash to its id.
        """
        oid, path = self._resolve(k)

        with fs_errors("read", path):
            data = self.fs.readbytes(path)

        kind, payload = codec.decode(data)
        actual = ObjectId.for_payload(kind, payload)
        if actual != oid:
            raise HashMismatch(oid, actual)

        obj = objects.deserialize(kind, payload)
        logger.debug("Read %s %s", kind, oid)
        return obj

    def exists(self, k: Key) -> bool:
        """Check whether an object is stored under the full id `k`."""
        if not isinstance(k, ObjectId):
            k = ObjectId.from_hex(k)
        with fs_errors("stat", k.hex):
            return self.fs.isfile(self._hashid_to_path(k.hex))

    def files(self) -> Iterator[ObjectId]:
        """Return generator that yields the ids of all stored objects."""
        for path in self._paths():
            yield self._unshard(path)

    def count(self) -> int:
        """Return the number of stored objects."""
        return sum(1 for _ in self._paths())

    def corrupted(self) -> Iterable[Tuple[str, ObjectId]]:
        """Return generator that yields stored objects whose content no longer
        matches their path as ``(path, actual)`` pairs. Nothing is modified.
        Files that do not decode at all propagate :class:`Malformed`.
        """
        for path in self._paths():
            with fs_errors("read", path):
                data = self.fs.readbytes(path)
            actual = ObjectId.for_payload(*codec.decode(data))
            if actual != self._unshard(path):
                yield (path, actual)

    def __contains__(self, k: Key) -> bool:
        return self.exists(k)

    def __iter__(self) -> Iterator[ObjectId]:
        return self.files()

    def __len__(self) -> int:
        return self.count()

    def _resolve(self, k: Key) -> Tuple[ObjectId, str]:
        """Match `k` against the stored files, ignoring case, and return the
        full id with its path.
        """
        if isinstance(k, ObjectId):
            k = k.hex

        if not MIN_ABBREV <= len(k) <= ObjectId.HEXSIZE or not is_hex(k):
            raise InvalidArgument("not a valid object id: {0!r}".format(k))

        prefix, rest = k[:self.width].lower(), k[self.width:].lower()

        with fs_errors("list", OBJECTS_DIR):
            if not self.fs.isdir(OBJECTS_DIR):
                raise NotFound("no object database at {0!r}".format(OBJECTS_DIR))

            folders = [name for name in self.fs.listdir(OBJECTS_DIR)
                       if name.lower() == prefix]
            matches = []
            for folder in folders:
                folder = pyfs.path.join(OBJECTS_DIR, folder)
                matches.extend(pyfs.path.join(folder, name)
                               for name in self.fs.listdir(folder)
                               if len(name) == ObjectId.HEXSIZE - self.width
                               and is_hex(name)
                               and name.lower().startswith(rest))

        if not matches:
            raise NotFound("object {0} not found".format(k))
        if len(matches) > 1:
            raise InvalidArgument("object id {0} is ambiguous".format(k))

        path = matches[0]
        return self._unshard(path), path

    def _paths(self) -> Iterator[str]:
        with fs_errors("list", OBJECTS_DIR):
            if not self.fs.isdir(OBJECTS_DIR):
                return
            for path in self.fs.walk.files(OBJECTS_DIR):
                parts = pyfs.path.iteratepath(path)
                if len(parts) != 3:
                    continue
                folder, name = parts[1], parts[2]
                if (len(folder) == self.width
                        and len(folder) + len(name) == ObjectId.HEXSIZE
                        and is_hex(folder + name)):
                    yield pyfs.path.join(*parts)

    def _is_intact(self, oid: ObjectId, path: str) -> bool:
        """Check that the file at `path` decodes and hashes to `oid`."""
        try:
            kind, payload = codec.decode(self.fs.readbytes(path))
        except Malformed:
            return False
        return ObjectId.for_payload(kind, payload) == oid

    def _copy(self, data: bytes, path: str) -> None:
        """Write `data` to a temporary file beside `path`, then move it into
        place so a reader never sees a partial object.
        """
        tmp = "{0}.tmp-{1}".format(path, uuid.uuid4().hex)
        try:
            with closing(self.fs.open(tmp, mode="wb")) as fileobj:
                fileobj.write(data)
                fileobj.flush()
            self.fs.move(tmp, path, overwrite=True)
        finally:
            if self.fs.exists(tmp):
                self.fs.remove(tmp)

    def _makedirs(self, dir_path):
        """Physically create the folder path on disk."""
        perms = Permissions.create(self.dmode)
        self.fs.makedirs(dir_path, permissions=perms, recreate=True)

    def _hashid_to_path(self, hashid: str) -> str:
        """Build the relative file path for a given hash id."""
        return pyfs.path.join(OBJECTS_DIR, *self._shard(hashid))

    def _shard(self, hashid: str):
        """Shard content ID into subfolders."""
        return shard(hashid, self.depth, self.width)

    def _unshard(self, path: str) -> ObjectId:
        """Unshard path to determine the object id."""
        return ObjectId.from_hex("".join(pyfs.path.iteratepath(path)[1:]))
