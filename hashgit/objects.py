"""Object model.

Every stored record is one of four kinds:

- :class:`Blob` holds opaque bytes.
- :class:`Tree` holds named entries pointing at other objects.
- :class:`Commit` holds a tree, its parents, two person stamps and a message.
- :class:`Unknown` preserves any other kind byte for byte.

An object's id is the SHA-1 of its envelope header followed by its payload.
It is recomputed on every access.
"""

import hashlib
from collections import namedtuple
from dataclasses import dataclass, field
from typing import ClassVar, Iterable, Iterator, Tuple, Union

from . import codec
from .errors import InvalidArgument, Malformed
from .utils import is_hex


MODE_TYPE_MASK = 0o170000
MODE_REGULAR = 0o100000

MODE_FILE = 0o100644
MODE_EXECUTABLE = 0o100755
MODE_TREE = 0o040000
MODE_SYMLINK = 0o120000
MODE_GITLINK = 0o160000

#: Tree entry names are stored as bytes; undecodable bytes survive a
#: round trip through ``str``.
NAME_ENCODING = ("utf-8", "surrogateescape")


def is_file(mode: int) -> bool:
    """Return whether `mode` denotes a regular file, executable or not."""
    return mode & MODE_TYPE_MASK == MODE_REGULAR


def is_tree(mode: int) -> bool:
    return mode & MODE_TYPE_MASK == MODE_TREE


def kind_for_mode(mode: int) -> str:
    """Return the kind of object a tree entry with `mode` refers to."""
    if is_tree(mode):
        return Tree.kind
    if mode & MODE_TYPE_MASK == MODE_GITLINK:
        return Commit.kind
    return Blob.kind


class ObjectId(namedtuple("ObjectId", ["digest"])):
    """The 20 byte SHA-1 digest identifying an object."""

    __slots__ = ()

    SIZE = 20
    HEXSIZE = 2 * SIZE

    def __new__(cls, digest: bytes):
        if len(digest) != cls.SIZE:
            raise InvalidArgument(
                "object id must be {0} bytes, got {1}".format(cls.SIZE, len(digest))
            )
        return super(ObjectId, cls).__new__(cls, bytes(digest))

    @classmethod
    def from_hex(cls, text: str) -> "ObjectId":
        """Parse a 40 character hex id. Case is ignored.

        Raises:
            InvalidArgument: If `text` is not 40 hex characters.
        """
        if len(text) != cls.HEXSIZE or not is_hex(text):
            raise InvalidArgument("not a valid object id: {0!r}".format(text))
        return cls(bytes.fromhex(text))

    @classmethod
    def for_payload(cls, kind: str, payload: bytes) -> "ObjectId":
        sha = hashlib.sha1(codec.header(kind, len(payload)))
        sha.update(payload)
        return cls(sha.digest())

    @property
    def hex(self) -> str:
        return self.digest.hex()

    def __str__(self):
        return self.hex

    def __repr__(self):
        return "ObjectId({0!r})".format(self.hex)


class TreeEntry(namedtuple("TreeEntry", ["mode", "name", "target"])):
    """One named reference from a tree.

    Attributes:
        mode (int): POSIX style type and permission bits.
        name (str): Entry name, without path separators or NUL.
        target (ObjectId): Id of the referenced object.
    """

    __slots__ = ()

    def __new__(cls, mode: int, name: str, target: ObjectId):
        if "\0" in name:
            raise InvalidArgument("tree entry name contains NUL: {0!r}".format(name))
        return super(TreeEntry, cls).__new__(cls, mode, name, target)

    @property
    def kind(self) -> str:
        return kind_for_mode(self.mode)

    @property
    def sort_key(self) -> bytes:
        return self.name.encode(*NAME_ENCODING)

    def serialize(self) -> bytes:
        return (
            "{0:o} ".format(self.mode).encode("ascii")
            + self.sort_key
            + b"\0"
            + self.target.digest
        )


class PersonStamp(namedtuple("PersonStamp",
                              ["name", "email", "timestamp", "timezone", "negative_utc"])):
    """Author or committer line of a commit.

    ``timezone`` is the signed ``HHMM`` offset as an integer, so ``+0530`` is
    ``530`` and ``-0800`` is ``-800``. ``negative_utc`` records a zero offset
    written as ``-0000``, which is otherwise indistinguishable from ``+0000``.
    """

    __slots__ = ()

    def __new__(cls, name: str, email: str, timestamp: int, timezone: int,
                negative_utc: bool = False):
        return super(PersonStamp, cls).__new__(
            cls, name, email, timestamp, timezone, negative_utc
        )

    @classmethod
    def parse(cls, text: str) -> "PersonStamp":
        """Parse ``Name <email> <epoch-seconds> <+HHMM>``.

        The name keeps any surrounding whitespace except the single space
        separating it from the email.

        Raises:
            Malformed: If a delimiter is missing, a number does not parse, or
                the text is not in the form :meth:`serialize` writes.
        """
        name, sep, rest = text.partition("<")
        if not sep:
            raise Malformed("person stamp has no email: {0!r}".format(text))
        if not name.endswith(" "):
            raise Malformed("person stamp name is not followed by a space: {0!r}".format(text))

        email, sep, rest = rest.partition(">")
        if not sep:
            raise Malformed("person stamp email is not closed: {0!r}".format(text))

        timestamp, sep, timezone = rest.strip().partition(" ")
        if not sep:
            raise Malformed("person stamp has no timezone: {0!r}".format(text))

        if not (timestamp.isascii() and timestamp.isdigit()):
            raise Malformed("invalid timestamp {0!r}".format(timestamp))

        try:
            offset = int(timezone)
        except ValueError as exc:
            raise Malformed("invalid timezone {0!r}".format(timezone)) from exc

        stamp = cls(name[:-1], email, int(timestamp), offset,
                    negative_utc=offset == 0 and timezone.startswith("-"))
        if stamp.serialize() != text:
            raise Malformed("person stamp is not in canonical form: {0!r}".format(text))
        return stamp

    def serialize(self) -> str:
        return "{0} <{1}> {2} {3}".format(
            self.name,
            self.email,
            self.timestamp,
            format_timezone(self.timezone, self.negative_utc),
        )


def format_timezone(offset: int, negative_utc: bool = False) -> str:
    sign = "-" if offset < 0 or (offset == 0 and negative_utc) else "+"
    return "{0}{1:04d}".format(sign, abs(offset))


class _Object(object):
    kind: ClassVar[str]

    def serialize(self) -> bytes:
        raise NotImplementedError

    @property
    def id(self) -> ObjectId:
        """Content id, computed from the current payload."""
        return ObjectId.for_payload(self.kind, self.serialize())

    def encode(self, level: int = codec.DEFAULT_LEVEL) -> bytes:
        """Return the compressed loose object for this object."""
        return codec.encode(self.kind, self.serialize(), level)


@dataclass(frozen=True)
class Blob(_Object):
    data: bytes = b""

    kind: ClassVar[str] = "blob"

    def serialize(self) -> bytes:
        return self.data


@dataclass(frozen=True)
class Tree(_Object):
    """Directory listing.

    Entries keep the order they were given in, so a decoded tree re-encodes
    to the same bytes. Build new trees with :meth:`from_entries`, which sorts
    them into canonical order.
    """

    entries: Tuple[TreeEntry, ...] = ()

    kind: ClassVar[str] = "tree"

    def __post_init__(self):
        object.__setattr__(self, "entries", tuple(self.entries))

    @classmethod
    def from_entries(cls, entries: Iterable[TreeEntry]) -> "Tree":
        """Return a tree with `entries` sorted byte-wise by name."""
        return cls(tuple(sorted(entries, key=lambda entry: entry.sort_key)))

    @property
    def is_canonical(self) -> bool:
        keys = [entry.sort_key for entry in self.entries]
        return keys == sorted(keys)

    def __iter__(self) -> Iterator[TreeEntry]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    def serialize(self) -> bytes:
        return b"".join(entry.serialize() for entry in self.entries)


@dataclass(frozen=True)
class Commit(_Object):
    tree: ObjectId
    author: PersonStamp
    committer: PersonStamp
    message: str = ""
    parents: Tuple[ObjectId, ...] = field(default=())

    kind: ClassVar[str] = "commit"

    def __post_init__(self):
        object.__setattr__(self, "parents", tuple(self.parents))

    def serialize(self) -> bytes:
        lines = ["tree {0}".format(self.tree)]
        lines.extend("parent {0}".format(parent) for parent in self.parents)
        lines.append("author {0}".format(self.author.serialize()))
        lines.append("committer {0}".format(self.committer.serialize()))
        return ("\n".join(lines) + "\n\n" + self.message).encode("utf-8")


@dataclass(frozen=True)
class Unknown(_Object):
    """Object of a kind hashgit does not interpret."""

    kind: str
    data: bytes = b""

    def serialize(self) -> bytes:
        return self.data


Object = Union[Blob, Tree, Commit, Unknown]


def parse_tree(payload: bytes) -> Tree:
    """Parse a tree payload, keeping entries in stored order.

    Raises:
        Malformed: If any entry is truncated or its mode does not parse.
    """
    entries = []
    pos = 0
    size = len(payload)

    while pos < size:
        nul = payload.find(b"\0", pos)
        if nul < 0:
            raise Malformed("tree entry at offset {0} has no name terminator".format(pos))

        mode, sep, name = payload[pos:nul].partition(b" ")
        if not sep:
            raise Malformed("tree entry at offset {0} has no mode".format(pos))
        if not mode.isdigit():
            raise Malformed("invalid tree entry mode {0!r}".format(mode))
        try:
            value = int(mode, 8)
        except ValueError as exc:
            raise Malformed("invalid tree entry mode {0!r}".format(mode)) from exc
        # Entries are re-serialized without leading zeros.
        if "{0:o}".format(value).encode("ascii") != mode:
            raise Malformed("tree entry mode {0!r} is zero padded".format(mode))

        end = nul + 1 + ObjectId.SIZE
        if end > size:
            raise Malformed("tree entry {0!r} is truncated".format(name))

        entries.append(
            TreeEntry(value, name.decode(*NAME_ENCODING), ObjectId(payload[nul + 1:end]))
        )
        pos = end

    return Tree(tuple(entries))


def _parse_commit_id(value: str) -> ObjectId:
    try:
        return ObjectId.from_hex(value)
    except InvalidArgument as exc:
        raise Malformed("invalid object id in commit: {0!r}".format(value)) from exc


def parse_commit(payload: bytes) -> Commit:
    """Parse a commit payload.

    Raises:
        Malformed: On unknown or repeated headers, missing required headers
            or an invalid id or person stamp.
    """
    try:
        text = payload.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise Malformed("commit is not valid UTF-8") from exc

    head, sep, message = text.partition("\n\n")
    if not sep:
        raise Malformed("commit headers are not terminated by a blank line")

    fields = {}
    parents = []

    for line in head.split("\n"):
        tag, sep, value = line.partition(" ")
        if not sep:
            raise Malformed("invalid commit header {0!r}".format(line))

        if tag == "parent":
            parents.append(_parse_commit_id(value))
        elif tag in ("tree", "author", "committer"):
            if tag in fields:
                raise Malformed("repeated commit header {0!r}".format(tag))
            fields[tag] = value
        else:
            raise Malformed("unknown commit header {0!r}".format(tag))

    missing = [tag for tag in ("tree", "author", "committer") if tag not in fields]
    if missing:
        raise Malformed("commit is missing {0}".format(", ".join(missing)))

    return Commit(
        tree=_parse_commit_id(fields["tree"]),
        parents=tuple(parents),
        author=PersonStamp.parse(fields["author"]),
        committer=PersonStamp.parse(fields["committer"]),
        message=message,
    )


def deserialize(kind: str, payload: bytes) -> Object:
    """Build the object of `kind` from its raw payload."""
    if kind == Blob.kind:
        return Blob(payload)
    if kind == Tree.kind:
        return parse_tree(payload)
    if kind == Commit.kind:
        return parse_commit(payload)
    return Unknown(kind, payload)


def decode(data: bytes) -> Object:
    """Decompress and parse a loose object."""
    return deserialize(*codec.decode(data))
