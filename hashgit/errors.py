"""Exceptions raised by hashgit."""


class HashgitError(Exception):
    """Base class for hashgit errors."""


class NotFound(HashgitError):
    """A repository or object does not exist."""


class Malformed(HashgitError):
    """An envelope, tree entry or commit record failed to parse."""


class HashMismatch(HashgitError):
    """A stored object does not hash to the id it is stored under."""

    def __init__(self, expected, actual):
        super().__init__(
            "object {0} is corrupt: content hashes to {1}".format(expected, actual)
        )
        self.expected = expected
        self.actual = actual


class IOFailure(HashgitError):
    """The underlying filesystem failed."""


class InvalidArgument(HashgitError):
    """An object id is not valid hex, or an abbreviation is ambiguous."""
