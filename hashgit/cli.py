"""Command-line interface for hashgit."""

import argparse
import logging
import os
import sys

from .errors import HashgitError
from .objects import Blob, Tree
from .repository import GIT_DIR, Repository, init_repository, read_file


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG)

    try:
        args.func(args)
    except HashgitError as exc:
        report(exc)
        return 1
    return 0


def build_parser():
    parser = argparse.ArgumentParser(prog="hashgit")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="log debug messages to stderr")
    commands = parser.add_subparsers(dest="command")
    commands.required = True

    init_parser = commands.add_parser("init", help="create an empty repository")
    init_parser.set_defaults(func=cmd_init)
    init_parser.add_argument("directory", nargs="?", default=".")

    hash_parser = commands.add_parser("hash-object", help="compute a blob id")
    hash_parser.set_defaults(func=cmd_hash_object)
    hash_parser.add_argument("-w", dest="write", action="store_true",
                             help="write the blob into the object store")
    hash_parser.add_argument("file")

    cat_parser = commands.add_parser("cat-file", help="show a stored object")
    cat_parser.set_defaults(func=cmd_cat_file, show="pretty")
    mode = cat_parser.add_mutually_exclusive_group()
    mode.add_argument("-p", dest="show", action="store_const", const="pretty",
                      help="print the object's content (default)")
    mode.add_argument("-t", dest="show", action="store_const", const="kind",
                      help="print the object's kind")
    mode.add_argument("-s", dest="show", action="store_const", const="size",
                      help="print the object's payload size")
    cat_parser.add_argument("object")

    ls_parser = commands.add_parser("ls-tree", help="list a tree object")
    ls_parser.set_defaults(func=cmd_ls_tree)
    ls_parser.add_argument("--name-only", action="store_true")
    ls_parser.add_argument("object")

    write_parser = commands.add_parser("write-tree",
                                       help="store the working tree")
    write_parser.set_defaults(func=cmd_write_tree)

    commit_parser = commands.add_parser("commit-tree", help="create a commit")
    commit_parser.set_defaults(func=cmd_commit_tree)
    commit_parser.add_argument("tree")
    commit_parser.add_argument("-p", dest="parents", action="append", default=[],
                               metavar="PARENT")
    commit_parser.add_argument("-m", dest="message", required=True)

    return parser


def report(exc):
    """Print `exc` and the chain of errors that caused it."""
    print("error: {0}".format(exc), file=sys.stderr)
    cause = exc.__cause__
    while cause is not None:
        print("caused by: {0}".format(cause), file=sys.stderr)
        cause = cause.__cause__


def cmd_init(args):
    init_repository(args.directory)
    path = os.path.join(os.path.abspath(args.directory), GIT_DIR)
    print("Initialized empty repository in {0}".format(path))


def cmd_hash_object(args):
    data = read_file(args.file)
    if args.write:
        oid = Repository.discover().hash_object(data, write=True)
    else:
        oid = Blob(data).id
    print(oid)


def cmd_cat_file(args):
    obj = Repository.discover().cat_file(args.object)

    if args.show == "kind":
        print(obj.kind)
    elif args.show == "size":
        print(len(obj.serialize()))
    elif isinstance(obj, Tree):
        for entry in obj:
            print(format_entry(entry))
    else:
        # Blobs, commits and unknown kinds print as stored.
        write_bytes(obj.serialize())


def cmd_ls_tree(args):
    tree = Repository.discover().ls_tree(args.object)
    for entry in tree:
        print(entry.name if args.name_only else format_entry(entry))


def cmd_write_tree(args):
    print(Repository.discover().write_tree())


def cmd_commit_tree(args):
    message = args.message
    if not message.endswith("\n"):
        message += "\n"
    repo = Repository.discover()
    print(repo.commit_tree(args.tree, parents=args.parents, message=message))


def format_entry(entry):
    return "{0:06o} {1} {2}\t{3}".format(entry.mode, entry.kind, entry.target, entry.name)


def write_bytes(data):
    sys.stdout.flush()
    sys.stdout.buffer.write(data)
    sys.stdout.buffer.flush()


if __name__ == "__main__":
    raise SystemExit(main())
