#!/usr/bin/env python3
import logging
import sqlite3
import sys

from pathlib import Path
from argparse import ArgumentParser, FileType

from .crypt import unwrap
from .errors import DecodeError, NotFound
from .game import summary
from .scs import describe_flags, open_index
from .sii import LENIENT, STRICT, decode
from .siistructs import is_array
from .sqlite import copy_to_sqlite
from .values import Link

log = logging.getLogger("siitool")

def read(fd):
    with fd:
        return fd.read()

def load(fd, lenient=False, skip=()):
    options = STRICT
    if lenient:
        options = LENIENT._replace(skip_widths=dict(skip))
    return decode(unwrap(read(fd)), options)

def format_value(value):
    if isinstance(value, Link):
        return str(value)
    if isinstance(value, tuple):
        return "(%s)" % ", ".join(format_value(v) for v in value)
    if isinstance(value, str):
        return '"%s"' % value.replace("\\", "\\\\").replace('"', '\\"')
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)

def print_instance(definition, instance, out):
    print("%s : %s {" % (instance.struct_name, instance.id), file=out)
    for field in definition.fields:
        value = instance.fields[field.name]
        if is_array(field.type):
            print(" %s: %d" % (field.name, len(value)), file=out)
            for idx, item in enumerate(value):
                print(" %s[%d]: %s" % (field.name, idx, format_value(item)), file=out)
        else:
            print(" %s: %s" % (field.name, format_value(value)), file=out)
    print("}", file=out)

def skip_width(text):
    code, _, width = text.partition(":")
    return int(code, 0), int(width, 0)

def content_hash(text):
    return int(text, 16)

def cmd_decrypt(args):
    data = unwrap(read(args.file))
    with args.out.open("wb") as fd:
        fd.write(data)

def cmd_dump(args):
    document = load(args.file, args.lenient, args.skip)
    for instance in document:
        print_instance(document.definitions[instance.struct_id], instance, sys.stdout)
        print()
    if document.skipped:
        log.warning("%d instances skipped", len(document.skipped))

def cmd_summary(args):
    try:
        result = summary(load(args.file))
    except (KeyError, TypeError) as e:
        log.error("%s", e.args[0])
        return 1
    for name, value in zip(result._fields, result):
        print(name, value, sep='\t')

def cmd_sqlite(args):
    document = load(args.file, args.lenient, args.skip)
    if args.out.exists():
        log.error("%s already exists", args.out)
        return 1
    conn = sqlite3.connect(str(args.out))
    try:
        copy_to_sqlite(document, conn)
    finally:
        conn.close()

def cmd_list(args):
    index = open_index(read(args.archive))
    print("Hash", "Offset", "Size", "Stored", "Flags", sep='\t')
    for entry in index:
        print("%016x" % entry.hash, hex(entry.offset), entry.size, entry.zsize,
              describe_flags(entry.flags), sep='\t')

def cmd_extract(args):
    index = open_index(read(args.archive))
    args.out.mkdir(parents=True, exist_ok=True)
    failed = 0
    for hash in args.hashes:
        try:
            payload = index.extract(hash)
        except NotFound:
            log.error("no entry %016x", hash)
            failed += 1
            continue
        except DecodeError as e:
            log.error("%016x: %s", hash, e)
            failed += 1
            continue
        path = args.out / ("%016x" % hash)
        with path.open("wb") as fd:
            fd.write(payload)
        log.info("%016x -> %s (%d bytes)", hash, path, len(payload))
    return 1 if failed else 0

argparser = ArgumentParser(prog="siitool", description="SCS save and archive tool")
argparser.add_argument("-v", "--verbose", action="store_true")
subparsers = argparser.add_subparsers(dest="command", required=True)

def _decoding(parser):
    parser.add_argument("--lenient", action="store_true",
        help="skip instances with unknown field types instead of failing")
    parser.add_argument("--skip", type=skip_width, action="append", default=[],
        metavar="CODE:WIDTH", help="wire width of an unknown field type (lenient only)")

p = subparsers.add_parser("decrypt", help="decrypt and inflate a save")
p.add_argument("file", type=FileType("rb"))
p.add_argument("out", type=Path)
p.set_defaults(func=cmd_decrypt)

p = subparsers.add_parser("dump", help="print every instance in a save")
p.add_argument("file", type=FileType("rb"))
_decoding(p)
p.set_defaults(func=cmd_dump)

p = subparsers.add_parser("summary", help="economy totals of a save")
p.add_argument("file", type=FileType("rb"))
p.set_defaults(func=cmd_summary)

p = subparsers.add_parser("sqlite", help="copy a save into a new sqlite database")
p.add_argument("file", type=FileType("rb"))
p.add_argument("out", type=Path)
_decoding(p)
p.set_defaults(func=cmd_sqlite)

p = subparsers.add_parser("list", help="list the index of an archive")
p.add_argument("archive", type=FileType("rb"))
p.set_defaults(func=cmd_list)

p = subparsers.add_parser("extract", help="extract archive members by hash")
p.add_argument("archive", type=FileType("rb"))
p.add_argument("out", type=Path)
p.add_argument("hashes", type=content_hash, nargs="+", metavar="HASH")
p.set_defaults(func=cmd_extract)

def main(argv=None):
    args = argparser.parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format="%(levelname)s: %(message)s")
    try:
        return args.func(args) or 0
    except DecodeError as e:
        log.error("%s", e)
        return 1

if __name__ == "__main__":
    sys.exit(main())
