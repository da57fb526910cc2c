import logging
import zlib

from collections import namedtuple

import numpy as np
from construct import ConstError, StreamError

from .errors import (DecompressionError, NotFound, SizeMismatch, UnexpectedEndOfInput,
    UnrecognizedContainer, UnsupportedEntry)
from .siistructs import ScsHeader

log = logging.getLogger(__name__)

ENTRY_DTYPE = np.dtype([
    ("hash",   "<u8"),
    ("offset", "<u8"),
    ("flags",  "<u4"),
    ("crc32",  "<u4"),
    ("size",   "<u4"),
    ("zsize",  "<u4"),
])

DIRECTORY  = 0x1
COMPRESSED = 0x2
KNOWN_FLAGS = 0x7

Entry = namedtuple("Entry", "hash offset flags crc32 size zsize")

def describe_flags(flags):
    return "%s%s" % ("d" if flags & DIRECTORY else "f", "z" if flags & COMPRESSED else "-")

class ArchiveIndex:
    """Entries of an SCS# archive keyed by path hash.

    Only lookup by hash is supported; directory listings are never parsed,
    so there is no way back from a hash to a path.
    """
    __slots__ = "data", "version", "entries"

    def __init__(self, data, version, entries):
        self.data = data
        self.version = version
        self.entries = entries

    def __len__(self):
        return len(self.entries)

    def __contains__(self, hash):
        return hash in self.entries

    def __iter__(self):
        return iter(self.entries.values())

    def get(self, hash):
        return self.entries.get(hash)

    def extract(self, hash):
        try:
            entry = self.entries[hash]
        except KeyError:
            raise NotFound("no entry with hash %016x" % hash) from None

        if entry.flags & ~KNOWN_FLAGS:
            raise UnsupportedEntry("entry %016x has unknown flags 0x%x" % (hash, entry.flags))
        if entry.flags & DIRECTORY:
            raise UnsupportedEntry("entry %016x is a directory listing" % hash)

        end = entry.offset + entry.zsize
        if end > len(self.data):
            raise UnexpectedEndOfInput("entry %016x ends at %d, archive is %d bytes"
                % (hash, end, len(self.data)))
        stored = self.data[entry.offset:end]

        if not entry.flags & COMPRESSED:
            if entry.zsize != entry.size:
                raise SizeMismatch("entry %016x stores %d bytes for %d"
                    % (hash, entry.zsize, entry.size))
            return bytes(stored)

        inflater = zlib.decompressobj()
        try:
            out = inflater.decompress(stored, entry.size + 1)
        except zlib.error as e:
            raise DecompressionError("entry %016x: %s" % (hash, e)) from e
        if len(out) > entry.size:
            raise SizeMismatch("entry %016x inflates past its %d bytes" % (hash, entry.size))
        if not inflater.eof:
            raise DecompressionError("entry %016x: deflate stream is truncated" % hash)
        if len(out) != entry.size:
            raise SizeMismatch("entry %016x inflated to %d bytes, expected %d"
                % (hash, len(out), entry.size))
        return out

    def extract_many(self, hashes):
        for hash in hashes:
            if hash not in self.entries:
                log.debug("no entry %016x", hash)
                continue
            yield hash, self.extract(hash)

def open_index(data):
    data = memoryview(bytes(data))
    try:
        hdr = ScsHeader.parse(data)
    except ConstError as e:
        raise UnrecognizedContainer("not an SCS# archive: %s" % e) from e
    except StreamError as e:
        raise UnexpectedEndOfInput("truncated archive header") from e

    end = hdr.entry_offset + hdr.entry_count * ENTRY_DTYPE.itemsize
    if end > len(data):
        raise UnexpectedEndOfInput("index of %d entries at %d runs past end of archive (%d bytes)"
            % (hdr.entry_count, hdr.entry_offset, len(data)))

    rows = []
    if hdr.entry_count:
        rows = np.frombuffer(data, dtype=ENTRY_DTYPE, count=hdr.entry_count,
                             offset=hdr.entry_offset).tolist()
    entries = {}
    for row in rows:
        entry = Entry(*row)
        if entry.hash in entries:
            log.warning("duplicate entry %016x, keeping the first", entry.hash)
            continue
        entries[entry.hash] = entry

    log.debug("archive v%d: %d entries", hdr.version, len(entries))
    return ArchiveIndex(data, hdr.version, entries)

__all__ = ["ArchiveIndex", "Entry", "open_index", "describe_flags", "ENTRY_DTYPE", "DIRECTORY", "COMPRESSED"]
