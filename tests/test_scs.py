import zlib

import pytest

from siitool.errors import (DecodeError, DecompressionError, NotFound, SizeMismatch,
    UnexpectedEndOfInput, UnrecognizedContainer, UnsupportedEntry)
from siitool.scs import COMPRESSED, DIRECTORY, open_index

from conftest import build_archive, make_archive

ACHIEVEMENTS = 0x5C075DC23D8D177
LOCALE = 0x1234567890ABCDEF
README = 0x42

TEXT = b"SiiNunit\n{\n achievement_each_company_data : .achievement.x {\n }\n}\n" * 20

@pytest.fixture
def archive():
    return make_archive([
        (ACHIEVEMENTS, TEXT, COMPRESSED),
        (LOCALE, b"3nK\x01" + bytes(range(200)), 0),
        (README, b"", COMPRESSED),
    ])

def test_open(archive):
    index = open_index(archive)
    assert len(index) == 3
    assert ACHIEVEMENTS in index
    assert index.get(LOCALE).size == 204
    assert index.get(0xDEAD) is None
    assert index.version == 1

def test_extract(archive):
    index = open_index(archive)
    assert index.extract(ACHIEVEMENTS) == TEXT
    assert index.extract(LOCALE) == b"3nK\x01" + bytes(range(200))
    assert index.extract(README) == b""

def test_payload_length_matches_entry(archive):
    index = open_index(archive)
    for entry in index:
        assert len(index.extract(entry.hash)) == entry.size

def test_miss_is_not_found(archive):
    index = open_index(archive)
    with pytest.raises(NotFound):
        index.extract(0xDEAD)
    assert not issubclass(NotFound, DecodeError)

def test_no_prefix_matching(archive):
    index = open_index(archive)
    with pytest.raises(NotFound):
        index.extract(ACHIEVEMENTS >> 4)

def test_extract_many(archive):
    index = open_index(archive)
    found = dict(index.extract_many([LOCALE, 0xDEAD, ACHIEVEMENTS]))
    assert set(found) == {LOCALE, ACHIEVEMENTS}
    assert found[ACHIEVEMENTS] == TEXT

def test_corrupt_byte(archive):
    index = open_index(archive)
    entry = index.get(ACHIEVEMENTS)
    data = bytearray(archive)
    data[entry.offset + entry.zsize // 2] ^= 0xFF
    index = open_index(bytes(data))
    with pytest.raises((DecompressionError, SizeMismatch)):
        index.extract(ACHIEVEMENTS)

def test_declared_size_disagrees():
    stored = zlib.compress(TEXT)
    body = stored + b"raw"
    archive = build_archive([
        (1, 0, COMPRESSED, 0, len(TEXT) + 1, len(stored)),
        (2, 0, COMPRESSED, 0, len(TEXT) - 1, len(stored)),
        (3, len(stored), 0, 0, 4, 3),
        (4, len(stored), 0, 0, 3, 3),
    ], body)
    index = open_index(archive)
    for hash in (1, 2, 3):
        with pytest.raises(SizeMismatch):
            index.extract(hash)
    # one bad entry leaves the rest usable
    assert index.extract(4) == b"raw"

def test_truncated_stream():
    stored = zlib.compress(TEXT)[:-10]
    index = open_index(build_archive([(1, 0, COMPRESSED, 0, len(TEXT), len(stored))], stored))
    with pytest.raises(DecompressionError):
        index.extract(1)

def test_entry_past_end():
    index = open_index(build_archive([(1, 1000, 0, 0, 10, 10)], b"tiny"))
    with pytest.raises(UnexpectedEndOfInput):
        index.extract(1)

def test_directory_entries_are_unsupported():
    index = open_index(build_archive([
        (1, 0, DIRECTORY, 0, 4, 4),
        (2, 0, DIRECTORY | COMPRESSED, 0, 4, 4),
        (3, 0, 0x10, 0, 4, 4),
    ], b"abcd"))
    for hash in (1, 2, 3):
        with pytest.raises(UnsupportedEntry):
            index.extract(hash)

def test_duplicate_hash_keeps_first():
    index = open_index(build_archive([
        (1, 0, 0, 0, 2, 2),
        (1, 2, 0, 0, 2, 2),
    ], b"abcd"))
    assert len(index) == 1
    assert index.extract(1) == b"ab"

def test_bad_signature(archive):
    with pytest.raises(UnrecognizedContainer):
        open_index(b"ZIP#" + archive[4:])
    with pytest.raises(UnrecognizedContainer):
        open_index(archive[:8] + b"FNV1" + archive[12:])

def test_truncated_header():
    with pytest.raises(UnexpectedEndOfInput):
        open_index(b"SCS#\x01\x00")

def test_index_shorter_than_count(archive):
    with pytest.raises(UnexpectedEndOfInput):
        open_index(archive[:-1])

def test_empty_archive():
    index = open_index(build_archive([], b""))
    assert len(index) == 0
    with pytest.raises(NotFound):
        index.extract(1)
