import zlib

import numpy as np
import pytest

from Crypto.Cipher import AES
from Crypto.Util.Padding import pad
from construct import Int32ul

from siitool.crypt import SII_KEY
from siitool.scs import COMPRESSED, ENTRY_DTYPE
from siitool.sii import Document, FieldDef, Instance, StructDef, encode
from siitool.siistructs import (BlockType, DefinitionFlag, EncryptedHeader, LinkID,
    ORDINAL_STRING, ORDINAL_TABLE, ScsHeader, SiiHeader, String)
from siitool.values import Link, NULL_LINK

IV = bytes(range(16))

# raw record builders, for inputs encode() refuses to write

END = BlockType.build(0) + DefinitionFlag.build(False)

def sii(*records, version=3, end=True):
    return SiiHeader.build(dict(version=version)) + b"".join(records) + (END if end else b"")

def definition(struct_id, name, *fields):
    out = BlockType.build(0) + DefinitionFlag.build(True) + BlockType.build(struct_id) + String.build(name)
    for field in fields:
        out += BlockType.build(field[0]) + String.build(field[1])
        if field[0] == ORDINAL_STRING:
            out += ORDINAL_TABLE.build([dict(ordinal=k, value=v) for k, v in field[2].items()])
    return out + BlockType.build(0)

def instance(struct_id, link=NULL_LINK, payload=b""):
    return BlockType.build(struct_id) + LinkID.build(link) + payload

def u32(value):
    return Int32ul.build(value)

def encrypt(payload, size=None, compress=True):
    body = zlib.compress(payload) if compress else payload
    ciphertext = AES.new(SII_KEY, AES.MODE_CBC, iv=IV).encrypt(pad(body, AES.block_size))
    header = EncryptedHeader.build(dict(
        hmac=bytes(32), iv=IV, size=len(payload) if size is None else size))
    return header + ciphertext

def build_archive(rows, body, version=1):
    """rows are (hash, offset, flags, crc32, size, zsize), offsets relative to body."""
    start = ScsHeader.sizeof()
    table = np.array([(h, start + o, f, c, s, z) for h, o, f, c, s, z in rows],
                     dtype=ENTRY_DTYPE).tobytes()
    header = ScsHeader.build(dict(version=version, entry_count=len(rows),
                                  entry_offset=start + len(body)))
    return header + body + table

def make_archive(members):
    rows = []
    body = b""
    for hash, data, flags in members:
        stored = zlib.compress(data) if flags & COMPRESSED else data
        rows.append((hash, len(body), flags, zlib.crc32(data), len(data), len(stored)))
        body += stored
    return build_archive(rows, body)

ECONOMY      = Link((0x025f5c012d80,), nameless=True)
DELIVERY_LOG = Link.parse("delivery_log")
ENTRY_A      = Link((0x111,), nameless=True)
ENTRY_B      = Link((0x222,), nameless=True)

def sample_document():
    economy = StructDef(0x10, "economy", (
        FieldDef(0x27, "total_fuel_litres", None),
        FieldDef(0x31, "total_fuel_price", None),
        FieldDef(0x2F, "gas_station_visit_count", None),
        FieldDef(0x27, "experience_points", None),
        FieldDef(0x27, "total_distance", None),
        FieldDef(0x04, "visited_cities", None),
        FieldDef(0x39, "delivery_log", None),
        FieldDef(0x01, "player_name", None),
        FieldDef(0x05, "fuel_ratio", None),
        FieldDef(0x06, "fuel_history", None),
        FieldDef(0x09, "position", None),
        FieldDef(0x11, "sector", None),
        FieldDef(0x18, "rotations", None),
        FieldDef(0x25, "balance", None),
        FieldDef(0x2B, "garages", None),
        FieldDef(0x33, "online_job_id", None),
        FieldDef(0x35, "tutorial_done", None),
        FieldDef(0x36, "dlc_flags", None),
        FieldDef(ORDINAL_STRING, "state", {0: "idle", 1: "driving"}),
        FieldDef(0x03, "home", None),
    ))
    delivery_log = StructDef(0x11, "delivery_log", (
        FieldDef(0x3A, "entries", None),
    ))
    delivery_entry = StructDef(0x12, "delivery_log_entry", (
        FieldDef(0x02, "params", None),
    ))

    instances = [
        Instance(ECONOMY, 0x10, "economy", {
            "total_fuel_litres": 12000,
            "total_fuel_price": 23456,
            "gas_station_visit_count": 31,
            "experience_points": 4500,
            "total_distance": 98765,
            "visited_cities": ("riga", "tallinn", "vilnius"),
            "delivery_log": DELIVERY_LOG,
            "player_name": "Kilometre Eater",
            "fuel_ratio": 0.5,
            "fuel_history": (1.5, -2.25),
            "position": (1.5, -2.25, 100.0),
            "sector": (-3, 0, 7),
            "rotations": ((0.0, 0.5, 0.25, 1.0),),
            "balance": -1200,
            "garages": 4,
            "online_job_id": 0xFFFFFFFFFFFFFFFF,
            "tutorial_done": True,
            "dlc_flags": (True, False, True),
            "state": "driving",
            "home": "riga",
        }),
        Instance(DELIVERY_LOG, 0x11, "delivery_log", {
            "entries": (ENTRY_A, ENTRY_B),
        }),
        Instance(ENTRY_A, 0x12, "delivery_log_entry", {
            "params": ("1", "company.volatile.renat.riga", "company.volatile.lvr.riga"),
        }),
        Instance(ENTRY_B, 0x12, "delivery_log_entry", {
            "params": ("2", "company.volatile.lvr.riga", "company.volatile.renat.tartu"),
        }),
    ]
    definitions = {d.id: d for d in (economy, delivery_log, delivery_entry)}
    return Document(3, definitions, instances)

@pytest.fixture
def document():
    return sample_document()

@pytest.fixture
def plain(document):
    return encode(document)
