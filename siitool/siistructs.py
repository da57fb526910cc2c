from collections import namedtuple

from construct import *
from construct.core import stream_tell, stream_seek

from .values import Link, NAMELESS, str_to_token, token_to_str

def remaining(stream, path=None):
    pos = stream_tell(stream, path)
    end = stream_seek(stream, 0, 2, path)
    stream_seek(stream, pos, 0, path)
    return end - pos

class Counted(Construct):
    """u32 count followed by that many elements, parsed into a tuple.

    The count is checked against the bytes left in the stream before any
    element is read.
    """

    def __init__(self, subcon, minsize):
        super().__init__()
        self.subcon = subcon
        self.minsize = minsize

    def _parse(self, stream, context, path):
        count = Int32ul._parsereport(stream, context, path)
        left = remaining(stream, path)
        if count * self.minsize > left:
            raise StreamError("count %d needs at least %d bytes, %d left"
                % (count, count * self.minsize, left), path=path)
        return tuple(self.subcon._parsereport(stream, context, path) for _ in range(count))

    def _build(self, obj, stream, context, path):
        Int32ul._build(len(obj), stream, context, path)
        for item in obj:
            self.subcon._build(item, stream, context, path)
        return obj

    def _sizeof(self, context, path):
        raise SizeofError("Counted is variable sized", path=path)

class Tupled(Adapter):
    def _decode(self, obj, context, path):
        return tuple(obj)

    def _encode(self, obj, context, path):
        return list(obj)

def _token_text(value, path):
    try:
        return token_to_str(value)
    except ValueError as e:
        raise ValidationError(str(e), path=path) from e

class TokenAdapter(Adapter):
    def _decode(self, obj, context, path):
        return _token_text(obj, path)

    def _encode(self, obj, context, path):
        return str_to_token(obj)

class LinkAdapter(Adapter):
    def _decode(self, obj, context, path):
        nameless = obj.length == NAMELESS
        if not nameless:
            for part in obj.parts:
                _token_text(part, path)
        return Link(obj.parts, nameless=nameless)

    def _encode(self, obj, context, path):
        length = NAMELESS if obj.nameless else len(obj.parts)
        return dict(length=length, parts=list(obj.parts))

class OrdinalString(Adapter):
    def __init__(self, table):
        super().__init__(Int32ul)
        self.table = table

    def _decode(self, obj, context, path):
        try:
            return self.table[obj]
        except KeyError:
            raise MappingError("no string for ordinal %d" % obj, path=path)

    def _encode(self, obj, context, path):
        for ordinal, value in self.table.items():
            if value == obj:
                return ordinal
        raise MappingError("no ordinal for %r" % obj, path=path)

def Vec(n, subcon):
    return Tupled(Array(n, subcon))

String   = PascalString(Int32ul, "utf8")
Token    = TokenAdapter(Int64ul)
LinkID   = LinkAdapter(Struct(
    "length" / Int8ul,
    "parts"  / IfThenElse(this.length == NAMELESS,
                   Array(1, Int64ul),
                   Array(this.length, Int64ul)),
))

ValueType = namedtuple("ValueType", "code name subcon minsize")

VALUE_TYPES = {}

def _value(code, name, subcon, minsize):
    VALUE_TYPES[code] = ValueType(code, name, subcon, minsize)

def _scalar(code, name, subcon, size):
    _value(code, name, subcon, size)
    _value(code + 1, name + "_array", Counted(subcon, size), 4)

_scalar(0x01, "string", String, 4)
_scalar(0x03, "token",  Token, 8)
_scalar(0x05, "single", Float32l, 4)
_value(0x07,  "vec2s",  Vec(2, Float32l), 8)
_scalar(0x09, "vec3s",  Vec(3, Float32l), 12)
_scalar(0x11, "vec3i",  Vec(3, Int32sl), 12)
_scalar(0x17, "vec4s",  Vec(4, Float32l), 16)
_scalar(0x19, "vec8s",  Vec(8, Float32l), 32)
_scalar(0x25, "int32",  Int32sl, 4)
_scalar(0x27, "uint32", Int32ul, 4)
_scalar(0x2B, "uint16", Int16ul, 2)
_value(0x2F,  "uint32", Int32ul, 4)
_scalar(0x31, "int64",  Int64sl, 8)
_scalar(0x33, "uint64", Int64ul, 8)
_scalar(0x35, "bool",   Flag, 1)
_scalar(0x39, "link",   LinkID, 1)
_scalar(0x3B, "link",   LinkID, 1)
_value(0x3D,  "link",   LinkID, 1)

ORDINAL_STRING = 0x37
ORDINAL_TABLE = Counted(Struct("ordinal" / Int32ul, "value" / String), 8)

def field_subcon(code, ordinals=None):
    if code == ORDINAL_STRING:
        return OrdinalString(ordinals)
    return VALUE_TYPES[code].subcon

def is_known(code):
    return code == ORDINAL_STRING or code in VALUE_TYPES

def type_name(code):
    if code == ORDINAL_STRING:
        return "ordinal_string"
    return VALUE_TYPES[code].name

def is_array(code):
    return code in VALUE_TYPES and isinstance(VALUE_TYPES[code].subcon, Counted)

# containers

BSII = b"BSII"
SCSC = b"ScsC"
SIIN = b"SiiN"
BOM  = b"\xef\xbb\xbf"

SiiHeader = Struct(
    "signature" / Const(BSII),
    "version"   / Int32ul,
)

EncryptedHeader = Struct(
    "signature" / Const(SCSC),
    "hmac"      / Bytes(32),
    "iv"        / Bytes(16),
    "size"      / Int32ul,
)

# block type 0 introduces a definition; a zero flag after it ends the stream
BlockType = Int32ul
DefinitionFlag = Flag

# archives

ScsHeader = Struct(
    "signature"    / Const(b"SCS#"),
    "version"      / Int32ul,
    "hash_method"  / Const(b"CITY"),
    "entry_count"  / Int32ul,
    "entry_offset" / Int32ul,
)

__all__ = [
    "Counted", "String", "Token", "LinkID", "VALUE_TYPES", "ORDINAL_STRING",
    "ORDINAL_TABLE", "field_subcon", "is_known", "is_array", "type_name", "SiiHeader",
    "EncryptedHeader", "ScsHeader", "BlockType", "DefinitionFlag", "remaining",
    "BSII", "SCSC", "SIIN", "BOM",
]
