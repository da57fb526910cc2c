import enum
import logging

from collections import namedtuple
from contextlib import contextmanager
from io import BytesIO
from types import MappingProxyType

from construct import ConstructError, MappingError, StreamError, StringError

from .crypt import Container, identify
from .errors import (DecodeError, DuplicateStructureDefinition, UndefinedOrdinal,
    UndefinedStructureReference, UnexpectedEndOfInput, UnknownFieldType,
    UnrecognizedContainer)
from .siistructs import (BSII, BlockType, DefinitionFlag, LinkID, ORDINAL_STRING,
    ORDINAL_TABLE, SiiHeader, String, field_subcon, is_known, remaining, type_name)

log = logging.getLogger(__name__)

VERSIONS = (2, 3)

class Mode(enum.Enum):
    STRICT = "strict"
    LENIENT = "lenient"

DecodeOptions = namedtuple("DecodeOptions", "mode skip_widths")
STRICT = DecodeOptions(Mode.STRICT, MappingProxyType({}))
LENIENT = DecodeOptions(Mode.LENIENT, MappingProxyType({}))

FieldDef  = namedtuple("FieldDef", "type name ordinals")
StructDef = namedtuple("StructDef", "id name fields")
Instance  = namedtuple("Instance", "id struct_id struct_name fields")

class Document:
    """A decoded save: definitions by id plus instances in file order.

    Links between instances stay as Link values; resolve() looks them up.
    Definitions and decoded field maps are read-only views.
    """
    __slots__ = "version", "definitions", "instances", "skipped", "_by_id"

    def __init__(self, version, definitions, instances, skipped=()):
        self.version = version
        self.definitions = MappingProxyType(dict(definitions))
        self.instances = tuple(instances)
        self.skipped = tuple(skipped)
        self._by_id = {}
        for instance in self.instances:
            self._by_id.setdefault(instance.id, instance)

    def __iter__(self):
        return iter(self.instances)

    def __len__(self):
        return len(self.instances)

    def __eq__(self, other):
        if not isinstance(other, Document):
            return NotImplemented
        return (self.version, self.definitions, self.instances) == \
            (other.version, other.definitions, other.instances)

    def __repr__(self):
        return "<Document v%d: %d definitions, %d instances, %d skipped>" % (
            self.version, len(self.definitions), len(self.instances), len(self.skipped))

    def named(self, name):
        return (i for i in self.instances if i.struct_name == name)

    def single(self, name):
        return next(self.named(name), None)

    def resolve(self, link):
        if link.is_null:
            return None
        return self._by_id.get(link)

@contextmanager
def _reading(what, *args):
    try:
        yield
    except StreamError as e:
        raise UnexpectedEndOfInput("truncated " + what % args) from e
    except MappingError as e:
        raise UndefinedOrdinal("%s: %s" % (what % args, e)) from e
    except (StringError, UnicodeDecodeError) as e:
        raise DecodeError("bad string in %s: %s" % (what % args, e)) from e
    except ConstructError as e:
        raise DecodeError("%s: %s" % (what % args, e)) from e

class _Skip:
    """Stands in for a field type we can only step over."""
    def __init__(self, code, width):
        self.code = code
        self.width = width

    def parse_stream(self, stream):
        if remaining(stream) < self.width:
            raise StreamError("skipping %d bytes past end" % self.width)
        stream.seek(self.width, 1)

class Decoder:
    def __init__(self, data, options=STRICT):
        self.data = data
        self.stream = BytesIO(data)
        self.options = options
        self.definitions = {}
        self.subcons = {}
        self.instances = []
        self.skipped = []

    @property
    def lenient(self):
        return self.options.mode is Mode.LENIENT

    def header(self):
        head = bytes(self.data[:len(BSII)])
        if len(head) < len(BSII) and BSII.startswith(head):
            raise UnexpectedEndOfInput("truncated header")
        kind = identify(self.data)
        if kind is not Container.PLAIN_BINARY:
            raise UnrecognizedContainer("%s container, not binary SII" % kind.value)

        with _reading("header"):
            hdr = SiiHeader.parse_stream(self.stream)
        if hdr.version not in VERSIONS:
            raise UnrecognizedContainer("unsupported version %d" % hdr.version)
        return hdr.version

    def field_type(self, code, name, struct_name):
        if is_known(code):
            return None
        # without a known width there is no way to find the next record
        if self.lenient and code in self.options.skip_widths:
            return _Skip(code, self.options.skip_widths[code])
        raise UnknownFieldType("unknown type 0x%02X for field %s.%s"
            % (code, struct_name, name), code)

    def definition(self):
        with _reading("definition"):
            struct_id = BlockType.parse_stream(self.stream)
            name = String.parse_stream(self.stream)

        fields = []
        subcons = []
        while True:
            with _reading("definition %s", name):
                code = BlockType.parse_stream(self.stream)
                if code == 0:
                    break
                field_name = String.parse_stream(self.stream)
                ordinals = None
                if code == ORDINAL_STRING:
                    ordinals = {e.ordinal: e.value for e in ORDINAL_TABLE.parse_stream(self.stream)}
            skip = self.field_type(code, field_name, name)
            subcons.append(skip or field_subcon(code, ordinals))
            fields.append(FieldDef(code, field_name, ordinals))

        if struct_id in self.definitions:
            raise DuplicateStructureDefinition(
                "definition 0x%X (%s) declared twice" % (struct_id, name))

        definition = StructDef(struct_id, name, tuple(fields))
        self.definitions[struct_id] = definition
        self.subcons[struct_id] = subcons
        log.debug("definition 0x%X %s: %s", struct_id, name,
            ", ".join("%s:%s" % (f.name, _describe(f.type)) for f in fields))
        return definition

    def instance(self, struct_id):
        try:
            definition = self.definitions[struct_id]
        except KeyError:
            raise UndefinedStructureReference(
                "instance of undeclared definition 0x%X" % struct_id) from None

        with _reading("%s id", definition.name):
            link = LinkID.parse_stream(self.stream)

        values = {}
        unknown = []
        for field, subcon in zip(definition.fields, self.subcons[struct_id]):
            with _reading("%s.%s", definition.name, field.name):
                if isinstance(subcon, _Skip):
                    subcon.parse_stream(self.stream)
                    unknown.append(field)
                else:
                    values[field.name] = subcon.parse_stream(self.stream)

        if unknown:
            err = UnknownFieldType("skipped %s %s: unknown field types %s" % (
                definition.name, link,
                ", ".join("%s=0x%02X" % (f.name, f.type) for f in unknown)), unknown[0].type)
            log.warning("%s", err)
            self.skipped.append(err)
            return None

        return Instance(link, struct_id, definition.name, MappingProxyType(values))

    def decode(self):
        version = self.header()
        while True:
            with _reading("block type"):
                block_type = BlockType.parse_stream(self.stream)
            if block_type == 0:
                with _reading("definition flag"):
                    more = DefinitionFlag.parse_stream(self.stream)
                if not more:
                    break
                self.definition()
            else:
                instance = self.instance(block_type)
                if instance is not None:
                    self.instances.append(instance)

        log.debug("decoded %d definitions, %d instances, %d skipped",
            len(self.definitions), len(self.instances), len(self.skipped))
        return Document(version, self.definitions, self.instances, self.skipped)

def _describe(code):
    return type_name(code) if is_known(code) else "0x%02X" % code

def decode(data, options=STRICT):
    return Decoder(data, options).decode()

def encode(document):
    """Serialise a document back to a BSII buffer.

    Definitions are written first, then instances, then the end marker.
    Only documents using known field types can be encoded.
    """
    out = BytesIO()
    SiiHeader.build_stream(dict(version=document.version), out)

    for definition in document.definitions.values():
        BlockType.build_stream(0, out)
        DefinitionFlag.build_stream(True, out)
        BlockType.build_stream(definition.id, out)
        String.build_stream(definition.name, out)
        for field in definition.fields:
            if not is_known(field.type):
                raise UnknownFieldType("cannot encode type 0x%02X" % field.type, field.type)
            BlockType.build_stream(field.type, out)
            String.build_stream(field.name, out)
            if field.type == ORDINAL_STRING:
                ORDINAL_TABLE.build_stream(
                    [dict(ordinal=k, value=v) for k, v in field.ordinals.items()], out)
        BlockType.build_stream(0, out)

    for instance in document.instances:
        definition = document.definitions[instance.struct_id]
        BlockType.build_stream(instance.struct_id, out)
        LinkID.build_stream(instance.id, out)
        for field in definition.fields:
            subcon = field_subcon(field.type, field.ordinals)
            subcon.build_stream(instance.fields[field.name], out)

    BlockType.build_stream(0, out)
    DefinitionFlag.build_stream(False, out)
    return out.getvalue()

__all__ = [
    "Document", "Instance", "StructDef", "FieldDef", "Decoder", "DecodeOptions",
    "Mode", "STRICT", "LENIENT", "decode", "encode",
]
