from .crypt import Container, identify, unwrap
from .errors import *
from .scs import ArchiveIndex, open_index
from .sii import Document, Instance, StructDef, FieldDef, DecodeOptions, Mode, STRICT, LENIENT, decode, encode
from .values import Link
