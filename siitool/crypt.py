import enum
import logging
import zlib

from Crypto.Cipher import AES
from Crypto.Util.Padding import unpad
from construct import ConstError, StreamError

from .errors import (CipherError, DecompressionError, PostDecodeSignatureMismatch,
    SizeMismatch, UnexpectedEndOfInput, UnrecognizedContainer)
from .siistructs import BOM, BSII, SCSC, SIIN, EncryptedHeader

log = logging.getLogger(__name__)

# One key per game family, same for every save
SII_KEY = bytes((
    0x2A, 0x5F, 0xCB, 0x17, 0x91, 0xD2, 0x2F, 0xB6,
    0x02, 0x45, 0xB3, 0xD8, 0x36, 0x9E, 0xD0, 0xB2,
    0xC2, 0x73, 0x71, 0x56, 0x3F, 0xBF, 0x1F, 0x3C,
    0x9E, 0xDF, 0x6B, 0x11, 0x82, 0x5A, 0x5D, 0x0A,
))

class Container(enum.Enum):
    ENCRYPTED = "encrypted"
    PLAIN_BINARY = "binary"
    PLAIN_TEXT = "text"

def identify(data):
    data = bytes(data[:len(BOM) + 4])
    if data.startswith(SCSC):
        return Container.ENCRYPTED
    if data.startswith(BSII):
        return Container.PLAIN_BINARY
    if data.startswith(SIIN) or data.startswith(BOM + SIIN):
        return Container.PLAIN_TEXT
    raise UnrecognizedContainer("unrecognized signature %r" % data[:4])

def decrypt(data):
    """Strip the ScsC header and AES-256-CBC decrypt the rest.

    Returns the still deflated payload and the size the header declares for
    it once inflated.
    """
    try:
        hdr = EncryptedHeader.parse(data)
    except ConstError as e:
        raise UnrecognizedContainer(str(e)) from e
    except StreamError as e:
        raise UnexpectedEndOfInput("truncated encrypted header") from e

    body = bytes(data[EncryptedHeader.sizeof():])
    try:
        cipher = AES.new(SII_KEY, AES.MODE_CBC, iv=hdr.iv)
        return unpad(cipher.decrypt(body), AES.block_size), hdr.size
    except ValueError as e:
        raise CipherError("decryption failed: %s" % e) from e

def inflate(data, size):
    # never inflate more than the header promised
    inflater = zlib.decompressobj()
    try:
        out = inflater.decompress(data, size + 1)
    except zlib.error as e:
        raise DecompressionError(str(e)) from e
    if len(out) > size:
        raise SizeMismatch("payload inflates past the %d bytes the header says" % size)
    if not inflater.eof:
        raise DecompressionError("deflate stream is truncated")
    if len(out) != size:
        raise SizeMismatch("inflated %d bytes, header says %d" % (len(out), size))
    return out

def unwrap(data):
    kind = identify(data)
    log.debug("container is %s, %d bytes", kind.value, len(data))
    if kind is not Container.ENCRYPTED:
        return bytes(data)

    out = inflate(*decrypt(data))
    try:
        identify(out)
    except UnrecognizedContainer:
        raise PostDecodeSignatureMismatch(
            "decrypted payload starts with %r" % out[:4]) from None
    if out.startswith(SCSC):
        raise PostDecodeSignatureMismatch("decrypted payload is encrypted again")
    return out

__all__ = ["Container", "identify", "unwrap", "decrypt", "inflate", "SII_KEY"]
