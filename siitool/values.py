from collections import namedtuple

# Tokens pack up to 12 characters into a u64, base 38, first character in
# the least significant digit. Digit 0 terminates, so the alphabet is offset
# by one.
CHARTABLE = "0123456789abcdefghijklmnopqrstuvwxyz_"
TOKEN_LENGTH = 12

NAMELESS = 0xFF
NAMELESS_PREFIX = "_nameless."

def token_to_str(value):
    out = []
    rest = value
    while rest > 0:
        digit = rest % 38
        if digit == 0:
            raise ValueError("token 0x%x has a terminator before its last digit" % value)
        if len(out) == TOKEN_LENGTH:
            raise ValueError("token 0x%x has more than %d characters" % (value, TOKEN_LENGTH))
        out.append(CHARTABLE[digit - 1])
        rest //= 38
    return "".join(out)

def str_to_token(text):
    if len(text) > TOKEN_LENGTH:
        raise ValueError("token too long to encode: %r" % text)

    value = 0
    for c in reversed(text.lower()):
        idx = CHARTABLE.find(c)
        if idx < 0:
            raise ValueError("unexpected %r in token %r" % (c, text))
        value = value * 38 + idx + 1
    return value


class Link(namedtuple("Link", "parts nameless")):
    """Reference to another instance, exactly as stored on the wire.

    Named links are a dotted path of tokens ("company.volatile.renat.riga"),
    nameless ones a single u64 the game generated. Links are never followed
    while decoding; use Document.resolve().
    """
    __slots__ = ()

    def __new__(cls, parts, nameless=False):
        parts = tuple(parts)
        if nameless and len(parts) != 1:
            raise ValueError("nameless link needs exactly one part")
        if not nameless and len(parts) >= NAMELESS:
            raise ValueError("link has too many parts: %d" % len(parts))
        return super().__new__(cls, parts, nameless)

    @classmethod
    def parse(cls, text):
        if text == "null":
            return cls(())
        if text.startswith(NAMELESS_PREFIX):
            groups = text[len(NAMELESS_PREFIX):].split(".")
            value = 0
            for group in groups:
                value = (value << 16) | int(group, 16)
            if value >> 64:
                raise ValueError("nameless link out of range: %r" % text)
            return cls((value,), nameless=True)
        return cls(str_to_token(part) for part in text.split("."))

    @property
    def is_null(self):
        return not self.parts

    def part(self, index):
        """Text of one path component, None for nameless links."""
        if self.nameless:
            return None
        return token_to_str(self.parts[index])

    def __str__(self):
        if self.nameless:
            # 16 bit groups, most significant first, like the text saves
            value = self.parts[0]
            groups = [value & 0xFFFF]
            while value >> 16:
                value >>= 16
                groups.append(value & 0xFFFF)
            groups.reverse()
            return NAMELESS_PREFIX + ".".join(["%x" % groups[0]] + ["%04x" % g for g in groups[1:]])
        if not self.parts:
            return "null"
        return ".".join(token_to_str(part) for part in self.parts)

NULL_LINK = Link(())

__all__ = ["Link", "NULL_LINK", "token_to_str", "str_to_token"]
