class DecodeError(ValueError):
    pass

class UnrecognizedContainer(DecodeError):
    pass

class PostDecodeSignatureMismatch(DecodeError):
    pass

class CipherError(DecodeError):
    pass

class DecompressionError(DecodeError):
    pass

class UnknownFieldType(DecodeError):
    def __init__(self, message, code=None):
        super().__init__(message)
        self.code = code

class UndefinedStructureReference(DecodeError):
    pass

class DuplicateStructureDefinition(DecodeError):
    pass

class UndefinedOrdinal(DecodeError):
    pass

class UnexpectedEndOfInput(DecodeError):
    pass

class SizeMismatch(DecodeError):
    pass

class UnsupportedEntry(DecodeError):
    pass

# a miss is an answer, not a broken file
class NotFound(LookupError):
    pass

__all__ = [
    "DecodeError", "UnrecognizedContainer", "PostDecodeSignatureMismatch",
    "CipherError", "DecompressionError", "UnknownFieldType",
    "UndefinedStructureReference", "DuplicateStructureDefinition",
    "UndefinedOrdinal", "UnexpectedEndOfInput", "SizeMismatch",
    "UnsupportedEntry", "NotFound",
]
