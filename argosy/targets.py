"""
Ready-made targets that know how to build themselves from a token.
"""
import re

__all__ = (
    "Hex",
)


class Hex:
    """
    Bytes written as an even-length string of hexadecimal digits ("deadbeef").
    """
    __slots__ = ("bytes",)

    def __init__(self, data=b"", /):
        self.bytes = bytes(data)

    @classmethod
    def __from_text__(cls, text, /):
        if not re.fullmatch(r"(?:[0-9a-fA-F]{2})*", text):
            raise ValueError(f"invalid hex literal {text!r}")
        return cls(bytes.fromhex(text))

    def __bytes__(self):
        return self.bytes

    def __eq__(self, other):
        if not isinstance(other, Hex):
            return NotImplemented
        return self.bytes == other.bytes

    def __hash__(self):
        return hash(self.bytes)

    def __repr__(self):
        return f"hex({self.bytes.hex()!r})"
