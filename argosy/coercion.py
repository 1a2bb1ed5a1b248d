"""
Argosy value coercion: turn one string token into a typed value inside a slot.

Overview
- Kinds
  • A kind is the resolved coercion variant for a declared type. Declared types are
    resolved once (kindof) into a small tagged tree, so coercing a token never
    inspects types at parse time:
      Text        str, copied as-is
      Boolean     bool, one of a fixed truthy/falsy vocabulary
      Integer     int, numeric literal rules with 0x/0o/0b and leading-zero octal,
                  range-checked to a fixed width (signed 64 bits by default)
      Sequence    list[T], coerce a fresh T and append it
      Optional    T | None, coerce a fresh T and bind it
      Custom      a parser registered for an exact type (see register)
      Textual     a type exposing the __from_text__(text) classmethod

- Resolution order (kindof)
  1. a custom parser registered for the exact type;
  2. the type's own __from_text__ hook;
  3. the structural kind (str, bool, list[T], T | None, int);
  4. anything else is an UnsupportedTargetError (a declaration defect).

- Slots
  • Slot(kind, value=...): standalone, caller-owned storage.
  • AttributeSlot(owner, name, kind): storage backed by an attribute of another object.

- coerce(text, slot)
  • Converts and stores; conversion failures surface as CoercionError carrying the
    offending token and the slot's kind.

Built-in registrations
- datetime.timedelta from duration literals such as "1h30m", "300ms" or "-1.5h".

Quick example:
    >>> slot = Slot(list[int])
    >>> coerce("0x10", slot); coerce("7", slot)
    >>> slot.value
    [16, 7]
"""
import re
import types
import typing
from collections.abc import Hashable
from datetime import timedelta
from decimal import Decimal, InvalidOperation

from .faults import CoercionError, ParseError, UnsupportedTargetError
from .utils import Unset, coalesce

# Accepted spellings for booleans; anything else is rejected.
_TRUTHY = frozenset(("1", "t", "T", "TRUE", "true", "True"))
_FALSY = frozenset(("0", "f", "F", "FALSE", "false", "False"))

_registry = {}


class Kind:
    """
    Base of every coercion variant.

    Subclasses implement convert(text, current) returning the new slot value, and
    empty() returning the zero value a fresh slot of this kind starts with.
    """
    __slots__ = ()

    def convert(self, text, current, /):
        raise NotImplementedError

    def empty(self):
        return None

    def _key(self):
        return ()

    def __eq__(self, other):
        if type(other) is not type(self):
            return NotImplemented
        return self._key() == other._key()

    def __hash__(self):
        return hash((type(self), self._key()))

    def __repr__(self):
        return f"{type(self).__name__.lower()}({str(self)!r})"


class Text(Kind):
    __slots__ = ()

    def convert(self, text, current, /):
        return text

    def empty(self):
        return ""

    def __str__(self):
        return "str"


class Boolean(Kind):
    __slots__ = ()

    def convert(self, text, current, /):
        if text in _TRUTHY:
            return True
        if text in _FALSY:
            return False
        raise ValueError(f"invalid boolean literal {text!r}")

    def empty(self):
        return False

    def __str__(self):
        return "bool"


class Integer(Kind):
    """
    Fixed-width integer.

    Literals follow the usual rules: an optional sign, then a decimal number, a
    0x/0o/0b prefixed number, or a leading-zero octal number ("017" == 15).
    Underscores are accepted as digit separators. Values outside the width fail.
    """
    __slots__ = ("bits", "signed")

    def __init__(self, bits=64, /, signed=True):
        if not isinstance(bits, int) or bits < 1:
            raise ValueError("integer 'bits' must be a positive integer")
        self.bits = bits
        self.signed = bool(signed)

    @property
    def bounds(self):
        if self.signed:
            return -(1 << (self.bits - 1)), (1 << (self.bits - 1)) - 1
        return 0, (1 << self.bits) - 1

    def convert(self, text, current, /):
        sign, digits = (-1, text[1:]) if text[:1] == "-" else (1, text[1:] if text[:1] == "+" else text)
        if not digits.isascii() or not digits.replace("_", "").isalnum():
            raise ValueError(f"invalid integer literal {text!r}")
        if re.fullmatch(r"0[0-7_]+", digits):
            value = int(digits, 8)
        else:
            value = int(digits, 0)
        value *= sign
        lowest, highest = self.bounds
        if not lowest <= value <= highest:
            raise OverflowError(f"value {text!r} out of range for {self}")
        return value

    def empty(self):
        return 0

    def _key(self):
        return self.bits, self.signed

    def __str__(self):
        return f"{'' if self.signed else 'u'}int{self.bits}"


class Sequence(Kind):
    """
    Growable container: every coercion appends one more element.
    """
    __slots__ = ("inner",)

    def __init__(self, inner, /):
        self.inner = kindof(inner)

    def convert(self, text, current, /):
        item = self.inner.convert(text, self.inner.empty())
        if current is None:
            current = []
        current.append(item)
        return current

    def empty(self):
        return []

    def _key(self):
        return self.inner,

    def __str__(self):
        return f"list[{self.inner}]"


class Optional(Kind):
    """
    Indirect value: coerce a fresh inner value and bind it, replacing None.
    """
    __slots__ = ("inner",)

    def __init__(self, inner, /):
        self.inner = kindof(inner)

    def convert(self, text, current, /):
        return self.inner.convert(text, self.inner.empty())

    def _key(self):
        return self.inner,

    def __str__(self):
        return f"{self.inner} | None"


class Custom(Kind):
    """
    A parser bound to a type; either registered (see register) or built ad hoc.
    """
    __slots__ = ("type", "parser", "zero")

    def __init__(self, type, parser, /, zero=None):
        if not callable(parser):
            raise TypeError("custom 'parser' must be callable")
        self.type = type
        self.parser = parser
        self.zero = zero

    def convert(self, text, current, /):
        return self.parser(text)

    def empty(self):
        return self.zero() if callable(self.zero) else self.zero

    def _key(self):
        return self.type, self.parser

    def __str__(self):
        return getattr(self.type, "__name__", str(self.type))


class Textual(Kind):
    """
    A type that knows how to build itself from text through __from_text__.
    """
    __slots__ = ("type",)

    def __init__(self, type, /):
        if not callable(getattr(type, "__from_text__", None)):
            raise TypeError(f"type {type!r} does not provide __from_text__()")
        self.type = type

    def convert(self, text, current, /):
        return self.type.__from_text__(text)

    def _key(self):
        return self.type,

    def __str__(self):
        return self.type.__name__


def register(type, parser=Unset, /, *, zero=None):
    """
    Register a custom coercion for an exact type.

    Usage
    - Function form: register(Path, Path)
    - Decorator form:
        @register(Fraction)
        def parse_fraction(text): ...

    The parser receives the raw token and returns the value; raising ValueError,
    TypeError or ArithmeticError signals a coercion failure. 'zero' is the value (or
    a factory for it) that a fresh slot of this type starts with.
    """
    if not isinstance(type, Hashable):
        raise TypeError("register() first argument must be a hashable type")

    def wrapper(parser, /):
        if not callable(parser):
            raise TypeError("@register() must be applied to a callable")
        _registry[type] = Custom(type, parser, zero=zero)
        return parser

    if parser is Unset:
        return wrapper
    return wrapper(parser)


def unregister(type, /):
    """
    Remove a custom coercion; a missing registration is a KeyError.
    """
    del _registry[type]


def kindof(annotation, /):
    """
    Resolve a declared type (or an already built kind) into its kind.

    Raises UnsupportedTargetError for anything outside the resolution order.
    """
    if isinstance(annotation, Kind):
        return annotation

    try:
        return _registry[annotation]
    except (KeyError, TypeError):
        pass

    if isinstance(annotation, type) and callable(getattr(annotation, "__from_text__", None)):
        return Textual(annotation)

    if annotation is str:
        return Text()
    if annotation is bool:
        return Boolean()
    if annotation is int:
        return Integer()
    if annotation is list:
        return Sequence(Text())

    origin, arguments = typing.get_origin(annotation), typing.get_args(annotation)

    if origin is list and len(arguments) == 1:
        return Sequence(arguments[0])

    if origin in (typing.Union, types.UnionType) and type(None) in arguments and len(arguments) == 2:
        inner, = (argument for argument in arguments if argument is not type(None))
        return Optional(inner)

    raise UnsupportedTargetError(f"unhandled target type {annotation!r}")


class Slot[_T]:
    """
    Caller-owned storage for one parameter's value.

    The kind is resolved at construction; value starts at the kind's zero value
    unless given explicitly.
    """
    __slots__ = ("kind", "value")

    def __init__(self, kind=str, /, value=Unset):
        self.kind = kindof(kind)
        self.value = coalesce(value, self.kind.empty())

    def __repr__(self):
        return f"slot({self.kind}, value={self.value!r})"


class AttributeSlot[_T]:
    """
    Storage backed by an attribute of another object (e.g., a dataclass field).
    """
    __slots__ = ("owner", "name", "kind")

    def __init__(self, owner, name, kind, /):
        if not isinstance(name, str):
            raise TypeError("attribute slot 'name' must be a string")
        self.owner = owner
        self.name = name
        self.kind = kindof(kind)

    @property
    def value(self):
        return getattr(self.owner, self.name)

    @value.setter
    def value(self, value):
        setattr(self.owner, self.name, value)

    def __repr__(self):
        return f"slot({self.kind}, {type(self.owner).__name__}.{self.name}={self.value!r})"


def coerce(text, slot, /):
    """
    Convert one token into the slot's kind and store the result.

    ParseError raised by a parser (e.g., an invalid choice) propagates unchanged;
    any other conversion failure becomes a CoercionError chained to its cause.
    """
    if not isinstance(text, str):
        raise TypeError("coerce() first argument must be a string")
    try:
        slot.value = slot.kind.convert(text, slot.value)
    except ParseError:
        raise
    except (ValueError, TypeError, ArithmeticError) as exception:
        raise CoercionError(
            f"cannot coerce {text!r} into {slot.kind}: {exception}",
            token=text,
            kind=slot.kind,
        ) from exception


_DURATION_UNITS = {
    "ns": Decimal("0.001"),
    "us": Decimal(1),
    "µs": Decimal(1),
    "μs": Decimal(1),
    "ms": Decimal(1_000),
    "s": Decimal(1_000_000),
    "m": Decimal(60_000_000),
    "h": Decimal(3_600_000_000),
}

_DURATION_SEGMENT = re.compile(r"(\d+\.?\d*|\.\d+)(ns|us|µs|μs|ms|s|m|h)")


def parse_duration(text, /):
    """
    Parse a duration literal: an optional sign followed by one or more
    number+unit segments ("1h30m", "1.5s", "-300ms"). The bare "0" is accepted.
    """
    sign, body = (-1, text[1:]) if text[:1] == "-" else (1, text[1:] if text[:1] == "+" else text)
    if body == "0":
        return timedelta(0)
    if not body:
        raise ValueError(f"invalid duration {text!r}")

    total = Decimal(0)
    position = 0
    while position < len(body):
        if not (match := _DURATION_SEGMENT.match(body, position)):
            raise ValueError(f"invalid duration {text!r}")
        try:
            total += Decimal(match[1]) * _DURATION_UNITS[match[2]]
        except InvalidOperation:
            raise ValueError(f"invalid duration {text!r}") from None
        position = match.end()

    return timedelta(microseconds=float(sign * total))


register(timedelta, parse_duration, zero=timedelta)


__all__ = (
    # Kinds
    "Kind",
    "Text",
    "Boolean",
    "Integer",
    "Sequence",
    "Optional",
    "Custom",
    "Textual",

    # Slots
    "Slot",
    "AttributeSlot",

    # Functions
    "register",
    "unregister",
    "kindof",
    "coerce",
    "parse_duration",
)
