"""
Argosy struct binder: derive parameters from the fields of a dataclass instance.

Overview
- Every field becomes one parameter bound to the instance attribute (AttributeSlot),
  so parsing writes straight into the object.
- Field metadata is declared with arg(...), a dataclasses.field(...) wrapper:
    role        "switch" (default) or "positional"
    arity       "", "+", "*" or "?" (see Arity)
    default     literal bound through the normal coercion path at construction
    help        usage text
    short       single-character short switch
    skip        exclude the field

Mapping rules
- bool (and bool | None) fields become flags with the "no" negation prefix.
- Other fields become options (long switch = kebab-case field name) or positionals.
- Parameter names read "TypeName.field_name".
- "*" and "?" start satisfied; so does an exactly-one field with a default literal,
  a non-None dataclass default or an optional (T | None) type.

Quick example:
    >>> @dataclass
    ... class Args:
    ...     first: str = arg("positional")
    ...     rest: list[str] = arg("positional", arity="*")
    ...     dry_run: bool = False
    >>> args = Args()
    >>> parse(["a", "b", "--dry-run"], *from_struct(args))
"""
import collections
import dataclasses
import typing

from .coercion import AttributeSlot, Boolean, Optional
from .faults import ArityError, DefaultValueError, ParseError
from .parameters import Arity, Parameter, ParameterKind
from .utils import *

_METADATA = "argosy"

FieldOptions = collections.namedtuple("FieldOptions", ("role", "arity", "default", "help", "short", "skip"))

_DEFAULTS = FieldOptions("switch", "", Unset, Unset, Unset, False)


def arg(role="switch", /, *, arity="", default=Unset, help=Unset, short=Unset, skip=False, default_factory=Unset):
    """
    Declare how a dataclass field maps to a parameter.

    Returns a dataclasses.field(...) whose dataclass default is None, or the result
    of default_factory when one is given.
    """
    if role not in ("switch", "positional"):
        raise ValueError(f"arg() role must be 'switch' or 'positional', not {role!r}")
    if not isinstance(default, str | UnsetType):
        raise TypeError("arg() 'default' must be a string literal")

    metadata = {_METADATA: FieldOptions(role, arity, default, help, short, bool(skip))}
    if default_factory is Unset:
        return dataclasses.field(default=None, metadata=metadata)
    return dataclasses.field(default_factory=default_factory, metadata=metadata)


def _has_default(field):
    if field.default_factory is not dataclasses.MISSING:
        return True
    return field.default is not dataclasses.MISSING and field.default is not None


def from_struct(instance, /):
    """
    Build the parameters for every non-skipped field of a dataclass instance.

    Raises
    - TypeError: instance is not a dataclass instance, or a field type has no coercion
      (UnsupportedTargetError).
    - ArityError: a field declares an unknown arity marker.
    - DefaultValueError: a default literal fails to bind.
    """
    if not dataclasses.is_dataclass(instance) or isinstance(instance, type):
        raise TypeError("from_struct() argument must be a dataclass instance")

    owner = type(instance)
    hints = typing.get_type_hints(owner)
    parameters = []

    for field in dataclasses.fields(instance):
        options = field.metadata.get(_METADATA, _DEFAULTS)
        if options.skip:
            continue

        name = f"{owner.__name__}.{field.name}"
        try:
            arity = Arity.from_marker(options.arity)
        except ArityError:
            raise ArityError(f"unhandled arity {options.arity!r} on {name}") from None

        slot = AttributeSlot(instance, field.name, hints[field.name])
        if slot.value is None and not isinstance(slot.kind, Optional):
            slot.value = slot.kind.empty()

        positional = options.role == "positional"
        if slot.kind in (Boolean(), Optional(Boolean())):
            if positional:
                raise ValueError(f"boolean field {name} cannot be positional")
            parameter = Parameter(
                ParameterKind.FLAG,
                longs=(kebab(field.name),),
                shorts=() if options.short is Unset else (options.short,),
                negation="no",
                slot=slot,
                name=name,
                help=options.help,
            )
        elif positional:
            parameter = Parameter(
                ParameterKind.POSITIONAL,
                arity=arity,
                slot=slot,
                name=name,
                help=options.help,
            )
        else:
            parameter = Parameter(
                ParameterKind.OPTION,
                longs=(kebab(field.name),),
                shorts=() if options.short is Unset else (options.short,),
                arity=arity,
                slot=slot,
                name=name,
                help=options.help,
            )

        if arity is Arity.EXACTLY_ONE and (_has_default(field) or isinstance(slot.kind, Optional)):
            parameter.satisfied = True

        if options.default is not Unset:
            try:
                parameter.apply_default(options.default)
            except ParseError as exception:
                raise DefaultValueError(f"setting default {options.default!r} on {name}: {exception}") from exception

        parameters.append(parameter)

    return parameters


__all__ = (
    "FieldOptions",
    "arg",
    "from_struct",
)
