r"""
Argosy parameters: the declarative units a parser matches tokens against.

Overview
- Parameter
  • One class for every kind of parameter; the kind is a capability, not a subclass:
      FLAG        nullary switch writing true/false (negated spelling clears it)
      OPTION      switch consuming the next token into its slot
      POSITIONAL  recognised by position; consumed in declaration order
      SUBCOMMAND  runs a handler with a Context instead of binding a value
  • State: 'satisfied' (minimum arity met) and 'valid' (still eligible to match).
  • bind(tokens, negated) consumes tokens into the slot and returns the rest.

- Arity
  • EXACTLY_ONE "", ONE_OR_MORE "+", ZERO_OR_MORE "*", ZERO_OR_ONE "?".
    Optional arities start satisfied; repeatable arities keep positionals open.

- Factories
  • flag(...), option(...), positional(...), subcommand(...) and help_flag().
  • subcommand(...) doubles as a decorator over the handler.
  • Choice: an option restricted to the keys of a mapping.

- Introspection & representation
  • ParameterType metaclass exposes declarative fields as read-only properties
    (declared in __introspectable__) and provides stable __repr__/__rich_repr__.

Validation highlights
- Long names must match r"[^\W_](-?[^\W_]+)*" (no leading hyphens: the parser adds them).
- Short names are single characters other than '-'.
- Positionals carry no switches; flags and options carry at least one.
- Flag slots must be boolean (or optional boolean).

Quick example:
    >>> verbose = flag("verbose", short="v", help="talk more")
    >>> files = positional("files", list[str])
    >>> @subcommand("build", help="build the project")
    ... def build(context): ...
"""
import functools
import operator
import re
from collections.abc import Iterable, Mapping
from enum import StrEnum

from .coercion import Boolean, Custom, Optional, Sequence, Slot, coerce
from .faults import ArityError, Helped, InsufficientArgumentsError, InvalidChoiceError
from .utils import *


class ParameterKind(StrEnum):
    FLAG = "flag"
    OPTION = "option"
    POSITIONAL = "positional"
    SUBCOMMAND = "subcommand"


class Arity(StrEnum):
    """
    How many value tokens a parameter takes across the whole parse.
    """
    EXACTLY_ONE = ""
    ONE_OR_MORE = "+"
    ZERO_OR_MORE = "*"
    ZERO_OR_ONE = "?"

    @classmethod
    def from_marker(cls, marker, /):
        """
        Resolve an arity marker ('', '+', '*', '?'; None means ''), or raise ArityError.
        """
        if isinstance(marker, cls):
            return marker
        if marker is None or marker is Unset:
            marker = ""
        try:
            return cls(marker)
        except ValueError:
            raise ArityError(f"unhandled arity {marker!r}") from None

    @property
    def optional(self):
        """Satisfied before any token is consumed."""
        return self in (Arity.ZERO_OR_MORE, Arity.ZERO_OR_ONE)

    @property
    def repeatable(self):
        """Stays eligible for further matches after one."""
        return self in (Arity.ONE_OR_MORE, Arity.ZERO_OR_MORE)


class Usage(tuple):
    """
    Minimal usage contract of one parameter: switch spellings, value placeholders, help.
    """
    __slots__ = ()

    def __new__(cls, switches=(), arguments=(), help=None):
        return super().__new__(cls, (tuple(switches), tuple(arguments), help))

    switches = property(operator.itemgetter(0))
    arguments = property(operator.itemgetter(1))
    help = property(operator.itemgetter(2))

    def __repr__(self):
        return f"usage(switches={self.switches!r}, arguments={self.arguments!r}, help={self.help!r})"


class ParameterType(type):
    """
    Metaclass that turns parameters into introspectable descriptors.

    Responsibilities
    - Expose selected fields as read-only properties using mirror() for all
      names listed in __introspectable__.
    - Provide stable, readable __repr__/__rich_repr__ implementations for
      diagnostics and usage output.

    Conventions
    - __typename__ is derived from the class name (camel-case split with hyphens).
    - __displayable__ (if set) narrows which attributes are shown by __rich_repr__;
      otherwise __introspectable__ is used.
    """
    __introspectable__ = ()
    __displayable__ = Unset

    def __new__(cls, name, bases, namespace, **options):
        self = super().__new__(
            cls,
            name,
            bases,
            namespace | {
                "__typename__": re.sub(r"(?<!^)(?=[A-Z])", r"-", name).lower(),
            } | {
                name: mirror(name) for name in namespace.get("__introspectable__", ())
            },
        )

        @rename("__repr__")
        def __repr__(self):
            """
            Return a concise, stable representation with key metadata.

            Example
            - parameter(kind='flag', name='verbose', longs=('verbose',), ...)
            """
            return f"{type(self).__typename__}({
                ", ".join(map(functools.partial(operator.mod, "%s=%r"), self.__rich_repr__()))
            })"
        self.__repr__ = __repr__

        @rename("__rich_repr__")
        def __rich_repr__(self):
            for name in coalesce(type(self).__displayable__, type(self).__introspectable__):
                yield name, getattr(self, name)
        self.__rich_repr__ = __rich_repr__

        return self


def _sanitize_switches(cls, metadata, /):
    r"""
    Internal: validate long/short names and the negation prefix.

    - longs: strings matching r"[^\W_](-?[^\W_]+)*", no duplicates, stored as a tuple.
    - shorts: single characters other than '-', no duplicates, stored as a tuple.
    - negation: Unset/None (disabled) or a string shaped like a long name.
    """
    longs = []
    for name in metadata["longs"]:
        if not isinstance(name, str):
            raise TypeError(f"{cls.__typename__} long names must be strings")
        elif not re.fullmatch(r"[^\W_](-?[^\W_]+)*", name):
            raise ValueError(f"{cls.__typename__} long name {name!r} is not a valid switch name (no leading hyphens)")
        elif name in longs:
            raise ValueError(f"{cls.__typename__} long names cannot contain duplicates")
        longs.append(name)
    metadata["longs"] = tuple(longs)

    shorts = []
    for name in metadata["shorts"]:
        if not isinstance(name, str):
            raise TypeError(f"{cls.__typename__} short names must be strings")
        elif len(name) != 1 or name == "-" or name.isspace():
            raise ValueError(f"{cls.__typename__} short name {name!r} must be a single character")
        elif name in shorts:
            raise ValueError(f"{cls.__typename__} short names cannot contain duplicates")
        shorts.append(name)
    metadata["shorts"] = tuple(shorts)

    if (negation := metadata["negation"]) is None:
        negation = Unset
    if not isinstance(negation, str | Unset):
        raise TypeError(f"{cls.__typename__} 'negation' must be a string")
    elif isinstance(negation, str) and not re.fullmatch(r"[^\W_](-?[^\W_]+)*", negation):
        raise ValueError(f"{cls.__typename__} 'negation' {negation!r} is not a valid prefix")
    metadata["negation"] = coalesce(negation)


def _sanitize_help(cls, metadata, /):
    if not isinstance(help := metadata["help"], str | Unset):
        raise TypeError(f"{cls.__typename__} 'help' must be a string")
    elif isinstance(help, str) and not (help := help.strip()):
        raise ValueError(f"{cls.__typename__} 'help' cannot be empty")
    metadata["help"] = coalesce(help)


class Parameter(metaclass=ParameterType):
    """
    One declared unit of expected input.

    Declarative fields (read-only): kind, name, longs, shorts, negation, arity, help,
    positional. Runtime state (mutable): satisfied, valid. The slot receives bound
    values; subcommands carry a run handler instead of a slot.

    Lifecycle
    - satisfied starts true for flags, subcommands and optional arities.
    - bind(...) marks the parameter satisfied; a singular positional becomes invalid
      after its one token so the next positional becomes eligible.
    - after_parse hooks are run by the parser right after each successful bind.
    """

    __introspectable__ = (
        "kind",
        "name",
        "longs",
        "shorts",
        "negation",
        "arity",
        "help",
        "positional",
    )

    __displayable__ = (
        "kind",
        "name",
        "longs",
        "shorts",
        "arity",
        "satisfied",
        "valid",
    )

    def __init__(
            self,
            kind,
            /,
            *,
            longs=(),
            shorts=(),
            negation=Unset,
            arity=Arity.EXACTLY_ONE,
            slot=Unset,
            name=Unset,
            help=Unset,
            run=Unset,
            after_parse=(),
            positional=Unset,
            satisfied=Unset,
    ):
        cls = type(self)
        metadata = {
            "kind": ParameterKind(kind),
            "longs": (longs,) if isinstance(longs, str) else longs,
            "shorts": (shorts,) if isinstance(shorts, str) else shorts,
            "negation": negation,
            "arity": Arity.from_marker(arity),
            "help": help,
        }
        _sanitize_switches(cls, metadata)
        _sanitize_help(cls, metadata)

        kind = metadata["kind"]
        switched = bool(metadata["longs"] or metadata["shorts"])

        metadata["positional"] = bool(coalesce(
            positional,
            kind is ParameterKind.POSITIONAL or (kind is ParameterKind.SUBCOMMAND and not switched)
        ))

        if metadata["positional"] and switched:
            raise ValueError(f"{cls.__typename__} positional parameters cannot carry switches")
        if kind in (ParameterKind.FLAG, ParameterKind.OPTION) and not switched:
            raise ValueError(f"{kind} must specify at least one switch name")
        if metadata["negation"] is not None and kind is not ParameterKind.FLAG:
            raise ValueError(f"{kind} cannot declare a 'negation' prefix")

        if kind is ParameterKind.SUBCOMMAND:
            if not callable(run):
                raise TypeError(f"{kind} 'run' must be callable")
            if slot is not Unset:
                raise TypeError(f"{kind} cannot bind a slot")
        else:
            if run is not Unset:
                raise TypeError(f"{kind} cannot have a 'run' handler")
            if not hasattr(slot, "kind") or not hasattr(slot, "value"):
                raise TypeError(f"{kind} 'slot' must be a slot")
            if kind is ParameterKind.FLAG and slot.kind not in (Boolean(), Optional(Boolean())):
                raise TypeError(f"{kind} slot must be boolean, not {slot.kind}")

        if name is Unset:
            if metadata["positional"]:
                raise TypeError(f"{kind} must specify a 'name'")
            name = (metadata["longs"] or metadata["shorts"])[0]
        if not isinstance(name, str) or not name.strip():
            raise TypeError(f"{cls.__typename__} 'name' must be a non-empty string")
        metadata["name"] = name

        if not isinstance(after_parse, Iterable) or not all(map(callable, after_parse := list(after_parse))):
            raise TypeError(f"{cls.__typename__} 'after_parse' must be an iterable of callables")

        for name, object in metadata.items():
            setattr(self, "_" + name, object)

        self.slot = coalesce(slot)
        self.run = coalesce(run)
        self.after_parse = after_parse
        self.satisfied = bool(coalesce(
            satisfied,
            kind in (ParameterKind.FLAG, ParameterKind.SUBCOMMAND) or self.arity.optional
        ))
        self.valid = True
        self._seeded = False

    def __parameter__(self):
        """
        Introspection hook: identify this object as a Parameter.
        """
        return self

    def __str__(self):
        return self.name

    @property
    def nullary(self):
        """Takes no value token."""
        return self.kind in (ParameterKind.FLAG, ParameterKind.SUBCOMMAND)

    @property
    def value(self):
        return self.slot.value if self.slot is not None else None

    def after(self, hook, /):
        """
        Append an after-parse hook; usable as a decorator.
        """
        if not callable(hook):
            raise TypeError("after() argument must be callable")
        self.after_parse.append(hook)
        return hook

    def usage(self):
        switches = ["--" + name for name in self.longs] + ["-" + name for name in self.shorts]
        if self.kind is ParameterKind.SUBCOMMAND and self.positional:
            switches = [self.name]
        arguments = () if self.nullary else (self.name,)
        return Usage(switches, arguments, self.help)

    def bind(self, tokens, negated=False, /):
        """
        Consume tokens into the slot and return the unconsumed rest.

        - flag: consumes nothing; writes false when the negated spelling matched.
        - option: consumes the next token; fails when there is none.
        - positional: consumes the current token (handed back at the head of tokens).
        """
        tokens = tuple(tokens)
        match self.kind:
            case ParameterKind.FLAG:
                coerce("false" if negated else "true", self.slot)
                return tokens
            case ParameterKind.OPTION | ParameterKind.POSITIONAL:
                if not tokens:
                    raise InsufficientArgumentsError(f"insufficient arguments for {self.name!r}", parameter=self)
                if self._seeded and isinstance(self.slot.kind, Sequence):
                    # the first real value replaces a seeded default instead of extending it
                    self.slot.value = self.slot.kind.empty()
                self._seeded = False
                coerce(tokens[0], self.slot)
                self.satisfied = True
                if self.kind is ParameterKind.POSITIONAL and not self.arity.repeatable:
                    self.valid = False
                return tokens[1:]
            case ParameterKind.SUBCOMMAND:
                raise TypeError(f"subcommand {self.name!r} is run, not bound")

    def apply_default(self, literal, /):
        """
        Bind a default literal before any real token is read.

        The parameter ends up satisfied but stays open ('valid' is preserved), and a
        repeatable slot is reset by the first real value instead of extended.
        """
        if not isinstance(literal, str):
            raise TypeError("apply_default() argument must be a string")
        if self.kind is ParameterKind.FLAG:
            coerce(literal, self.slot)
            return
        valid = self.valid
        self.bind((literal,))
        self.valid = valid
        self._seeded = True


def _resolve_slot(target, /):
    """
    Accept a slot as-is, or build a fresh one from a type/kind.
    """
    if hasattr(target, "kind") and hasattr(target, "value"):
        return target
    return Slot(target)


def _switch_name(name, /):
    # identifiers ("dry_run", "maxRetries") become kebab case; other spellings are validated as given
    if isinstance(name, str) and name.isidentifier():
        return kebab(name)
    return name


def flag(long, target=Unset, /, *, short=Unset, default=False, negation="no", help=Unset, after_parse=()):
    """
    Nullary boolean switch: '--long' sets true, '--no-long' sets false.

    When no target slot is given, a fresh boolean slot starting at 'default' is made.
    """
    return Parameter(
        ParameterKind.FLAG,
        longs=(_switch_name(long),),
        shorts=() if short is Unset else (short,),
        negation=negation,
        slot=_resolve_slot(target) if target is not Unset else Slot(bool, bool(default)),
        help=help,
        after_parse=after_parse,
    )


def option(long, target, /, *, short=Unset, required=False, arity=Unset, help=Unset, after_parse=()):
    """
    Valued switch: '--long VALUE'.

    The target is a slot, or a type to build a fresh slot from. Without an explicit
    arity, list targets repeat ('*', or '+' when required) and other targets take one
    value ('?', or '' when required).
    """
    slot = _resolve_slot(target)
    repeatable = isinstance(slot.kind, Sequence)
    if arity is Unset:
        if repeatable:
            arity = Arity.ONE_OR_MORE if required else Arity.ZERO_OR_MORE
        else:
            arity = Arity.EXACTLY_ONE if required else Arity.ZERO_OR_ONE
    return Parameter(
        ParameterKind.OPTION,
        longs=(_switch_name(long),),
        shorts=() if short is Unset else (short,),
        arity=arity,
        slot=slot,
        help=help,
        after_parse=after_parse,
    )


def positional(name, target, /, *, arity=Unset, help=Unset, after_parse=()):
    """
    Positional value. List targets default to one-or-more, others to exactly-one.
    """
    slot = _resolve_slot(target)
    if arity is Unset:
        arity = Arity.ONE_OR_MORE if isinstance(slot.kind, Sequence) else Arity.EXACTLY_ONE
    return Parameter(
        ParameterKind.POSITIONAL,
        name=name,
        arity=arity,
        slot=slot,
        help=help,
        after_parse=after_parse,
    )


def subcommand(name, run=Unset, /, *, help=Unset):
    """
    Subcommand selected by its exact name; 'run' receives a Context.

    Usage
    - subcommand("build", handler)
    - As a decorator:
        @subcommand("build", help="build the project")
        def build(context): ...
    """
    if not isinstance(name, str) or not re.fullmatch(r"[^\s-]\S*", name):
        raise ValueError(f"subcommand name {name!r} must be a non-empty word not starting with '-'")

    @rename("subcommand")
    def wrapper(run, /):
        if not callable(run):
            raise TypeError("@subcommand() must be applied to a callable")
        return Parameter(ParameterKind.SUBCOMMAND, name=name, run=run, help=help, positional=True)

    if run is Unset:
        return wrapper
    return wrapper(run)


def _show_help(context, /):
    context.parent.print_choices()
    raise Helped("help flagged")


def help_flag():
    """
    The built-in '--help'/'-h' parameter every parser starts with.

    It is a subcommand-kind switch: it prints the scope's usage and ends the parse
    with the Helped signal.
    """
    return Parameter(
        ParameterKind.SUBCOMMAND,
        longs=("help",),
        shorts=("h",),
        name="help",
        run=_show_help,
        positional=False,
    )


class Choice:
    """
    Option restricted to the keys of a mapping; the selected key maps to a value.

    Parameters
    - long: switch name ('--long').
    - choices: Mapping[str, Any] of accepted spellings to the values they select.
    - default: preselected key; without one the option is required.
    - help: defaults to the accepted keys joined by '|'.

    Pass the Choice itself to a parser: it is resolved through __parameter__.
    """

    def __init__(self, long, choices, /, default="", *, help=Unset):
        if not isinstance(choices, Mapping):
            raise TypeError("choice 'choices' must be a mapping")
        if not choices or not all(isinstance(key, str) and key for key in choices):
            raise ValueError("choice 'choices' must map non-empty strings")
        if not isinstance(default, str):
            raise TypeError("choice 'default' must be a string")
        if default and default not in choices:
            raise ValueError(f"choice 'default' {default!r} is not one of the choices")

        self._choices = dict(choices)
        self._slot = Slot(Custom(str, self._select, zero=""), default)
        self._parameter = Parameter(
            ParameterKind.OPTION,
            longs=(_switch_name(long),),
            arity=Arity.ZERO_OR_ONE if default else Arity.EXACTLY_ONE,
            slot=self._slot,
            help=coalesce(help, "|".join(self.keys())),
        )

    def __parameter__(self):
        return self._parameter

    def _select(self, text, /):
        if text not in self._choices:
            raise InvalidChoiceError(
                f"invalid choice {text!r}: {'|'.join(self.keys())}",
                token=text,
                choices=self.keys(),
            )
        return text

    def keys(self):
        return tuple(self._choices)

    @property
    def selected(self):
        return self._slot.value

    @property
    def selected_value(self):
        return self._choices.get(self.selected)

    def __repr__(self):
        return f"choice({self._parameter.name!r}, selected={self.selected!r})"


__all__ = (
    # Types
    "ParameterKind",
    "Arity",
    "Usage",
    "Parameter",
    "Choice",

    # Factories
    "flag",
    "option",
    "positional",
    "subcommand",
    "help_flag",
)

# Remove the internal metaclass from the module namespace to avoid accidental
# exposure in docs, autocompletion, or star-imports. Not part of the public API.
del ParameterType
