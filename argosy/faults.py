"""
Argosy faults (parse errors, signals, declaration defects) and rendering.

Scope
- FaultCode: canonical, stable numeric identifiers for every user-facing fault.
  Codes are grouped by domain to keep copy consistent and make logs/searches predictable.
- CommandException: base type that carries message + options and knows how to
  render itself in a friendly, lowercased, and actionable way.
- ParseError: everything a parse can end with besides success; the single terminal
  result of a top-level parse, propagated unchanged through nested subcommand scopes.
- Helped: the distinguished non-failure outcome of the built-in help parameter.
- Declaration defects (UnsupportedTargetError, ArityError, DefaultValueError) are plain
  TypeError/ValueError subclasses: programmer errors found at construction time.
- trigger(): central entry point to surface any fault (respecting shell/fancy/colorful).

Context
- While an error travels outward through nested scopes, each scope attaches a note
  (``parsing '<token>'``) with add_note(); the original error type is never replaced.
"""
import copy
import os.path
import sys
from collections import defaultdict
from enum import IntEnum
from types import MappingProxyType

from rich.console import Console, Group
from rich.panel import Panel
from rich.text import Text

from .utils import Unset

console = Console(stderr=True)


class FaultCode(IntEnum):
    """
    canonical fault codes used across the parser (stable identifiers).

    grouping (by high-level domain)
    - signals (101xx)
      • HELPED
    - switches (111xx)
      • UNMATCHED_SWITCH, AMBIGUOUS_MATCH, INSUFFICIENT_ARGUMENTS
    - values and positionals (1112x)
      • UNEXPECTED_ARGUMENT, COERCION_FAILURE, INVALID_CHOICE, UNSATISFIED_PARAMETER
    - delegated errors (1113x)
      • HOOK_FAILURE, SUBCOMMAND_FAILURE

    spacing leaves room for future additions without reshuffling existing codes.
    """
    # --- signals (10xxx) ---
    HELPED                 = 10101

    # --- switch errors (11xxx) ---
    UNMATCHED_SWITCH       = 11112
    AMBIGUOUS_MATCH        = 11115
    INSUFFICIENT_ARGUMENTS = 11117

    # --- value/positional errors (11xxx) ---
    UNEXPECTED_ARGUMENT    = 11121
    COERCION_FAILURE       = 11122
    INVALID_CHOICE         = 11124
    UNSATISFIED_PARAMETER  = 11125

    # --- delegated errors (11xxx) ---
    HOOK_FAILURE           = 11131
    SUBCOMMAND_FAILURE     = 11132

    def normalize(self):
        """
        return a host-normalized string for this code.

        the host application can provide a __codes__ mapping in __main__
        to override numeric ids with friendlier labels. when no mapping
        is present, the numeric value is returned as a string.
        """
        return str(getattr(__import__("__main__"), "__codes__", {}).get(self, self.value))


class CommandException(Exception):
    """
    base fault: a message plus a read-only mapping of options.

    subclasses declare their default options (code, title, hint) in __options__;
    options given at the raise site win over the defaults.
    """
    __options__ = {}

    def __init__(self, message=Unset, /, **options):
        assert isinstance(message, str | Unset)
        super().__init__(*(() if message is Unset else (message,)))
        self.message = message
        self.options = MappingProxyType(type(self).__options__ | options)

    def __str__(self):
        return self.message if self.message is not Unset else self.options.get("title", "")

    @property
    def code(self):
        return self.options.get("code")

    def __rich__(self):
        main = __import__("__main__")
        colorful = self.options.get("colorful", False)

        styles = defaultdict(str, {
            # header parts
            "prog-name": "bold #E6E6F0",  # near-white program name
            "code": "bold #00E5FF",  # neon cyan fault code
            "error-title": "bold #FF4DA6",  # friendly pinky title

            # body
            "error-message": "#C8C8D0",  # soft light gray message
            "error-note": "#8A8A96",  # dimmer gray for context notes
            "hint-arrow": "#9CE19C dim",  # gentle green arrow
            "hint": "italic #9CE19C",  # gentle green hint text
        } | getattr(main, "__styles__", {}))

        def text(fragment, style=""):
            if not fragment:
                return Text("")
            if not colorful:
                return Text(str(fragment))
            return Text(str(fragment), styles[style])

        prog = text(
            self.options.get("prog") or getattr(main, "__prog__", os.path.basename(sys.argv[0])), "prog-name"
        )
        code = self.options.get("code")

        header = Text.assemble(
            "[ ",
            prog,
            " — ",
            text(code.normalize() if isinstance(code, FaultCode) else "?", "code"),
            " | ",
            text(str(self.options.get("title", type(self).__name__)).title(), "error-title"),
            " ]"
        )
        renders = [text(str(self), "error-message")]
        renders.extend(text(note, "error-note") for note in getattr(self, "__notes__", ()))
        if self.options.get("hint"):
            renders.append(Text.assemble(text(" → ", "hint-arrow"), text(self.options["hint"], "hint")))

        if self.options.get("fancy", False):
            return Panel(Group(*renders), title=header, title_align="left")

        return Group(header, *renders)

    def __trigger__(self) -> None:
        if not self.options.get("shell", False):
            raise self from None
        console.print(self)
        if self.options.get("deferred", False):
            return
        sys.exit(2)

    def __replace__(self, *unused, **overrides):
        assert not unused, "unused arguments are not allowed"
        replica = type(self)(self.message, **{**self.options, **overrides})
        for note in getattr(self, "__notes__", ()):
            replica.add_note(note)
        replica.__cause__ = self.__cause__
        return replica


class Helped(CommandException):
    """
    usage was printed on purpose; no further action should occur.

    not a failure: a top-level driver treats it as a clean, silent exit.
    """
    __options__ = {"code": FaultCode.HELPED, "title": "help requested"}

    def __trigger__(self) -> None:
        return


class ParseError(CommandException):
    """
    a parse ended without success; carries the offending token when there is one.
    """

    @property
    def token(self):
        return self.options.get("token")


class UnmatchedSwitchError(ParseError):
    __options__ = {
        "code": FaultCode.UNMATCHED_SWITCH,
        "title": "unmatched switch",
        "hint": "try '--help' to see the switches accepted at this point",
    }


class AmbiguousMatchError(ParseError):
    """
    two or more declared parameters claim the same token: a declaration defect,
    always fatal, never resolved by tie-break.
    """
    __options__ = {
        "code": FaultCode.AMBIGUOUS_MATCH,
        "title": "ambiguous match",
        "hint": "two parameters share a name; rename one of them",
    }

    @property
    def params(self):
        return self.options.get("params", ())


class InsufficientArgumentsError(ParseError):
    __options__ = {
        "code": FaultCode.INSUFFICIENT_ARGUMENTS,
        "title": "insufficient arguments",
        "hint": "pass a value right after the switch",
    }


class CoercionError(ParseError):
    __options__ = {
        "code": FaultCode.COERCION_FAILURE,
        "title": "bad value",
        "hint": "check the value against the expected type",
    }

    @property
    def kind(self):
        return self.options.get("kind")


class InvalidChoiceError(ParseError):
    __options__ = {
        "code": FaultCode.INVALID_CHOICE,
        "title": "invalid choice",
    }


class UnsatisfiedParameterError(ParseError):
    __options__ = {
        "code": FaultCode.UNSATISFIED_PARAMETER,
        "title": "parameter not satisfied",
        "hint": "a required value is missing; try '--help'",
    }

    @property
    def parameter(self):
        return self.options.get("parameter")


class UnexpectedArgumentError(ParseError):
    """
    a token matched no switch, no open positional and no subcommand name.

    carries the full parameter registry of the scope so callers can render usage.
    """
    __options__ = {
        "code": FaultCode.UNEXPECTED_ARGUMENT,
        "title": "unexpected argument",
        "hint": "try '--help' to see the valid arguments at this point",
    }

    @property
    def params(self):
        return self.options.get("params", ())

    def choices(self):
        return tuple(self.params)


class HookError(ParseError):
    __options__ = {
        "code": FaultCode.HOOK_FAILURE,
        "title": "after parse hook failed",
        "hint": "check additional logs for more details",
    }


class SubcommandError(ParseError):
    __options__ = {
        "code": FaultCode.SUBCOMMAND_FAILURE,
        "title": "subcommand failed",
        "hint": "check additional logs for more details",
    }


class UnsupportedTargetError(TypeError):
    """
    a slot's declared type has no registered coercion, no __from_text__ hook and
    no supported structural kind.
    """


class ArityError(ValueError):
    """an arity marker other than '', '+', '*' or '?'."""


class DefaultValueError(ValueError):
    """a declared default literal could not be bound into its field."""


def trigger(fault, /, **options):
    """
    surface a fault with the given runtime options.

    contract
    - fault must provide __trigger__ and __replace__ methods (see CommandException).
    - options are merged into the fault via __replace__(**options) before triggering.
    - in shell mode, rendering happens via the rich console; otherwise, exceptions are raised.
    """
    if (
        not hasattr(fault, "__trigger__") or
        not callable(fault.__trigger__) or
        not hasattr(fault, "__replace__") or
        not callable(fault.__replace__)
    ):
        raise TypeError("trigger() argument must have a __trigger__ and __replace__ methods")
    copy.replace(fault, **options).__trigger__()


__all__ = (
    "FaultCode",
    "CommandException",
    "Helped",
    "ParseError",
    "UnmatchedSwitchError",
    "AmbiguousMatchError",
    "InsufficientArgumentsError",
    "CoercionError",
    "InvalidChoiceError",
    "UnsatisfiedParameterError",
    "UnexpectedArgumentError",
    "HookError",
    "SubcommandError",
    "UnsupportedTargetError",
    "ArityError",
    "DefaultValueError",
    "trigger",
)
