"""
Argosy parser layer: match tokens against parameters, run subcommands, report one result.

What this module provides
- Cursor: the token sequence plus a read position, shared by reference between a
  parser and every parser nested under it.
- Parser: the registry of parameters (built-in help first, then declaration order)
  and the match loop.
- Context: what a subcommand handler receives; builds nested parsers over the same
  cursor and queues deferred actions.
- parse(...) / ParseResult: one-shot parsing that returns the terminal outcome.
- main(...): thin driver implementing the process exit contract.

Core ideas
- One token, one decision. Per token, in strict priority:
    1. "--" (outside positional-only mode) switches to positional-only mode;
    2. "--name" matches a long switch or its negated spelling ("--no-name");
    3. "-x" matches a short switch (when shorts are enabled);
    4. the first still-valid positional takes the token;
    5. a subcommand whose name equals the token runs;
    6. otherwise the token is an unexpected argument.
- Ambiguity is a declaration defect: two parameters answering the same switch or
  subcommand name end the parse with AmbiguousMatchError, never a tie-break.
- Abort on first error: a failure in a nested subcommand scope travels out through
  every enclosing scope unchanged, picking up a "parsing '<token>'" note per scope.
- Deferred actions run only after the whole tree parsed successfully.

Quick start
    from argosy import flag, positional, subcommand, main

    verbose = flag("verbose", short="v")

    @subcommand("greet", help="say hello")
    def greet(context):
        name = positional("name", str)
        context.parse(name)
        context.defer(lambda: print("hello", name.value))

    if __name__ == "__main__":
        main(verbose, greet)
"""
import collections
import shlex
import sys
from collections import defaultdict
from collections.abc import Iterable

from rich.console import Console
from rich.text import Text

from . import faults
from .faults import *
from .parameters import ParameterKind, help_flag
from .utils import *


class Cursor:
    """
    Ordered tokens plus a read position that only moves forward.
    """
    __slots__ = ("_tokens", "_position")

    def __init__(self, tokens=(), /):
        if isinstance(tokens, str):
            tokens = shlex.split(tokens)
        if not isinstance(tokens, Iterable):
            raise TypeError("cursor argument must be a string or an iterable of strings")
        tokens = tuple(tokens)
        if not all(isinstance(token, str) for token in tokens):
            raise TypeError("cursor argument must be a string or an iterable of strings")
        self._tokens = tokens
        self._position = 0

    @property
    def position(self):
        return self._position

    def peek(self):
        """Current token; IndexError when exhausted."""
        if self._position >= len(self._tokens):
            raise IndexError("cursor is exhausted")
        return self._tokens[self._position]

    def remaining(self):
        return self._tokens[self._position:]

    def advance(self, count=1, /):
        if not isinstance(count, int) or not 0 <= count <= len(self):
            raise ValueError(f"cannot advance cursor by {count!r}")
        self._position += count

    def __len__(self):
        return len(self._tokens) - self._position

    def __bool__(self):
        return self._position < len(self._tokens)

    def __repr__(self):
        return f"cursor(remaining={self.remaining()!r})"


def _resolve_parameter(object, /):
    # Accept Parameter instances and anything exposing the __parameter__() hook (e.g., Choice).
    if not hasattr(object, "__parameter__") or not callable(object.__parameter__):
        raise TypeError(f"parser parameters must implement __parameter__(), not {type(object).__name__}")
    return object.__parameter__()


class Parser:
    """
    Registry of parameters bound to a cursor, and the loop that consumes it.

    Parameters
    - cursor: a Cursor (shared as-is), a string (shell-split) or an iterable of strings.
      Unset reads sys.argv[1:].
    - *params: parameters (or objects with __parameter__()) in declaration order.
    - shorts: recognise single-hyphen short switches ("-v").
    - colorful: style usage output.
    - console: rich Console used by print_choices(); stdout when omitted.

    State
    - ran_subcommand: a subcommand (including help) was dispatched by this parser.
    - positional_only: a "--" separator was consumed.
    - deferred: actions queued by subcommand handlers, in queue order.
    """

    def __init__(self, cursor=Unset, /, *params, shorts=True, colorful=False, console=Unset):
        if cursor is Unset:
            cursor = Cursor(sys.argv[1:])
        elif not isinstance(cursor, Cursor):
            cursor = Cursor(cursor)
        if not isinstance(console, Console | UnsetType | None):
            raise TypeError("parser 'console' must be a rich Console")

        self.cursor = cursor
        self.shorts = bool(shorts)
        self.colorful = bool(colorful)
        self.console = coalesce(console)
        self.ran_subcommand = False
        self.positional_only = False
        self.deferred = []
        self._params = [help_flag()]
        self.add(*params)

    @property
    def params(self):
        return tuple(self._params)

    def add(self, *params):
        """
        Append parameters to the registry, keeping declaration order.
        """
        self._params.extend(map(_resolve_parameter, params))
        return self

    def parse(self):
        """
        Consume the cursor to the end, then require every parameter to be satisfied.

        The first failure ends the parse; the token being parsed is attached to it as
        a "parsing '<token>'" note.
        """
        while self.cursor:
            token = self.cursor.peek()
            try:
                self.parse_one()
            except ParseError as exception:
                exception.add_note(f"parsing {token!r}")
                raise

        for parameter in self._params:
            if not parameter.satisfied:
                raise UnsatisfiedParameterError(f"parameter not satisfied: {parameter}", parameter=parameter)

        return self

    def parse_one(self):
        """
        Consume exactly one decision's worth of tokens (see module docs for the priority).
        """
        tokens = self.cursor.remaining()
        token, rest = tokens[0], tokens[1:]

        if not self.positional_only:
            if token == "--":
                self.positional_only = True
                self.cursor.advance(1)
                return

            if token.startswith("--"):
                parameter, negated = self._select_switch(token, token[2:], self._params_by_long)
                self._dispatch(parameter, rest, negated)
                return

            if token.startswith("-") and token != "-":
                if not self.shorts or len(token) != 2:
                    raise UnmatchedSwitchError(f"unmatched switch {token!r}", token=token)
                parameter, negated = self._select_switch(token, token[1:], self._params_by_short)
                self._dispatch(parameter, rest, negated)
                return

        if parameter := self._select_first(
            lambda parameter: parameter.kind is ParameterKind.POSITIONAL and parameter.valid
        ):
            remaining = self._bind(parameter, tokens)
            self.cursor.advance(len(tokens) - len(remaining))
            return

        if parameter := self._select_one(
            lambda parameter: (
                parameter.kind is ParameterKind.SUBCOMMAND and parameter.positional and parameter.name == token
            ),
            token,
        ):
            self.cursor.advance(1)
            try:
                self._run(parameter)
            except ParseError as exception:
                exception.add_note(f"running subcommand {parameter.name!r}")
                raise
            return

        raise UnexpectedArgumentError(f"unexpected argument {token!r}", token=token, params=self.params)

    @staticmethod
    def _params_by_long(parameter, name):
        if name in parameter.longs:
            return False
        if parameter.negation is not None and any(
            name == f"{parameter.negation}-{long}" for long in parameter.longs
        ):
            return True
        return None

    @staticmethod
    def _params_by_short(parameter, name):
        return False if name in parameter.shorts else None

    def _select_switch(self, token, name, matcher):
        """
        Find the single non-positional parameter answering a switch.

        Returns (parameter, negated); zero matches is UnmatchedSwitchError.
        """
        matches = []
        for parameter in self._params:
            if parameter.positional:
                continue
            if (negated := matcher(parameter, name)) is not None:
                matches.append((parameter, negated))

        match len(matches):
            case 0:
                raise UnmatchedSwitchError(f"unmatched switch {token!r}", token=token)
            case 1:
                return matches[0]
            case _:
                raise AmbiguousMatchError(
                    f"matched multiple params: {', '.join(str(parameter) for parameter, _ in matches)}",
                    token=token,
                    params=tuple(parameter for parameter, _ in matches),
                )

    def _select_first(self, predicate):
        return next(filter(predicate, self._params), None)

    def _select_one(self, predicate, token):
        matches = list(filter(predicate, self._params))
        if len(matches) > 1:
            raise AmbiguousMatchError(
                f"matched multiple params: {', '.join(map(str, matches))}",
                token=token,
                params=tuple(matches),
            )
        return matches[0] if matches else None

    def _dispatch(self, parameter, rest, negated):
        if parameter.kind is ParameterKind.SUBCOMMAND:
            self.cursor.advance(1)
            self._run(parameter)
            return
        remaining = self._bind(parameter, rest, negated)
        self.cursor.advance(1 + len(rest) - len(remaining))

    def _bind(self, parameter, tokens, negated=False):
        """
        Bind tokens into a parameter, then run its after-parse hooks in order.
        """
        remaining = parameter.bind(tokens, negated)
        for hook in parameter.after_parse:
            try:
                hook()
            except CommandException:
                raise
            except Exception as exception:
                raise HookError(
                    f"running after parse hook of {parameter.name!r}: {exception}",
                    parameter=parameter,
                ) from exception
        return remaining

    def _run(self, parameter):
        """
        Run a subcommand handler with a context over this parser.

        Parse signals raised inside (including errors of nested parsers and Helped)
        propagate unchanged; anything else becomes a SubcommandError.
        """
        self.ran_subcommand = True
        try:
            parameter.run(Context(self))
        except CommandException:
            raise
        except Exception as exception:
            raise SubcommandError(
                f"subcommand {parameter.name!r} failed: {exception}",
                parameter=parameter,
            ) from exception

    def usage(self):
        """
        Render the usage of every still-valid parameter as rich Text.

        Layout
            valid arguments at this point:
              --help,-h
              --name,-n <name>
            \thelp text
        """
        main = __import__("__main__")

        styles = defaultdict(str, {
            "usage-header": "bold #E6E6F0",  # near-white header
            "usage-switch": "bold #00E5FF",  # neon cyan switches
            "usage-argument": "#FF4DA6",  # pinky placeholders
            "usage-help": "italic #8A8A96",  # dim help text
        } | getattr(main, "__styles__", {}))

        def text(fragment, style=""):
            if not self.colorful:
                return Text(fragment)
            return Text(fragment, styles[style])

        lines = [text("valid arguments at this point:", "usage-header")]
        for parameter in self._params:
            if not parameter.valid:
                continue
            usage = parameter.usage()
            line = Text("  ")
            line.append_text(text(",".join(usage.switches), "usage-switch"))
            for argument in usage.arguments:
                line.append(" ")
                line.append_text(text(f"<{argument}>", "usage-argument"))
            lines.append(line)
            if usage.help:
                lines.append(Text.assemble("\t", text(usage.help, "usage-help")))

        return Text("\n").join(lines)

    def print_choices(self, console=Unset):
        """
        Print usage to the given console, the parser's console, or stdout.
        """
        if (console := coalesce(console, self.console)) is None:
            console = Console()
        console.print(self.usage(), soft_wrap=True, highlight=False)


class Context:
    """
    What a subcommand handler receives.

    - cursor: the shared cursor, positioned right after the subcommand token.
    - parent: the parser that dispatched the subcommand.
    - deferred: the parent's deferred action queue.
    """
    __slots__ = ("_parent",)

    def __init__(self, parent, /):
        if not isinstance(parent, Parser):
            raise TypeError("context parent must be a parser")
        self._parent = parent

    @property
    def parent(self):
        return self._parent

    @property
    def cursor(self):
        return self._parent.cursor

    @property
    def deferred(self):
        return self._parent.deferred

    def defer(self, action, /):
        """
        Queue an action to run after the whole parse succeeds; usable as a decorator.
        """
        if not callable(action):
            raise TypeError("defer() argument must be callable")
        self._parent.deferred.append(action)
        return action

    def parser(self, *params):
        """
        New parser over the shared cursor, inheriting the parent's configuration.
        """
        return Parser(
            self.cursor,
            *params,
            shorts=self._parent.shorts,
            colorful=self._parent.colorful,
            console=self._parent.console,
        )

    def parse(self, *params):
        """
        Parse the rest of the cursor with the given parameters.

        On success, actions the nested scope deferred join the enclosing queue and the
        nested parser is returned for inspection. On failure the error propagates
        unchanged and ends the whole parse.
        """
        parser = self.parser(*params)
        parser.parse()
        self._parent.deferred.extend(parser.deferred)
        return parser


class ParseResult(collections.namedtuple("ParseResult", ("error", "ran_subcommand", "parser"))):
    """
    Terminal outcome of a top-level parse.
    """
    __slots__ = ()

    @property
    def helped(self):
        return isinstance(self.error, Helped)

    @property
    def ok(self):
        return self.error is None

    def run(self):
        """
        Run deferred actions in queue order; the parse error, if any, is raised instead.
        """
        if self.error is not None:
            raise self.error
        for action in self.parser.deferred:
            action()


def parse(tokens=Unset, /, *params, **config):
    """
    Parse tokens against params and return a ParseResult instead of raising.

    Parameters
    - tokens: string (shell-split), iterable of strings, or Unset for sys.argv[1:].
    - *params: parameters in declaration order.
    - **config: Parser keyword configuration (shorts, colorful, console).
    """
    parser = Parser(tokens, *params, **config)
    try:
        parser.parse()
    except CommandException as exception:
        return ParseResult(exception, parser.ran_subcommand, parser)
    return ParseResult(None, parser.ran_subcommand, parser)


def main(*params, argv=None, **config):
    """
    Program entry point with the usual exit contract; argv defaults to sys.argv[1:].

    - help requested: return normally;
    - parse error: render the fault and the usage on stderr, exit with status 2;
    - no subcommand ran: usage on stderr, exit with status 2;
    - otherwise run deferred actions; a failing action is rendered and exits with status 2.
    """
    if argv is None or argv is Unset:
        argv = sys.argv[1:]
    result = parse(argv, *params, **config)
    parser = result.parser

    if result.helped:
        return result

    if result.error is not None:
        trigger(result.error, shell=True, deferred=True, colorful=parser.colorful)
        parser.print_choices(faults.console)
        sys.exit(2)

    if not result.ran_subcommand:
        parser.print_choices(faults.console)
        sys.exit(2)

    try:
        result.run()
    except CommandException as exception:
        trigger(exception, shell=True, colorful=parser.colorful)
    except Exception as exception:
        fault = SubcommandError(f"deferred action failed: {exception}")
        fault.__cause__ = exception
        trigger(fault, shell=True, colorful=parser.colorful)

    return result


__all__ = (
    # Public API surface for consumers of argosy.parser.
    "Cursor",
    "Parser",
    "Context",
    "ParseResult",
    "parse",
    "main",
)
