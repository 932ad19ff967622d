"""
gnuflag flag sets: declare GNU-style flags, parse a command line, query the results.

What this module provides
- Flag: a declared flag (long name, optional single-codepoint shortname, usage text,
  value coercer and the textual default captured at declaration time).
- FlagSet: the registry and the parser.
  • formal: every declared flag, by name.
  • actual: the flags set so far (by parsing or by set()), by name.
  • shortnames: shortname → long name index.
  • arguments: positional arguments, in command-line order.

Command line grammar (token 0 is the program name and is never interpreted)
    -f                  short flag; booleans become true and keep clustering
    -abc                same as -a -b -c when all are booleans
    -xvalue / -x value  short flag with an inline or a next-token value
    --flag              long flag; booleans become true, others take the next token
    --flag=value        long flag with an inline value (the only way to say --flag=false)
    --flag value        long non-boolean flag with a next-token value
    --                  stop; every following token is positional
    -  / bare token     positional

Each flag may be given at most once per flag set. Any malformed command line is
fatal: by default the diagnostic and the usage text go to standard error and the
process exits with status 2 (see FlagSet.trigger for the other policies).

Quick start
    from gnuflag import FlagSet

    flags = FlagSet("tool")
    verbose = flags.bool("verbose", "v", False, "talk more")
    level = flags.int("level", "l", 1, "compression level")
    flags.parse(["tool", "-vl9", "input.txt"])

    verbose.value, level.value, flags.args()   # (True, 9, ['input.txt'])
"""
import difflib
import os.path
import sys

from rich.text import Text

from .faults import *
from .faults import console
from .utils import *
from .values import *


def _decode(token, /):
    """
    normalize one raw command-line token to str.

    bytes are decoded as UTF-8 with surrogateescape (the same convention the
    interpreter uses for sys.argv), so undecodable bytes survive as lone
    surrogates and are reported by the short-flag decoder.
    """
    if isinstance(token, bytes):
        return token.decode("utf-8", "surrogateescape")
    elif not isinstance(token, str):
        raise TypeError("command-line arguments must be strings or bytes")
    return token


def _is_surrogate(char, /):
    return 0xD800 <= ord(char) <= 0xDFFF


def _quote(text, /):
    return '"%s"' % text.replace("\\", "\\\\").replace('"', '\\"')


def _article(noun, /):
    return ("an %s" if noun[:1] in "aeiou" else "a %s") % noun


class Flag:
    """
    A declared flag.

    Fields (read-only)
    - name: long name, spelled --name on the command line.
    - shortname: single codepoint spelled -x, or None.
    - usage: help text shown by FlagSet.print_defaults().
    - value: the coercer holding (or binding) the typed value.
    - default: str(value) as it was when the flag was declared.
    """
    __introspectable__ = ("name", "shortname", "usage", "value", "default")

    name = mirror("name")
    shortname = mirror("shortname")
    usage = mirror("usage")
    value = mirror("value")
    default = mirror("default")

    def __init__(self, name, shortname, usage, value, /):
        self._name = name
        self._shortname = shortname
        self._usage = usage
        self._value = value
        self._default = str(value)

    def __repr__(self):
        return "flag(%s)" % ", ".join("%s=%r" % pair for pair in self.__rich_repr__())

    def __rich_repr__(self):
        for name in type(self).__introspectable__:
            yield name, getattr(self, name)


class FlagSet:
    """
    Registry of declared flags plus the GNU-style parser that fills it.

    Construction
    - name: program name used by usage() and fault headers. When omitted, the
      host's __main__.__prog__ is used, then token 0 of the last parse, then the
      basename of sys.argv[0].
    - template: usage line, formatted with the program name
      (default "Usage: %s [OPTION]... [ARGS]").
    - shell: fault policy for parse errors. True prints diagnostic + usage and exits
      with status 2; False raises the ParseError to the caller.
    - fancy, colorful: rendering switches for diagnostics and usage.

    Lifecycle
    - declare flags first (declare() or the typed helpers), then parse() once.
    - reset() forgets every flag, every argument and the parsed program name so the
      set can be reused; construction settings and the fallback are kept.

    Concurrency
    - a FlagSet is plain mutable state without any locking. Declaring, setting
      or parsing the same set from several threads at once is undefined; callers
      that need it must serialize access themselves.
    - bound storage (see the *_var helpers) is owned by the caller and must
      outlive the flag set or the next reset().
    """
    __introspectable__ = (
        "program",
        "template",
        "formal",
        "actual",
        "shortnames",
        "arguments",
        "shell",
        "fancy",
        "colorful",
    )

    template = mirror("template")
    formal = mirror("formal")
    actual = mirror("actual")
    shortnames = mirror("shortnames")
    arguments = mirror("arguments")
    shell = mirror("shell")
    fancy = mirror("fancy")
    colorful = mirror("colorful")

    def __init__(self, name=Unset, /, template=Unset, *, shell=True, fancy=False, colorful=False):
        if not isinstance(name, str | Unset):
            raise TypeError("flag set 'name' must be a string")
        elif isinstance(name, str) and not (name := name.strip()):
            raise ValueError("flag set 'name' cannot be empty")

        if not isinstance(template := coalesce(template, "Usage: %s [OPTION]... [ARGS]"), str):
            raise TypeError("flag set 'template' must be a string")
        try:
            template % ""
        except TypeError:
            raise ValueError("flag set 'template' must contain exactly one '%s' placeholder") from None

        self._name = name
        self._template = template
        self._shell = bool(shell)
        self._fancy = bool(fancy)
        self._colorful = bool(colorful)
        self._fallback = Unset
        self._program = Unset
        self._formal = {}
        self._actual = {}
        self._shortnames = {}
        self._arguments = []

    @property
    def program(self):
        """Program name shown in usage and fault headers."""
        if self._name is not Unset:
            return self._name
        default = coalesce(self._program, os.path.basename(sys.argv[0]) if sys.argv and sys.argv[0] else "gnuflag")
        return getattr(__import__("__main__"), "__prog__", default)

    # ── Registry ──────────────────────────────────────────────────────────────

    def declare(self, name, shortname, value, usage, /):
        """
        Declare a flag and return it.

        parameters
        - name: non-empty long name, unique within this set.
        - shortname: None/"" for no shortname, otherwise exactly one codepoint
          (str, or bytes holding one strictly valid UTF-8 character).
        - value: a gnuflag.values.Value; its current text becomes the default.
        - usage: help text.

        raises
        - FlagRedefinedError when name is already declared.
        - InvalidShortNameError when shortname is not a single valid codepoint.
        - TypeError/ValueError for arguments of the wrong shape.

        notes
        - declaring a shortname that is already taken re-points it to this flag.
        """
        if not isinstance(name, str):
            raise TypeError("flag name must be a string")
        elif not name:
            raise ValueError("flag name cannot be empty")
        elif not isinstance(shortname, str | bytes | None):
            raise TypeError("flag shortname must be a string, bytes or None")
        elif not isinstance(value, Value):
            raise TypeError("flag value must be a gnuflag value")
        elif not isinstance(usage, str):
            raise TypeError("flag usage must be a string")

        if name in self._formal:
            raise FlagRedefinedError(
                "flag redefined: %s" % name,
                title="flag redefined",
                code=FaultCode.FLAG_REDEFINED,
                hint="every flag name may be declared only once per flag set",
                flag=self._formal[name],
                docs=getdoc(FaultCode.FLAG_REDEFINED)
            )

        if isinstance(shortname, bytes):
            try:
                shortname = shortname.decode("utf-8")
            except UnicodeDecodeError:
                shortname = Unset

        if shortname is Unset or shortname and (len(shortname) != 1 or _is_surrogate(shortname)):
            raise InvalidShortNameError(
                "flag shortname invalid: %s" % name,
                title="invalid shortname",
                code=FaultCode.INVALID_SHORTNAME,
                hint="a shortname must be exactly one valid unicode character",
                docs=getdoc(FaultCode.INVALID_SHORTNAME)
            )

        flag = Flag(name, shortname or None, usage, value)
        if flag.shortname:
            self._shortnames[flag.shortname] = name
        self._formal[name] = flag
        return flag

    def lookup(self, name, /):
        """Return the declared flag called name, or None."""
        return self._formal.get(name)

    def visit_all(self, callback, /):
        """Call callback(flag) for every declared flag, set or not."""
        for flag in list(self._formal.values()):
            callback(flag)

    def visit(self, callback, /):
        """Call callback(flag) for every flag that has been set."""
        for flag in list(self._actual.values()):
            callback(flag)

    def set(self, name, token, /):
        """
        Set the named flag from its textual form.

        Returns False, without exiting or raising, when no such flag is declared
        or when the token is not acceptable for it; the flag is recorded as set
        only on success.
        """
        if (flag := self._formal.get(name)) is None:
            return False
        if not flag.value.assign(token):
            return False
        self._actual[name] = flag
        return True

    def reset(self):
        """
        Forget every declared flag, every set flag, every positional argument and
        the program name taken from the last parse.

        Construction settings (name, template, policy) and the fallback are kept.
        """
        self._program = Unset
        self._formal = {}
        self._actual = {}
        self._shortnames = {}
        self._arguments = []

    def nflag(self):
        """Number of flags that have been set."""
        return len(self._actual)

    def narg(self):
        """Number of positional arguments."""
        return len(self._arguments)

    def arg(self, index, /):
        """The index-th positional argument, or "" when there is none."""
        if not isinstance(index, int):
            raise TypeError("arg() argument must be an integer")
        if 0 <= index < len(self._arguments):
            return self._arguments[index]
        return ""

    def args(self):
        """Snapshot of the positional arguments."""
        return list(self._arguments)

    # ── Typed declarations ────────────────────────────────────────────────────

    def bool(self, name, shortname, default, usage, /):
        """Declare a boolean flag; returns its value holder (read .value after parsing)."""
        return self.declare(name, shortname, BoolValue(default), usage).value

    def bool_var(self, target, attribute, name, shortname, default, usage, /):
        """Declare a boolean flag stored in target.<attribute>."""
        return self.declare(name, shortname, BoolValue(default, target, attribute), usage).value

    def int(self, name, shortname, default, usage, /):
        """Declare a 64-bit signed integer flag."""
        return self.declare(name, shortname, IntValue(default), usage).value

    def int_var(self, target, attribute, name, shortname, default, usage, /):
        return self.declare(name, shortname, IntValue(default, target, attribute), usage).value

    def int32(self, name, shortname, default, usage, /):
        return self.declare(name, shortname, IntValue(default, bits=32), usage).value

    def int32_var(self, target, attribute, name, shortname, default, usage, /):
        return self.declare(name, shortname, IntValue(default, target, attribute, bits=32), usage).value

    def uint(self, name, shortname, default, usage, /):
        """Declare a 64-bit unsigned integer flag."""
        return self.declare(name, shortname, UintValue(default), usage).value

    def uint_var(self, target, attribute, name, shortname, default, usage, /):
        return self.declare(name, shortname, UintValue(default, target, attribute), usage).value

    def uint32(self, name, shortname, default, usage, /):
        return self.declare(name, shortname, UintValue(default, bits=32), usage).value

    def uint32_var(self, target, attribute, name, shortname, default, usage, /):
        return self.declare(name, shortname, UintValue(default, target, attribute, bits=32), usage).value

    def string(self, name, shortname, default, usage, /):
        return self.declare(name, shortname, StringValue(default), usage).value

    def string_var(self, target, attribute, name, shortname, default, usage, /):
        return self.declare(name, shortname, StringValue(default, target, attribute), usage).value

    def float(self, name, shortname, default, usage, /):
        """Declare a double precision float flag."""
        return self.declare(name, shortname, FloatValue(default), usage).value

    def float_var(self, target, attribute, name, shortname, default, usage, /):
        return self.declare(name, shortname, FloatValue(default, target, attribute), usage).value

    def float32(self, name, shortname, default, usage, /):
        """Declare a single precision float flag."""
        return self.declare(name, shortname, FloatValue(default, bits=32), usage).value

    def float32_var(self, target, attribute, name, shortname, default, usage, /):
        return self.declare(name, shortname, FloatValue(default, target, attribute, bits=32), usage).value

    # ── Usage ─────────────────────────────────────────────────────────────────

    def _styler(self):
        styles = {
            "usage-label": "bold #00E6FF",  # CYAN usage line
            "short-name": "bold #22C55E",  # GREEN shortnames
            "long-name": "bold #00E6FF",  # CYAN long names
            "default": "bold #FFD600",  # AMBER defaults
            "usage": "#9CA3AF",  # muted gray help text
        } | getattr(__import__("__main__"), "__styles__", {})

        def styler(fragment, style):
            return fragment, (styles.get(style, "") if self._colorful else "")
        return styler

    def print_defaults(self):
        """
        Print one line per declared flag to standard error.

        layout
        -   -s, --name=DEFAULT: usage      (flags with a shortname)
        -       --name=DEFAULT: usage      (long-only flags)
        string defaults are double-quoted so empty strings stay visible.
        """
        styler = self._styler()
        for flag in self._formal.values():
            default = _quote(flag.default) if flag.value.quoted else flag.default
            if flag.shortname:
                head = ("  ", styler("-" + flag.shortname, "short-name"), ", ")
            else:
                head = ("      ",)
            console.print(Text.assemble(
                *head,
                styler("--" + flag.name, "long-name"),
                "=",
                styler(default, "default"),
                ": ",
                styler(flag.usage, "usage"),
            ), soft_wrap=True)

    def usage(self):
        """Print the usage line followed by the defaults of every flag."""
        console.print(Text.assemble(self._styler()(self._template % self.program, "usage-label")), soft_wrap=True)
        self.print_defaults()

    # ── Faults ────────────────────────────────────────────────────────────────

    def fallback(self, fallback, /):
        """
        Install a callable that receives parse faults instead of the shell/raise policy.

        Usable as a decorator. Parsing still stops at the first fault.
        """
        if not callable(fallback):
            raise TypeError("fallback() argument must be callable")
        self._fallback = fallback
        return fallback

    def trigger(self, fault, /, **options):
        """
        Surface a fault with this set's policy merged in (flagset/shell/fancy/colorful).

        caller options override the set's policy for this fault only. order of
        precedence: installed fallback, then shell (print diagnostic and usage,
        exit 2), then raise.
        """
        if (
                not hasattr(fault, "__trigger__") or
                not callable(fault.__trigger__) or
                not hasattr(fault, "__replace__") or
                not callable(fault.__replace__)
        ):
            raise TypeError("trigger() argument must have a __trigger__ and __replace__ methods")
        fault = fault.__replace__(**{
            "flagset": self,
            "shell": self._shell,
            "fancy": self._fancy,
            "colorful": self._colorful,
            **options
        })
        if self._fallback:
            return self._fallback(fault)
        trigger(fault)

    def _fail(self, fault, /, **options):
        self.trigger(fault, **options)
        return False, -1

    # ── Parsing ───────────────────────────────────────────────────────────────

    def parse(self, arguments=Unset, /):
        """
        Parse a command line (sys.argv by default) into this flag set.

        arguments[0] is the program name and is skipped. Parsing stops at '--',
        at the end of input, or at the first fault.
        """
        if isinstance(arguments, str | bytes):
            raise TypeError("parse() argument must be a sequence of arguments, not a single string")
        arguments = [_decode(token) for token in coalesce(arguments, sys.argv)]
        if arguments:
            self._program = arguments[0]

        index = 1
        while index < len(arguments):
            proceed, index = self._parse_one(arguments, index)
            if not proceed:
                break

    def _parse_one(self, arguments, index, /):
        """
        consume one unit of work starting at arguments[index].

        returns (proceed, next_index): proceed is False after '--' or a fault.
        """
        token = arguments[index]

        # positionals: '', 'word', and the lone '-'
        if not token or token[0] != "-" or token == "-":
            self._arguments.append(token)
            return True, index + 1

        if token == "--":
            self._arguments.extend(arguments[index + 1:])
            return False, len(arguments)

        if token[1] != "-":
            return self._parse_cluster(arguments, index)
        return self._parse_long(arguments, index)

    def _parse_cluster(self, arguments, index, /):
        """
        parse '-abc' / '-xvalue' / '-x value'.

        booleans (flags with an implicit token) are set and the cluster goes on with
        the remaining characters; any other flag takes the rest of the token or the
        next token as its value and ends the cluster.
        """
        token = arguments[index]
        cluster = token[1:]

        while cluster:
            char, cluster = cluster[0], cluster[1:]
            spelling = "-" + char

            if _is_surrogate(char):
                return self._fail(InvalidEncodingError(
                    "invalid UTF-8 character",
                    title="invalid character",
                    code=FaultCode.INVALID_ENCODING,
                    hint="short flags must be valid unicode characters",
                    token=token,
                    index=index,
                    docs=getdoc(FaultCode.INVALID_ENCODING)
                ))

            if (name := self._shortnames.get(char)) is None:
                return self._fail(UnknownFlagError(
                    "flag provided but not defined: %s" % spelling,
                    title="unknown flag",
                    code=FaultCode.UNKNOWN_FLAG,
                    hint="see the usage below for every defined flag",
                    token=token,
                    index=index,
                    input=spelling,
                    docs=getdoc(FaultCode.UNKNOWN_FLAG)
                ))
            flag = self._formal[name]

            if name in self._actual:
                return self._fail(DuplicatedFlagError(
                    "flag specified twice: %s" % spelling,
                    title="duplicated flag",
                    code=FaultCode.DUPLICATED_FLAG,
                    hint="give %s (or --%s) only once" % (spelling, name),
                    token=token,
                    index=index,
                    flag=flag,
                    docs=getdoc(FaultCode.DUPLICATED_FLAG)
                ))

            if (implicit := flag.value.implicit) is not None:
                if not flag.value.assign(implicit):
                    return self._invalid(flag, implicit, spelling, token, index)
                self._actual[name] = flag
                continue

            if cluster:
                value = cluster
            elif index + 1 < len(arguments):
                index += 1
                value = arguments[index]
            else:
                return self._missing(flag, spelling, token, index)

            if not flag.value.assign(value):
                return self._invalid(flag, value, spelling, token, index)
            self._actual[name] = flag
            break

        return True, index + 1

    def _parse_long(self, arguments, index, /):
        """
        parse '--name', '--name=value' and '--name value'.
        """
        token = arguments[index]
        name = token[2:]

        if name[0] in "-=":
            return self._fail(MalformedFlagError(
                "bad flag syntax: %s" % token,
                title="malformed flag",
                code=FaultCode.MALFORMED_FLAG,
                hint="spell long flags as --name or --name=value",
                token=token,
                index=index,
                docs=getdoc(FaultCode.MALFORMED_FLAG)
            ))

        name, separator, value = name.partition("=")
        inline = bool(separator)
        spelling = "--" + name

        if name in self._actual:
            return self._fail(DuplicatedFlagError(
                "flag specified twice: %s" % spelling,
                title="duplicated flag",
                code=FaultCode.DUPLICATED_FLAG,
                hint="give %s only once" % spelling,
                token=token,
                index=index,
                flag=self._actual[name],
                docs=getdoc(FaultCode.DUPLICATED_FLAG)
            ))

        if (flag := self._formal.get(name)) is None:
            suggestions = difflib.get_close_matches(name, self._formal.keys(), 5)
            try:
                hint = "did you mean --%s? the usage below lists every defined flag" % suggestions[0]
            except IndexError:
                hint = "see the usage below for every defined flag"
            return self._fail(UnknownFlagError(
                "flag provided but not defined: %s" % spelling,
                title="unknown flag",
                code=FaultCode.UNKNOWN_FLAG,
                hint=hint,
                token=token,
                index=index,
                input=spelling,
                suggestions=suggestions,
                docs=getdoc(FaultCode.UNKNOWN_FLAG)
            ))

        if (implicit := flag.value.implicit) is not None:
            if not inline:
                value = implicit
            if not flag.value.assign(value):
                return self._fail(InvalidValueError(
                    "invalid %s value %s for flag: %s" % (flag.value.typename, value, spelling),
                    title="invalid value",
                    code=FaultCode.INVALID_VALUE,
                    hint="expected %s value, or no '=' at all" % _article(flag.value.typename),
                    token=token,
                    index=index,
                    flag=flag,
                    docs=getdoc(FaultCode.INVALID_VALUE)
                ))
        else:
            if not inline:
                if index + 1 >= len(arguments):
                    return self._missing(flag, spelling, token, index)
                index += 1
                value = arguments[index]
            if not flag.value.assign(value):
                return self._invalid(flag, value, spelling, token, index)

        self._actual[name] = flag
        return True, index + 1

    def _missing(self, flag, spelling, token, index, /):
        return self._fail(MissingValueError(
            "flag needs an argument: %s" % spelling,
            title="missing value",
            code=FaultCode.MISSING_VALUE,
            hint="pass %s value inline (%s) or as the next argument" % (
                _article(flag.value.typename),
                "%s=VALUE" % spelling if spelling.startswith("--") else "%sVALUE" % spelling
            ),
            token=token,
            index=index,
            flag=flag,
            docs=getdoc(FaultCode.MISSING_VALUE)
        ))

    def _invalid(self, flag, value, spelling, token, index, /):
        return self._fail(InvalidValueError(
            "invalid value %s for flag: %s" % (value, spelling),
            title="invalid value",
            code=FaultCode.INVALID_VALUE,
            hint="expected %s value" % _article(flag.value.typename),
            token=token,
            index=index,
            flag=flag,
            docs=getdoc(FaultCode.INVALID_VALUE)
        ))

    def __repr__(self):
        return "flag-set(%s)" % ", ".join("%s=%r" % pair for pair in self.__rich_repr__())

    def __rich_repr__(self):
        for name in type(self).__introspectable__:
            yield name, getattr(self, name)


__all__ = (
    "Flag",
    "FlagSet",
)
