"""
gnuflag faults (errors) and rendering.

Scope
- FaultCode: canonical, stable numeric identifiers for every user-facing issue.
  Codes are grouped by domain (declaration vs. parsing) to keep logs/searches predictable.
- FlagException: base type that carries a message + options and knows how to render
  itself (rich) and how to surface itself (raise, or print + usage + exit status 2).
- DeclarationError / ParseError: the two error families.
  • declaration errors are programmer mistakes (redefined flag, bad shortname) and are
    always raised; the host decides whether they are fatal.
  • parse errors are user mistakes on the command line and follow the flag set policy.
- trigger(): central entry point to surface any fault with runtime options.
- getdoc(): optional description lookup for a code from the host application.

Policy (parse errors)
- shell=True (default for a FlagSet): print the diagnostic to standard error, print the
  full usage text, then terminate the process with exit status 2.
- shell=False: raise the fault so the embedding application can handle it.

Host customization (read from __main__)
- __prog__: program name shown in headers.
- __styles__: palette overrides (see FlagException.__rich__).
- __codes__: FaultCode → label remapping.
- __docs__: FaultCode → documentation string.
"""
import sys
from collections import defaultdict
from enum import IntEnum
from types import MappingProxyType

from rich.console import Console, Group
from rich.panel import Panel
from rich.text import Text

from .utils import Unset, coalesce

console = Console(stderr=True)


class FaultCode(IntEnum):
    """
    canonical fault codes used across the parser (stable identifiers).

    grouping (by high-level domain)
    - declaration (211xx)
      • FLAG_REDEFINED, INVALID_SHORTNAME
    - parsing (221xx)
      • MALFORMED_FLAG, UNKNOWN_FLAG, DUPLICATED_FLAG, MISSING_VALUE,
        INVALID_VALUE, INVALID_ENCODING

    spacing leaves room for future additions without reshuffling existing codes.
    """
    # --- declaration errors (211xx) ---
    FLAG_REDEFINED    = 21101
    INVALID_SHORTNAME = 21102

    # --- parse errors (221xx) ---
    MALFORMED_FLAG    = 22101
    UNKNOWN_FLAG      = 22102
    DUPLICATED_FLAG   = 22103
    MISSING_VALUE     = 22104
    INVALID_VALUE     = 22105
    INVALID_ENCODING  = 22106

    def normalize(self):
        """
        return a host-normalized string for this code.

        the host application can provide a __codes__ mapping in __main__ to
        override numeric ids with friendlier labels. when no mapping is present,
        the numeric value is returned as a string.
        """
        return str(getattr(__import__("__main__"), "__codes__", {}).get(self, self.value))


class FlagException(Exception):
    """
    base fault: a message plus an immutable mapping of rendering/context options.

    common options
    - title, code, hint, docs: copy shown in the rendered diagnostic.
    - token, index, flag: where the fault happened on the command line.
    - flagset, shell, fancy, colorful: runtime policy merged in by FlagSet.trigger().
    """

    def __init__(self, message=Unset, /, **options):
        if not isinstance(message, str | Unset):
            raise TypeError(f"{type(self).__name__} message must be a string")
        super().__init__(*((message,) if message else ()))
        self.message = message
        self.options = MappingProxyType(options)

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
            "hint-arrow": "#9CE19C dim",  # gentle green arrow
            "hint": "italic #9CE19C",  # gentle green hint text
        } | getattr(main, "__styles__", {}))

        def text(fragment, style=""):
            if not fragment:
                return Text("")
            if isinstance(fragment, Text):
                return fragment
            return Text(str(fragment), styles[style] if colorful else "")

        if (flagset := self.options.get("flagset")) is not None:
            prog = flagset.program
        else:
            prog = getattr(main, "__prog__", "gnuflag")

        header = [text(prog, "prog-name")]
        if (code := self.options.get("code")) is not None:
            header += [" — ", text(code.normalize(), "code")]
        header += [" | ", text(coalesce(self.options.get("title", Unset), type(self).__name__).title(), "error-title")]
        header = Text.assemble("[ ", *header, " ]")

        lines = [text(coalesce(self.message, ""), "error-message")]
        if hint := self.options.get("hint"):
            lines.append(Text.assemble(text(" → ", "hint-arrow"), text(hint, "hint")))

        if self.options.get("fancy", False):
            return Panel(Group(*lines), title=header, title_align="left")

        return Group(header, *lines)

    def __trigger__(self):
        if not self.options.get("shell", False):
            raise self from None
        console.print(self, soft_wrap=True)
        if (flagset := self.options.get("flagset")) is not None:
            flagset.usage()
        sys.exit(2)

    def __replace__(self, *unused, **overrides):
        assert not unused, "positional arguments are not allowed"
        return type(self)(self.message, **{**self.options, **overrides})


class DeclarationError(FlagException, ValueError): ...
class FlagRedefinedError(DeclarationError): ...
class InvalidShortNameError(DeclarationError): ...

class ParseError(FlagException): ...
class MalformedFlagError(ParseError): ...
class UnknownFlagError(ParseError): ...
class DuplicatedFlagError(ParseError): ...
class MissingValueError(ParseError): ...
class InvalidValueError(ParseError): ...
class InvalidEncodingError(ParseError): ...


def trigger(fault, /, **options):
    """
    surface a fault with the given runtime options.

    contract
    - fault must provide __trigger__ and __replace__ methods (see FlagException).
    - options are merged into a copy of the fault via __replace__(**options), then
      the copy is triggered: raised when shell is false, printed and exited otherwise.
    """
    if (
        not hasattr(fault, "__trigger__") or
        not callable(fault.__trigger__) or
        not hasattr(fault, "__replace__") or
        not callable(fault.__replace__)
    ):
        raise TypeError("trigger() argument must have a __trigger__ and __replace__ methods")
    fault.__replace__(**options).__trigger__()


def getdoc(code, /):
    """
    optional documentation fetch for a fault code.

    the host application may expose a __docs__ mapping in __main__ where keys are
    FaultCode instances and values are short documentation strings; when absent
    or missing the code, None is returned.
    """
    if not isinstance(code, FaultCode):
        raise TypeError("getdoc() argument must be a fault-code")
    try:
        return getattr(__import__("__main__"), "__docs__", {})[code]
    except KeyError:
        return None


__all__ = (
    "FlagException",
    "DeclarationError",
    "FlagRedefinedError",
    "InvalidShortNameError",
    "ParseError",
    "MalformedFlagError",
    "UnknownFlagError",
    "DuplicatedFlagError",
    "MissingValueError",
    "InvalidValueError",
    "InvalidEncodingError",
    "FaultCode",
    "trigger",
    "getdoc",
)
