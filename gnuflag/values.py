"""
gnuflag value coercers.

Overview
- Value: the common interface every flag payload implements.
  • str(value) / stringify(): canonical textual form of the current value.
  • assign(token): parse a command-line token into the stored value, returning
    True on success and False when the token is not acceptable.
  • value: the typed value itself (validated on every write).
  • implicit: the token a bare flag assigns (e.g., "-v" or "--verbose"), or None
    when the flag always requires an argument. The parser relies on this
    capability instead of inspecting the concrete class.
  • quoted: whether usage output should quote the default (strings only).

- Variants
  • BoolValue: 1, t, T, true, TRUE, True / 0, f, F, false, FALSE, False.
  • IntValue / UintValue: 32 or 64 bits; decimal, 0-prefixed octal, 0x-prefixed
    hexadecimal, optional sign (never for unsigned); out-of-range fails.
  • StringValue: any token.
  • FloatValue: 32 or 64 bits; decimal/scientific notation, inf and nan.

Storage
- By default a value owns its storage. When constructed with a (target, attribute)
  pair, every read and write goes to that attribute of the caller-owned object,
  and the default is written there immediately.
- assign() is transactional: a rejected token never touches the stored value.

Quick example:
    >>> from gnuflag.values import IntValue
    >>> threads = IntValue(4)
    >>> threads.assign("0x10"), threads.value
    (True, 16)
    >>> threads.assign("ten"), str(threads)
    (False, '16')
"""
import re
import struct

from .utils import *

_TRUTHS = frozenset({"1", "t", "T", "true", "TRUE", "True"})
_FALSITIES = frozenset({"0", "f", "F", "false", "FALSE", "False"})

_INTEGER = re.compile(r"(?P<sign>[+-]?)(?:0[xX](?P<hex>[0-9a-fA-F]+)|(?P<oct>0[0-7]*)|(?P<dec>[1-9][0-9]*))")
_FLOAT = re.compile(r"[+-]?(?:(?:[0-9]+(?:\.[0-9]*)?|\.[0-9]+)(?:[eE][+-]?[0-9]+)?|inf(?:inity)?|nan)", re.IGNORECASE)


def _parse_integer(token, /):
    """
    Convert an integer literal into a Python int.

    Accepted forms: "1234", "0664" (octal), "0x1234" (hexadecimal), each with an
    optional leading sign. Raises ValueError for anything else.
    """
    if not (match := _INTEGER.fullmatch(token)):
        raise ValueError("invalid integer literal %r" % token)
    if match["hex"] is not None:
        number = int(match["hex"], 16)
    elif match["oct"] is not None:
        number = int(match["oct"], 8)
    else:
        number = int(match["dec"], 10)
    return -number if match["sign"] == "-" else number


class Value:
    """
    Base coercer: typed storage plus text conversion in both directions.

    Subclasses implement _validate (normalize a Python value or raise
    TypeError/ValueError) and _convert (parse a token or raise ValueError), and
    may override _format.
    """
    typename = "value"
    implicit = None
    quoted = False

    def __init__(self, default, target=Unset, attribute=Unset, /):
        if (target is Unset) is not (attribute is Unset):
            raise TypeError(f"{self.typename} 'target' and 'attribute' must be given together")
        elif not isinstance(attribute, str | Unset):
            raise TypeError(f"{self.typename} 'attribute' must be a string")
        elif isinstance(attribute, str) and not attribute.isidentifier():
            raise ValueError(f"{self.typename} 'attribute' must be a valid identifier")
        self._target = target
        self._attribute = attribute
        self.value = default

    @property
    def value(self):
        """The current typed value (read from the bound attribute when bound)."""
        if self._target is Unset:
            return self._value
        return getattr(self._target, self._attribute)

    @value.setter
    def value(self, value):
        value = self._validate(value)
        if self._target is Unset:
            self._value = value
        else:
            setattr(self._target, self._attribute, value)

    @property
    def bound(self):
        return self._target is not Unset

    def assign(self, token, /):
        """
        Parse token and store the result.

        Returns True when the token was accepted. A rejected token leaves the
        stored value as it was.
        """
        if not isinstance(token, str):
            raise TypeError("assign() argument must be a string")
        try:
            value = self._convert(token)
        except ValueError:
            return False
        self.value = value
        return True

    def stringify(self):
        return self._format(self.value)

    def _validate(self, value, /):
        raise NotImplementedError

    def _convert(self, token, /):
        raise NotImplementedError

    def _format(self, value, /):
        return str(value)

    def __str__(self):
        return self.stringify()

    def __repr__(self):
        return "%s(%s)" % (type(self).__name__, ", ".join("%s=%r" % pair for pair in self.__rich_repr__()))

    def __rich_repr__(self):
        yield "value", self.value
        if self.bound:
            yield "attribute", self._attribute


class BoolValue(Value):
    """
    Boolean coercer.

    Booleans need no argument: a bare flag assigns the implicit token "true".
    Only the literal sets in _TRUTHS and _FALSITIES are understood (case-sensitive).
    """
    typename = "boolean"
    implicit = "true"

    def __init__(self, default=False, target=Unset, attribute=Unset, /):
        super().__init__(default, target, attribute)

    def _validate(self, value, /):
        if not isinstance(value, bool):
            raise TypeError(f"{self.typename} value must be a bool")
        return value

    def _convert(self, token, /):
        if token in _TRUTHS:
            return True
        elif token in _FALSITIES:
            return False
        raise ValueError("invalid boolean literal %r" % token)

    def _format(self, value, /):
        return "true" if value else "false"


class _SizedValue(Value):
    """
    Shared plumbing for fixed-width numeric coercers (32 or 64 bits).
    """

    def __init__(self, default, target=Unset, attribute=Unset, /, *, bits=64):
        if not isinstance(bits, int) or isinstance(bits, bool):
            raise TypeError(f"{self.typename} 'bits' must be an integer")
        elif bits not in (32, 64):
            raise ValueError(f"{self.typename} 'bits' must be either 32 or 64")
        self._bits = bits
        super().__init__(default, target, attribute)

    @property
    def bits(self):
        return self._bits

    def __rich_repr__(self):
        yield from super().__rich_repr__()
        yield "bits", self._bits


class IntValue(_SizedValue):
    """
    Signed integer coercer; values must fit in `bits` two's-complement bits.
    """
    typename = "integer"

    def __init__(self, default=0, target=Unset, attribute=Unset, /, *, bits=64):
        super().__init__(default, target, attribute, bits=bits)

    @property
    def bounds(self):
        return -(1 << (self._bits - 1)), (1 << (self._bits - 1)) - 1

    def _validate(self, value, /):
        if not isinstance(value, int) or isinstance(value, bool):
            raise TypeError(f"{self.typename} value must be an int")
        lower, upper = self.bounds
        if not lower <= value <= upper:
            raise ValueError(f"{self.typename} value {value} is out of range for {self._bits} bits")
        return value

    def _convert(self, token, /):
        return self._validate(_parse_integer(token))


class UintValue(IntValue):
    """
    Unsigned integer coercer; any sign is rejected, even on zero.
    """
    typename = "unsigned integer"

    @property
    def bounds(self):
        return 0, (1 << self._bits) - 1

    def _convert(self, token, /):
        if token.startswith(("-", "+")):
            raise ValueError("signed literal %r for an unsigned integer" % token)
        return super()._convert(token)


class StringValue(Value):
    typename = "string"
    quoted = True

    def __init__(self, default="", target=Unset, attribute=Unset, /):
        super().__init__(default, target, attribute)

    def _validate(self, value, /):
        if not isinstance(value, str):
            raise TypeError(f"{self.typename} value must be a str")
        return value

    def _convert(self, token, /):
        return token


class FloatValue(_SizedValue):
    """
    Floating-point coercer.

    With bits=32 every value is rounded to single precision and magnitudes that
    do not fit are rejected; the textual form is then the shortest literal that
    reads back to the same single-precision value.
    """
    typename = "float"

    def __init__(self, default=0.0, target=Unset, attribute=Unset, /, *, bits=64):
        super().__init__(default, target, attribute, bits=bits)

    def _narrow(self, value, /):
        if self._bits == 64:
            return value
        try:
            return struct.unpack("<f", struct.pack("<f", value))[0]
        except OverflowError:
            raise ValueError(f"{self.typename} value {value!r} is out of range for {self._bits} bits") from None

    def _validate(self, value, /):
        if not isinstance(value, int | float) or isinstance(value, bool):
            raise TypeError(f"{self.typename} value must be a float")
        try:
            return self._narrow(float(value))
        except OverflowError:
            # int too large to convert to float
            raise ValueError(f"{self.typename} value {value!r} is out of range") from None

    def _convert(self, token, /):
        if not _FLOAT.fullmatch(token):
            raise ValueError("invalid float literal %r" % token)
        return self._validate(float(token))

    def _format(self, value, /):
        if self._bits == 64:
            return repr(value)
        for precision in range(1, 10):
            candidate = float("%.*g" % (precision, value))
            try:
                if self._narrow(candidate) == value:
                    return repr(candidate)
            except ValueError:
                # rounded past the largest single-precision magnitude
                continue
        return repr(value)


__all__ = (
    "Value",
    "BoolValue",
    "IntValue",
    "UintValue",
    "StringValue",
    "FloatValue",
)
