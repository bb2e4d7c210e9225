#!/usr/bin/python3
# rpncalc, a shunting-yard calculator.
#
# Copyright (c) 2024 zhengxyz123
#
# Permission is hereby granted, free of charge, to any person obtaining a copy
# of this software and associated documentation files (the "Software"), to deal
# in the Software without restriction, including without limitation the rights
# to use, copy, modify, merge, publish, distribute, sublicense, and/or sell
# copies of the Software, and to permit persons to whom the Software is
# furnished to do so, subject to the following conditions:
#
# The above copyright notice and this permission notice shall be included in all
# copies or substantial portions of the Software.
#
# THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR
# IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY,
# FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL THE
# AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER
# LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM,
# OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE
# SOFTWARE.

import argparse
import enum
import logging
import operator
import sys
from types import MappingProxyType
from typing import Callable, Iterable, NamedTuple, TextIO

try:
    # line editing for input()
    import readline  # noqa: F401
except ModuleNotFoundError:
    pass

__version__ = "1.0"
logger = logging.getLogger(__name__)

DIGITS = "0123456789"
INT_MAX = 2**63 - 1
INT_MIN = -(2**63)


class CalcError(Exception):
    def __init__(
        self,
        code: str,
        position: tuple[int, int] | None = None,
        message: str | None = None,
    ) -> None:
        self.code = code
        self.position = position
        self.message = message or "found an error"
        super().__init__(self.message)


class UnbalancedParenthesesError(CalcError):
    pass


class InvalidCharacterError(CalcError):
    pass


class MalformedExpressionError(CalcError):
    pass


class DivisionByZeroError(CalcError):
    pass


class NegativeExponentError(CalcError):
    pass


class IntegerOverflowError(CalcError):
    pass


def display_error(error: CalcError, file: TextIO | None = None) -> None:
    print(f"{error.message}:", file=file)
    print(f"  {error.code}", file=file)
    if error.position:
        highlight = " " * error.position[0] + "^" * (
            error.position[1] - error.position[0]
        )
        print(f"  {highlight}", file=file)


def check_range(value: int) -> int:
    if not INT_MIN <= value <= INT_MAX:
        raise OverflowError("integer overflow")
    return value


def ipow(x: int, n: int) -> int:
    """Exponentiation by squaring for ``n >= 0``."""
    if n < 0:
        raise ValueError("negative exponent")
    if n == 0:
        return 1
    if n == 1:
        return x
    # |x*x| never exceeds |x**n| once n >= 2, so an overflowing square
    # means an overflowing result.
    if n % 2 == 0:
        return ipow(check_range(x * x), n // 2)
    return check_range(x * ipow(check_range(x * x), (n - 1) // 2))


def idiv(a: int, b: int) -> int:
    """Integer division truncating toward zero."""
    if b == 0:
        raise ZeroDivisionError("division by zero")
    quotient = abs(a) // abs(b)
    return quotient if (a < 0) == (b < 0) else -quotient


class Operator(NamedTuple):
    precedence: int
    right_assoc: bool
    func: Callable[[int, int], int]


operators_reg = MappingProxyType(
    {
        "^": Operator(4, True, ipow),
        "*": Operator(3, False, operator.mul),
        "/": Operator(3, False, idiv),
        "+": Operator(2, False, operator.add),
        "-": Operator(2, False, operator.sub),
    }
)


class Token(NamedTuple):
    type: str
    value: str
    where: tuple[int, int]


class State(enum.Enum):
    IDLE = enum.auto()
    NUMBER = enum.auto()
    DISCARD = enum.auto()


class Result(NamedTuple):
    rpn: str
    value: int


def _single_line(text: str) -> str:
    text = text.removesuffix("\n")
    if "\n" in text:
        raise ValueError("expected a single line")
    return text


class Converter:
    """Shunting-yard state machine turning infix characters into postfix tokens.

    Characters are fed one at a time with `consume`. A newline finalizes the
    expression. Errors never interrupt the stream: the first one is kept in
    `error` and the caller decides what to do once the line is complete.
    """

    def __init__(self) -> None:
        self.output: list[Token] = []
        self.stack: list[Token] = []
        self.state = State.IDLE
        self.error: CalcError | None = None
        self.line = ""
        self.complete = False
        self._acc = ""
        self._acc_start = 0

    def __str__(self) -> str:
        output = "".join(f" {token.value}" for token in self.output)
        stack = "".join(f" {token.value}" for token in self.stack)
        return f"[{output} ]\t[{stack} ]"

    def rpn(self) -> str:
        return " ".join(token.value for token in self.output)

    def reset(self) -> None:
        self.output.clear()
        self.stack.clear()
        self.state = State.IDLE
        self.error = None
        self.line = ""
        self.complete = False
        self._acc = ""

    def consume(self, char: str) -> bool:
        if len(char) != 1:
            raise ValueError(f"expected a single character, got {char!r}")
        if self.complete:
            self.reset()
        if char == "\n":
            self.finalize()
            if self.error is not None:
                self.error.code = self.line
            self.complete = True
            return True
        column = len(self.line)
        self.line += char
        if self.state is State.DISCARD:
            return False

        if char in DIGITS:
            if self.state is State.IDLE:
                self._acc_start = column
                self.state = State.NUMBER
            self._acc += char
            return False
        if self.state is State.NUMBER:
            self._flush()

        where = (column, column + 1)
        if char in operators_reg:
            self._handle_operator(Token("op", char, where))
        elif char == "(":
            self._push(Token("lpar", char, where))
        elif char == ")":
            self._close_paren(where)
        elif not char.isspace():
            self._signal(InvalidCharacterError, where, f"invalid character {char!r}")
        return False

    def finalize(self) -> None:
        if self.state is State.DISCARD:
            return
        if self.state is State.NUMBER:
            self._flush()
        while self.stack:
            token = self.stack.pop()
            if token.type != "op":
                self._signal(
                    UnbalancedParenthesesError, token.where, "unbalanced parentheses"
                )
                self.state = State.DISCARD
                return
            self._emit(token)

    def parse(self, text: str) -> None:
        """Consume a single-line expression and finalize it."""
        text = _single_line(text)
        for char in text:
            self.consume(char)
        self.consume("\n")

    def _handle_operator(self, token: Token) -> None:
        new = operators_reg[token.value]
        while self.stack and self.stack[-1].type == "op":
            top = operators_reg[self.stack[-1].value]
            if (top.right_assoc and top.precedence > new.precedence) or (
                not top.right_assoc and top.precedence >= new.precedence
            ):
                self._emit(self.stack.pop())
            else:
                break
        self._push(token)

    def _close_paren(self, where: tuple[int, int]) -> None:
        while self.stack:
            token = self.stack.pop()
            if token.type == "lpar":
                logger.debug("pop %r", token.value)
                return
            self._emit(token)
        self._signal(UnbalancedParenthesesError, where, "unbalanced parentheses")
        self.state = State.DISCARD

    def _flush(self) -> None:
        end = self._acc_start + len(self._acc)
        self._emit(Token("num", self._acc, (self._acc_start, end)))
        self._acc = ""
        self.state = State.IDLE

    def _push(self, token: Token) -> None:
        logger.debug("push %r", token.value)
        self.stack.append(token)

    def _emit(self, token: Token) -> None:
        logger.debug("emit %r", token.value)
        self.output.append(token)

    def _signal(
        self, error_class: type[CalcError], where: tuple[int, int], message: str
    ) -> None:
        logger.info("%s at column %d", message, where[0])
        if self.error is None:
            self.error = error_class(self.line, where, message)


def evaluate(tokens: Iterable[Token], source: str = "") -> int:
    """Evaluate a postfix token sequence. An empty sequence evaluates to 0."""
    stack: list[int] = []
    for token in tokens:
        if token.type == "num":
            # int() refuses very long digit strings with ValueError
            try:
                stack.append(check_range(int(token.value)))
            except (OverflowError, ValueError):
                raise IntegerOverflowError(source, token.where, "integer overflow")
            continue
        if len(stack) < 2:
            raise MalformedExpressionError(
                source, token.where, f"missing operand for '{token.value}'"
            )
        b = stack.pop()
        a = stack.pop()
        try:
            value = check_range(operators_reg[token.value].func(a, b))
        except ZeroDivisionError as error:
            raise DivisionByZeroError(source, token.where, error.args[0])
        except OverflowError as error:
            raise IntegerOverflowError(source, token.where, error.args[0])
        except ValueError as error:
            raise NegativeExponentError(source, token.where, error.args[0])
        logger.debug("%d %s %d = %d", a, token.value, b, value)
        stack.append(value)

    if not stack:
        return 0
    if len(stack) > 1:
        raise MalformedExpressionError(source, message="missing operator")
    return stack[0]


class Session:
    def __init__(self) -> None:
        self.converter = Converter()

    def feed(self, char: str) -> bool:
        return self.converter.consume(char)

    def result(self) -> Result:
        conv = self.converter
        if not conv.complete:
            raise RuntimeError("expression is not complete")
        try:
            if conv.error is not None:
                raise conv.error
            return Result(conv.rpn(), evaluate(conv.output, conv.line))
        finally:
            conv.reset()

    def calculate(self, line: str) -> Result:
        for char in _single_line(line):
            self.feed(char)
        self.feed("\n")
        return self.result()


def execute(session: Session, line: str, show_rpn: bool = True) -> bool:
    try:
        result = session.calculate(line)
    except CalcError as error:
        display_error(error)
        return False
    if show_rpn:
        print(f"rpn: {result.rpn} = {result.value}")
    else:
        print(result.value)
    return True


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="rpncalc", description="a shunting-yard calculator"
    )
    parser.add_argument(
        "-q",
        "--quiet",
        dest="banner",
        action="store_false",
        help="don't print initial banner",
    )
    parser.add_argument(
        "-d", "--debug", action="store_true", help="log conversion and evaluation"
    )
    parser.add_argument(
        "--no-rpn",
        dest="show_rpn",
        action="store_false",
        help="print the value without the postfix form",
    )
    parser.add_argument(
        "-v", "--version", action="version", version=f"rpncalc {__version__}"
    )
    args = parser.parse_args(argv)
    logging.basicConfig(format="%(levelname)s:%(name)s:%(message)s")
    # basicConfig leaves the level alone when handlers already exist
    logging.getLogger().setLevel(logging.DEBUG if args.debug else logging.WARNING)

    session = Session()
    if not sys.stdin.isatty():
        failed = False
        for line in sys.stdin:
            if line.strip() and not execute(session, line, args.show_rpn):
                failed = True
        return 1 if failed else 0
    if args.banner:
        print(f"rpncalc {__version__}, a shunting-yard calculator")
        print("Copyright (c) 2024 zhengxyz123")
        print("This is an open source software released under MIT license.")
    while True:
        try:
            line = input("> ")
        except (EOFError, KeyboardInterrupt):
            print()
            return 0
        if line.strip():
            execute(session, line, args.show_rpn)


if __name__ == "__main__":
    sys.exit(main())
