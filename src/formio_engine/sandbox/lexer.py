"""Tokenizer for the form script language (a JavaScript subset)."""

import re
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from formio_engine.errors import ExpressionSyntaxError

KEYWORDS = {
    "var",
    "let",
    "const",
    "if",
    "else",
    "return",
    "true",
    "false",
    "null",
    "undefined",
    "typeof",
    "new",
    "function",
    "for",
    "while",
    "break",
    "continue",
}

# Longest operators first so "===" wins over "==" and "=".
PUNCTUATORS = [
    "===", "!==", "**=", "...",
    "==", "!=", "<=", ">=", "&&", "||", "??", "?.", "=>",
    "++", "--", "+=", "-=", "*=", "/=", "%=", "**",
    "+", "-", "*", "/", "%", "<", ">", "=", "!", "?", ":",
    ",", ";", ".", "(", ")", "[", "]", "{", "}",
]

# After these tokens a "/" is division; anywhere else it starts a regex literal.
_DIVISION_PRECEDERS = {"NUMBER", "STRING", "TEMPLATE", "REGEX", "IDENT"}
_DIVISION_PUNCTUATORS = {")", "]", "}"}
_DIVISION_KEYWORDS = {"true", "false", "null", "undefined"}

_NUMBER_RE = re.compile(r"(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")
_IDENT_RE = re.compile(r"[A-Za-z_$][A-Za-z0-9_$]*")

_ESCAPES = {
    "n": "\n",
    "t": "\t",
    "r": "\r",
    "b": "\b",
    "f": "\f",
    "v": "\v",
    "0": "\0",
}


@dataclass
class Token:
    kind: str  # NUMBER, STRING, TEMPLATE, REGEX, IDENT, KEYWORD, PUNCT, EOF
    value: object
    pos: int
    newline_before: bool = False
    parts: List[Tuple[str, str]] = field(default_factory=list)


def _read_escape(source: str, pos: int) -> Tuple[str, int]:
    """Decode the escape sequence starting after a backslash at ``pos``."""
    if pos >= len(source):
        raise ExpressionSyntaxError("Unterminated escape sequence", pos)
    ch = source[pos]
    if ch in _ESCAPES:
        return _ESCAPES[ch], pos + 1
    if ch == "u":
        digits = source[pos + 1:pos + 5]
        if len(digits) != 4 or not all(c in "0123456789abcdefABCDEF" for c in digits):
            raise ExpressionSyntaxError("Invalid unicode escape", pos)
        return chr(int(digits, 16)), pos + 5
    if ch == "x":
        digits = source[pos + 1:pos + 3]
        if len(digits) != 2 or not all(c in "0123456789abcdefABCDEF" for c in digits):
            raise ExpressionSyntaxError("Invalid hex escape", pos)
        return chr(int(digits, 16)), pos + 3
    if ch == "\n":
        return "", pos + 1
    return ch, pos + 1


def _read_string(source: str, pos: int) -> Tuple[str, int]:
    quote = source[pos]
    pos += 1
    chars = []
    while pos < len(source):
        ch = source[pos]
        if ch == quote:
            return "".join(chars), pos + 1
        if ch == "\\":
            decoded, pos = _read_escape(source, pos + 1)
            chars.append(decoded)
            continue
        if ch == "\n":
            break
        chars.append(ch)
        pos += 1
    raise ExpressionSyntaxError("Unterminated string literal", pos)


def _read_template(source: str, pos: int) -> Tuple[List[Tuple[str, str]], int]:
    """Split a template literal into ("str", text) and ("expr", source) parts."""
    start = pos
    pos += 1
    parts: List[Tuple[str, str]] = []
    chars: List[str] = []
    while pos < len(source):
        ch = source[pos]
        if ch == "`":
            parts.append(("str", "".join(chars)))
            return parts, pos + 1
        if ch == "\\":
            decoded, pos = _read_escape(source, pos + 1)
            chars.append(decoded)
            continue
        if ch == "$" and source.startswith("${", pos):
            parts.append(("str", "".join(chars)))
            chars = []
            depth = 1
            expr_start = pos + 2
            pos = expr_start
            while pos < len(source) and depth:
                c = source[pos]
                if c in "'\"":
                    _, pos = _read_string(source, pos)
                    continue
                if c == "{":
                    depth += 1
                elif c == "}":
                    depth -= 1
                pos += 1
            if depth:
                break
            parts.append(("expr", source[expr_start:pos - 1]))
            continue
        chars.append(ch)
        pos += 1
    raise ExpressionSyntaxError("Unterminated template literal", start)


def _read_regex(source: str, pos: int) -> Tuple[Tuple[str, str], int]:
    start = pos
    pos += 1
    in_class = False
    chars = []
    while pos < len(source):
        ch = source[pos]
        if ch == "\n":
            break
        if ch == "\\":
            chars.append(source[pos:pos + 2])
            pos += 2
            continue
        if ch == "[":
            in_class = True
        elif ch == "]":
            in_class = False
        elif ch == "/" and not in_class:
            pos += 1
            flags_match = _IDENT_RE.match(source, pos)
            flags = flags_match.group(0) if flags_match else ""
            if flags_match:
                pos = flags_match.end()
            return ("".join(chars), flags), pos
        chars.append(ch)
        pos += 1
    raise ExpressionSyntaxError("Unterminated regular expression", start)


def _regex_allowed(previous: Optional[Token]) -> bool:
    if previous is None:
        return True
    if previous.kind in _DIVISION_PRECEDERS:
        return False
    if previous.kind == "PUNCT" and previous.value in _DIVISION_PUNCTUATORS:
        return False
    if previous.kind == "KEYWORD" and previous.value in _DIVISION_KEYWORDS:
        return False
    return True


def tokenize(source: str) -> List[Token]:
    """Convert a script snippet into tokens.

    Raises:
        ExpressionSyntaxError: On characters or literals the language does not
            support.
    """
    tokens: List[Token] = []
    pos = 0
    newline = False
    length = len(source)

    while pos < length:
        ch = source[pos]

        if ch in " \t\r\f\v\u00a0\ufeff":
            pos += 1
            continue
        if ch == "\n":
            newline = True
            pos += 1
            continue
        if source.startswith("//", pos):
            end = source.find("\n", pos)
            pos = length if end == -1 else end
            continue
        if source.startswith("/*", pos):
            end = source.find("*/", pos + 2)
            if end == -1:
                raise ExpressionSyntaxError("Unterminated comment", pos)
            if "\n" in source[pos:end]:
                newline = True
            pos = end + 2
            continue

        previous = tokens[-1] if tokens else None
        start = pos

        if ch.isdigit() or (ch == "." and pos + 1 < length and source[pos + 1].isdigit()):
            match = _NUMBER_RE.match(source, pos)
            text = match.group(0)
            pos = match.end()
            if _IDENT_RE.match(source, pos):
                raise ExpressionSyntaxError(f"Invalid number literal '{text}'", start)
            if any(c in text for c in ".eE"):
                value: object = float(text)
            else:
                value = int(text)
            tokens.append(Token("NUMBER", value, start, newline))
        elif ch in "'\"":
            value, pos = _read_string(source, pos)
            tokens.append(Token("STRING", value, start, newline))
        elif ch == "`":
            parts, pos = _read_template(source, pos)
            tokens.append(Token("TEMPLATE", None, start, newline, parts))
        elif ch == "/" and _regex_allowed(previous) and not source.startswith("/=", pos):
            value, pos = _read_regex(source, pos)
            tokens.append(Token("REGEX", value, start, newline))
        else:
            match = _IDENT_RE.match(source, pos)
            if match:
                word = match.group(0)
                pos = match.end()
                kind = "KEYWORD" if word in KEYWORDS else "IDENT"
                tokens.append(Token(kind, word, start, newline))
            else:
                for punct in PUNCTUATORS:
                    if source.startswith(punct, pos):
                        # "a?.5:1" is a conditional, not optional chaining
                        if punct == "?." and pos + 2 < length and source[pos + 2].isdigit():
                            continue
                        tokens.append(Token("PUNCT", punct, start, newline))
                        pos += len(punct)
                        break
                else:
                    raise ExpressionSyntaxError(f"Unexpected character {ch!r}", pos)
        newline = False

    tokens.append(Token("EOF", None, length, newline))
    return tokens
