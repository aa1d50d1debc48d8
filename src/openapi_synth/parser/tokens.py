"""Tokenizer for TypeScript SDK sources.

Produces a flat token stream that the syntax layer groups into classes and
members. Tolerant by construction: unterminated strings or comments run to
the end of input instead of raising.
"""

from __future__ import annotations

from dataclasses import dataclass

IDENT_START = set("abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ_$")
IDENT_CHARS = IDENT_START | set("0123456789")

# A "/" after one of these starts a regex literal rather than a division.
_REGEX_PRECEDERS = set("(,=:[!&|?{};+-*%<>~^")
_REGEX_KEYWORDS = {"return", "typeof", "case", "do", "else", "in", "of", "new", "delete", "void", "throw"}

_MULTI_PUNCT = ("...", "=>")


@dataclass(frozen=True)
class Token:
    kind: str  # doc / string / regex / ident / number / punct
    text: str
    line: int

    @property
    def value(self) -> str:
        """String literal contents without quotes; the raw text for other kinds."""
        if self.kind != "string":
            return self.text
        return _unescape(self.text[1:-1] if len(self.text) >= 2 else self.text[1:])

    def is_punct(self, text: str) -> bool:
        return self.kind == "punct" and self.text == text

    def is_ident(self, text: str | None = None) -> bool:
        return self.kind == "ident" and (text is None or self.text == text)


def _unescape(body: str) -> str:
    out = []
    i = 0
    while i < len(body):
        ch = body[i]
        if ch == "\\" and i + 1 < len(body):
            nxt = body[i + 1]
            out.append({"n": "\n", "t": "\t", "r": "\r"}.get(nxt, nxt))
            i += 2
            continue
        out.append(ch)
        i += 1
    return "".join(out)


def tokenize(text: str) -> list[Token]:
    """Split source text into tokens, dropping whitespace and plain comments."""
    tokens: list[Token] = []
    i = 0
    line = 1
    n = len(text)

    while i < n:
        ch = text[i]

        if ch == "\n":
            line += 1
            i += 1
            continue
        if ch.isspace():
            i += 1
            continue

        if text.startswith("//", i):
            end = text.find("\n", i)
            i = n if end == -1 else end
            continue

        if text.startswith("/*", i):
            end = text.find("*/", i + 2)
            end = n if end == -1 else end + 2
            chunk = text[i:end]
            if chunk.startswith("/**") and not chunk.startswith("/**/"):
                tokens.append(Token("doc", chunk, line))
            line += chunk.count("\n")
            i = end
            continue

        if ch in ("'", '"', "`"):
            end = _scan_string(text, i)
            chunk = text[i:end]
            tokens.append(Token("string", chunk, line))
            line += chunk.count("\n")
            i = end
            continue

        if ch == "/" and _regex_allowed(tokens):
            end = _scan_regex(text, i)
            if end is not None:
                tokens.append(Token("regex", text[i:end], line))
                i = end
                continue

        if ch in IDENT_START:
            j = i + 1
            while j < n and text[j] in IDENT_CHARS:
                j += 1
            tokens.append(Token("ident", text[i:j], line))
            i = j
            continue

        if ch.isdigit():
            j = i + 1
            while j < n and (text[j].isalnum() or text[j] in "._"):
                j += 1
            tokens.append(Token("number", text[i:j], line))
            i = j
            continue

        for multi in _MULTI_PUNCT:
            if text.startswith(multi, i):
                tokens.append(Token("punct", multi, line))
                i += len(multi)
                break
        else:
            tokens.append(Token("punct", ch, line))
            i += 1

    return tokens


def _scan_string(text: str, start: int) -> int:
    """Return the index just past the string literal opening at ``start``."""
    quote = text[start]
    i = start + 1
    n = len(text)
    while i < n:
        ch = text[i]
        if ch == "\\":
            i += 2
            continue
        if ch == quote:
            return i + 1
        if ch == "\n" and quote != "`":
            # unterminated single-line string
            return i
        i += 1
    return n


def _regex_allowed(tokens: list[Token]) -> bool:
    if not tokens:
        return True
    prev = tokens[-1]
    if prev.kind == "punct":
        return prev.text in _REGEX_PRECEDERS or prev.text == "=>"
    return prev.kind == "ident" and prev.text in _REGEX_KEYWORDS


def _scan_regex(text: str, start: int) -> int | None:
    """Scan a regex literal; None when the line ends before it closes."""
    i = start + 1
    n = len(text)
    in_class = False
    while i < n:
        ch = text[i]
        if ch == "\n":
            return None
        if ch == "\\":
            i += 2
            continue
        if ch == "[":
            in_class = True
        elif ch == "]":
            in_class = False
        elif ch == "/" and not in_class:
            i += 1
            while i < n and text[i].isalpha():
                i += 1
            return i
        i += 1
    return None


OPENERS = {"(": ")", "[": "]", "{": "}", "<": ">"}
CLOSERS = {v: k for k, v in OPENERS.items()}


def split_top_level(tokens: list[Token], separator: str = ",") -> list[list[Token]]:
    """Split tokens on ``separator`` at nesting depth zero.

    Depth counts parentheses, brackets, braces and generic angle brackets,
    so a parameter typed ``Map<string, number>`` or ``{a: string, b: number}``
    stays whole. String literals are single tokens, so a quoted separator
    never splits. Empty segments are dropped.
    """
    parts: list[list[Token]] = []
    current: list[Token] = []
    depth = 0
    for tok in tokens:
        if tok.kind == "punct":
            if tok.text in OPENERS:
                depth += 1
            elif tok.text in CLOSERS:
                depth = max(depth - 1, 0)
            elif tok.text == separator and depth == 0:
                if current:
                    parts.append(current)
                current = []
                continue
        current.append(tok)
    if current:
        parts.append(current)
    return parts


def find_matching(tokens: list[Token], start: int) -> int:
    """Index of the token closing the bracket at ``start``; len(tokens) if unbalanced."""
    opener = tokens[start].text
    closer = OPENERS[opener]
    depth = 0
    for idx in range(start, len(tokens)):
        tok = tokens[idx]
        if tok.kind != "punct":
            continue
        if tok.text == opener:
            depth += 1
        elif tok.text == closer:
            depth -= 1
            if depth == 0:
                return idx
    return len(tokens)


def render(tokens: list[Token]) -> str:
    """Re-join tokens into compact source text (``Array<Foo>``, ``Foo | null``)."""
    out: list[str] = []
    prev: Token | None = None
    for tok in tokens:
        if prev is not None and _needs_space(prev, tok):
            out.append(" ")
        out.append(tok.text)
        prev = tok
    return "".join(out)


def _needs_space(prev: Token, tok: Token) -> bool:
    if prev.kind != "punct" and tok.kind != "punct":
        return True
    if tok.is_punct("|") or prev.is_punct("|") or tok.is_punct("&") or prev.is_punct("&"):
        return True
    if prev.is_punct(":") or prev.is_punct(";") or prev.is_punct(","):
        return True
    if tok.is_punct("=>") or prev.is_punct("=>"):
        return True
    return False
