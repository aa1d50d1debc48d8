"""Small syntax tree over the token stream.

Only the shapes the extractors need are modelled: exported class
declarations, their members (properties and methods) and the doc comments
attached to each. Anything else is skipped over by bracket matching.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from .tokens import CLOSERS, OPENERS, Token, find_matching, render, split_top_level, tokenize

MODIFIERS = {"public", "private", "protected", "static", "async", "readonly", "abstract", "declare", "override"}
ACCESSORS = {"get", "set"}


@dataclass
class DocComment:
    """A ``/** ... */`` block split into prose lines and ``@tag`` entries."""

    lines: list[str]
    tags: list[tuple[str, str]] = field(default_factory=list)

    @classmethod
    def parse(cls, raw: str) -> DocComment:
        body = raw
        if body.startswith("/**"):
            body = body[3:]
        if body.endswith("*/"):
            body = body[:-2]

        prose: list[str] = []
        tags: list[tuple[str, str]] = []
        for line in body.splitlines():
            line = line.strip()
            if line.startswith("*"):
                line = line[1:].strip()
            if line.startswith("@"):
                name, _, rest = line[1:].partition(" ")
                tags.append((name, rest.strip()))
            elif tags and line:
                # continuation of the previous tag
                name, text = tags[-1]
                tags[-1] = (name, f"{text} {line}".strip())
            elif not tags:
                prose.append(line)
        return cls(lines=prose, tags=tags)

    @property
    def text(self) -> str:
        return "\n".join(line for line in self.lines if line)

    @property
    def first_line(self) -> str:
        for line in self.lines:
            if line:
                return line
        return ""

    def tag(self, name: str) -> str | None:
        for tag_name, text in self.tags:
            if tag_name == name:
                return text
        return None

    def param(self, name: str) -> str | None:
        """Text of ``@param <name> ...``; None when the tag is absent."""
        for tag_name, text in self.tags:
            if tag_name != "param":
                continue
            pname, _, desc = text.partition(" ")
            if pname.strip("[]").rstrip("?") == name:
                return desc.strip()
        return None


@dataclass
class Member:
    name: str
    kind: str  # property / method
    modifiers: list[str] = field(default_factory=list)
    optional: bool = False
    type_tokens: list[Token] = field(default_factory=list)
    initializer: list[Token] = field(default_factory=list)
    params: list[Token] = field(default_factory=list)
    return_type: list[Token] = field(default_factory=list)
    body: list[Token] = field(default_factory=list)
    doc: DocComment | None = None

    @property
    def type_text(self) -> str:
        return render(self.type_tokens)

    @property
    def is_public(self) -> bool:
        return "private" not in self.modifiers and "protected" not in self.modifiers


@dataclass
class ClassDecl:
    name: str
    members: list[Member] = field(default_factory=list)
    doc: DocComment | None = None

    def methods(self) -> list[Member]:
        return [m for m in self.members if m.kind == "method"]

    def properties(self) -> list[Member]:
        return [m for m in self.members if m.kind == "property"]

    def member(self, name: str) -> Member | None:
        for m in self.members:
            if m.name == name:
                return m
        return None


@dataclass
class SourceUnit:
    classes: list[ClassDecl] = field(default_factory=list)


def parse_unit(text: str) -> SourceUnit:
    """Parse exported class declarations out of one source file."""
    tokens = tokenize(text)
    unit = SourceUnit()
    pending_doc: Token | None = None
    i = 0
    n = len(tokens)

    while i < n:
        tok = tokens[i]
        if tok.kind == "doc":
            pending_doc = tok
            i += 1
            continue
        if tok.is_punct("{"):
            i = find_matching(tokens, i) + 1
            continue
        if tok.is_ident("export"):
            j = i + 1
            while j < n and tokens[j].kind == "ident" and tokens[j].text in ("default", "abstract", "declare"):
                j += 1
            if j + 1 < n and tokens[j].is_ident("class") and tokens[j + 1].kind == "ident":
                decl, i = _parse_class(tokens, j + 1)
                if pending_doc is not None:
                    decl.doc = DocComment.parse(pending_doc.text)
                    pending_doc = None
                unit.classes.append(decl)
                continue
        i += 1

    return unit


def _parse_class(tokens: list[Token], name_idx: int) -> tuple[ClassDecl, int]:
    decl = ClassDecl(name=tokens[name_idx].text)
    i = name_idx + 1
    n = len(tokens)
    # skip type parameters and heritage clauses
    while i < n and not tokens[i].is_punct("{"):
        i += 1
    if i >= n:
        return decl, n
    close = find_matching(tokens, i)
    decl.members = _parse_members(tokens[i + 1:close])
    return decl, close + 1


def _parse_members(body: list[Token]) -> list[Member]:
    members: list[Member] = []
    pending_doc: DocComment | None = None
    i = 0
    n = len(body)

    while i < n:
        tok = body[i]
        if tok.kind == "doc":
            pending_doc = DocComment.parse(tok.text)
            i += 1
            continue
        if tok.kind == "punct" and tok.text in (";", ","):
            i += 1
            continue

        modifiers: list[str] = []
        while i + 1 < n and body[i].kind == "ident" and _is_modifier(body[i], body[i + 1]):
            modifiers.append(body[i].text)
            i += 1
        if i >= n:
            break

        tok = body[i]
        if tok.kind in ("ident", "string", "number"):
            name = tok.value
            i += 1
        elif tok.is_punct("["):
            close = find_matching(body, i)
            name = render(body[i:close + 1])
            i = close + 1
        else:
            # unrecognised token at member level
            i += 1
            continue

        member = Member(name=name, kind="property", modifiers=modifiers, doc=pending_doc)
        pending_doc = None

        if i < n and body[i].kind == "punct" and body[i].text in ("?", "!"):
            member.optional = body[i].text == "?"
            i += 1
        if i < n and body[i].is_punct("<"):
            i = find_matching(body, i) + 1

        if i < n and body[i].is_punct("("):
            member.kind = "method"
            close = find_matching(body, i)
            member.params = body[i + 1:close]
            i = close + 1
            if i < n and body[i].is_punct(":"):
                member.return_type, i = _collect(body, i + 1, stop=("{", ";"), angle=True)
            if i < n and body[i].is_punct("{"):
                close = find_matching(body, i)
                member.body = body[i + 1:close]
                i = close + 1
        else:
            if i < n and body[i].is_punct(":"):
                member.type_tokens, i = _collect(body, i + 1, stop=("=", ";"), angle=True)
            if i < n and body[i].is_punct("="):
                member.initializer, i = _collect(body, i + 1, stop=(";",), angle=False)

        members.append(member)

    return members


def _is_modifier(tok: Token, nxt: Token) -> bool:
    if tok.text not in MODIFIERS and tok.text not in ACCESSORS:
        return False
    # ``static: string`` or ``get()`` use the word as the member name itself
    return nxt.kind in ("ident", "string") or nxt.is_punct("[")


def _collect(tokens: list[Token], start: int, stop: tuple[str, ...], angle: bool) -> tuple[list[Token], int]:
    """Collect tokens until a depth-zero stop punctuator or a doc comment.

    A line break after a depth-zero closing brace also ends the run: object
    literal initializers are often written without a trailing semicolon.
    """
    depth = 0
    i = start
    while i < len(tokens):
        tok = tokens[i]
        if depth == 0 and tok.kind == "doc":
            break
        if depth == 0 and i > start and tokens[i - 1].is_punct("}") and tok.line > tokens[i - 1].line:
            break
        if tok.kind == "punct":
            if depth == 0 and tok.text in stop:
                break
            if tok.text in OPENERS and (angle or tok.text != "<"):
                depth += 1
            elif tok.text in CLOSERS and (angle or tok.text != ">"):
                depth = max(depth - 1, 0)
        i += 1
    return tokens[start:i], i


@dataclass
class ParamDecl:
    name: str
    optional: bool
    type_tokens: list[Token]
    default: list[Token]

    @property
    def type_text(self) -> str:
        return render(self.type_tokens)


def parse_parameter(tokens: list[Token]) -> ParamDecl | None:
    """Parse ``name?: Type = default``; None for destructuring or other shapes."""
    i = 0
    while i + 1 < len(tokens) and tokens[i].kind == "ident" and tokens[i].text in MODIFIERS and tokens[i + 1].kind == "ident":
        i += 1
    if i >= len(tokens) or tokens[i].kind != "ident":
        return None
    decl = ParamDecl(name=tokens[i].text, optional=False, type_tokens=[], default=[])
    i += 1
    if i < len(tokens) and tokens[i].is_punct("?"):
        decl.optional = True
        i += 1
    if i < len(tokens) and tokens[i].is_punct(":"):
        decl.type_tokens, i = _collect(tokens, i + 1, stop=("=",), angle=True)
    if i < len(tokens) and tokens[i].is_punct("="):
        decl.default = tokens[i + 1:]
        decl.optional = True
    return decl


# -- literal evaluation ---------------------------------------------------------


def evaluate_literal(tokens: list[Token]):
    """Evaluate an array/object/scalar literal; None for anything else."""
    if not tokens:
        return None
    first = tokens[0]

    if first.is_punct("[") or first.is_punct("{"):
        close = find_matching(tokens, 0)
        inner = tokens[1:close]
        if first.is_punct("["):
            return [evaluate_literal(part) for part in split_top_level(inner)]
        result = {}
        for entry in split_top_level(inner):
            key_tok = entry[0]
            if key_tok.kind not in ("ident", "string", "number"):
                continue
            if len(entry) > 2 and entry[1].is_punct(":"):
                result[key_tok.value] = evaluate_literal(entry[2:])
            else:
                result[key_tok.value] = None
        return result

    if len(tokens) == 2 and first.is_punct("-") and tokens[1].kind == "number":
        value = _number(tokens[1].text)
        return -value if value is not None else None
    if len(tokens) != 1:
        return None
    if first.kind == "string":
        return first.value
    if first.kind == "number":
        return _number(first.text)
    if first.kind == "ident":
        return {"true": True, "false": False, "null": None}.get(first.text)
    return None


def _number(text: str):
    try:
        return int(text)
    except ValueError:
        try:
            return float(text)
        except ValueError:
            return None
