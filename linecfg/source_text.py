"""
Source text preparation for line-oriented CFG heuristics.

Turns raw source into a list of logical lines:

- comments and string literals are blanked out (via Pygments tokens) so
  that braces, calls and keywords inside them never count as code
- for brace languages, physical lines are split at block delimiters so
  that ``if (x) { return 1 } else { return 2 }`` behaves like its
  multi-line spelling
- each logical line keeps the 1-based physical line number it came from

Block ends are located by brace matching or, when no brace opens the
block, by indentation.
"""

import logging
import re
from dataclasses import dataclass

from pygments.lexers import get_lexer_by_name
from pygments.token import Comment, String
from pygments.util import ClassNotFound

from .languages import PYGMENTS_LEXERS, is_indentation_based, normalize_language

logger = logging.getLogger(__name__)

TAB_WIDTH = 4

# Text before a '{' that makes the brace open a control/definition block
_HEADER_SUFFIX = re.compile(
    r"(?:\)|\belse|\btry|\bdo|\bfinally|\bloop|\brepeat|\bdefer|=>|->)\s*$"
)
_HEADER_KEYWORD = re.compile(
    r"^\s*(?:if|else|for|foreach|while|switch|catch|when|match|try|finally|do|"
    r"loop|repeat|guard|unsafe|fn|func|fun|function|def|class|struct|interface|"
    r"object|impl|enum|trait|namespace)\b"
)
# What may follow a closing brace on the same logical line
_CLOSING_TAIL = re.compile(r"^(?:[)\];,.]|while\b(?!.*\{\s*$))")
# Go headers carry ';' in their condition: if err := f(); err != nil {
_UNPARENTHESISED_HEADER = re.compile(r"^\s*(?:else\s+if|if|for|switch|while)\b(?!\s*\()")

# Braceless headers whose statement follows on the same line
_INLINE_PAREN_HEADER = re.compile(r"^\s*(?:else\s+if|if|while|for|foreach)\s*\(")
_INLINE_ELSE = re.compile(r"^\s*else\b(?!\s*(?:if\b|\{|:|->|$))")
_CASE_LABEL = re.compile(r"^\s*(?:case\b(?:[^:]|::)*?|default\s*):(?!:)")
_INLINE_COLON_HEADER = re.compile(
    r"^\s*(?:if|elif|else|while|for|try|except|finally|with|def|class|"
    r"async\s+(?:def|for|with))\b"
)


@dataclass(frozen=True)
class SourceLine:
    """One logical line: a physical line or a piece of one."""

    number: int  # 1-based physical line
    text: str  # raw text
    code: str  # text with comments and strings blanked
    indent: int
    inline_header: bool = False  # braceless header, body is the next piece

    @property
    def trimmed(self) -> str:
        return self.text.strip()

    @property
    def code_trimmed(self) -> str:
        return self.code.strip()

    @property
    def is_code(self) -> bool:
        return bool(self.code.strip())


def _indent_width(line: str) -> int:
    stripped = line.lstrip()
    return len(line[: len(line) - len(stripped)].expandtabs(TAB_WIDTH))


def _mask_comments_and_strings(text: str, language: str) -> str:
    """Replace comment and string token text with spaces, keeping newlines.

    Returns the text unchanged when no lexer is known for the language or
    the token stream does not reproduce the input exactly.
    """
    alias = PYGMENTS_LEXERS.get(language)
    if alias is None:
        logger.debug(f"No lexer for language {language!r}, analysing unmasked text")
        return text
    try:
        lexer = get_lexer_by_name(
            alias, stripnl=False, stripall=False, ensurenl=False, startinline=True
        )
    except ClassNotFound:
        logger.debug(f"Pygments lexer {alias!r} not found, analysing unmasked text")
        return text

    parts = []
    for token_type, value in lexer.get_tokens(text):
        if token_type in Comment or token_type in String:
            parts.append(re.sub(r"[^\n]", " ", value))
        else:
            parts.append(value)
    masked = "".join(parts)

    if len(masked) != len(text) or masked.count("\n") != text.count("\n"):
        logger.debug(
            f"Token stream for {language} does not preserve layout, "
            "analysing unmasked text"
        )
        return text
    return masked


def _opens_block(prefix: str) -> bool:
    if not prefix.strip():
        return False
    return bool(_HEADER_SUFFIX.search(prefix) or _HEADER_KEYWORD.match(prefix))


def split_block_delimiters(code: str) -> list[tuple[int, int]]:
    """Return (begin, end) spans of ``code`` split at block braces.

    A line is cut after a '{' that opens a control or definition block
    and around a '}' that closes a block opened on an earlier line.
    Statements separated by a top-level ';' are cut apart as well.
    Braces of expressions (object literals, lambdas written inline) are
    left alone.
    """
    spans: list[tuple[int, int]] = []
    begin = 0
    depth = 0
    parens = 0
    for pos, char in enumerate(code):
        if char == "{":
            if depth == 0 and code[pos + 1 :].strip() and _opens_block(code[begin:pos]):
                spans.append((begin, pos + 1))
                begin = pos + 1
            else:
                depth += 1
        elif char == "}":
            if depth > 0:
                depth -= 1
                continue
            if code[begin:pos].strip():
                spans.append((begin, pos))
                begin = pos
            rest = code[pos + 1 :].strip()
            if rest and not _CLOSING_TAIL.match(rest):
                spans.append((begin, pos + 1))
                begin = pos + 1
        elif char == "(":
            parens += 1
        elif char == ")" and parens > 0:
            parens -= 1
        elif char == ";" and depth == 0 and parens == 0:
            if code[pos + 1 :].strip() and not _UNPARENTHESISED_HEADER.match(code[begin:pos]):
                spans.append((begin, pos + 1))
                begin = pos + 1
    if code[begin:].strip() or not spans:
        spans.append((begin, len(code)))
    return spans


def _closing_paren_end(code: str, open_pos: int) -> int | None:
    depth = 0
    for pos in range(open_pos, len(code)):
        if code[pos] == "(":
            depth += 1
        elif code[pos] == ")":
            depth -= 1
            if depth == 0:
                return pos + 1
    return None


def _header_colon_end(code: str) -> int | None:
    depth = 0
    for pos, char in enumerate(code):
        if char in "([{":
            depth += 1
        elif char in ")]}" and depth > 0:
            depth -= 1
        elif char == ":" and depth == 0 and not code.startswith("=", pos + 1):
            return pos + 1
    return None


def split_inline_header(code: str, indentation_based: bool) -> tuple[int, bool] | None:
    """Find a header followed by its statement on the same logical line.

    Handles ``if (x) return 1;``, ``else return 2;`` and ``case 1: a();`` in
    brace languages, and ``if x: return 1`` in indentation languages.

    Returns:
        (offset just past the header, whether the header opens a block), or
        None when ``code`` is not such a line. Case labels are cut but open
        no block.
    """
    if indentation_based:
        if not _INLINE_COLON_HEADER.match(code):
            return None
        cut = _header_colon_end(code)
        if cut is None or not code[cut:].strip():
            return None
        return cut, True

    match = _CASE_LABEL.match(code)
    if match:
        rest = code[match.end() :].strip()
        # Object literal keys look like labels: default: 1,
        if rest and "=>" not in rest and not rest.endswith(","):
            return match.end(), False
        return None

    match = _INLINE_PAREN_HEADER.match(code)
    if match:
        cut = _closing_paren_end(code, match.end() - 1)
    else:
        match = _INLINE_ELSE.match(code)
        cut = match.end() if match else None
    if cut is None:
        return None
    rest = code[cut:].strip()
    if not rest or rest[0] in "{;":
        return None
    return cut, True


class SourceText:
    """Logical lines of one source file plus block-boundary helpers."""

    def __init__(self, lines: list[SourceLine], language: str):
        self.lines = lines
        self.language = language
        self.indentation_based = is_indentation_based(language)

    @classmethod
    def from_code(cls, code: str, language: str | None) -> "SourceText":
        language = normalize_language(language)
        text = (code or "").replace("\r\n", "\n").replace("\r", "\n")
        masked = _mask_comments_and_strings(text, language)

        raw_lines = text.split("\n")
        code_lines = masked.split("\n")
        split = not is_indentation_based(language)

        lines: list[SourceLine] = []
        for number, (raw, masked_line) in enumerate(zip(raw_lines, code_lines), start=1):
            indent = _indent_width(raw)
            spans = split_block_delimiters(masked_line) if split else [(0, len(masked_line))]
            for begin, end in spans:
                # if (a) if (b) c(); holds two headers
                while True:
                    found = split_inline_header(masked_line[begin:end], not split)
                    if found is None:
                        break
                    cut, opens_block = found
                    lines.append(
                        SourceLine(
                            number,
                            raw[begin : begin + cut],
                            masked_line[begin : begin + cut],
                            indent,
                            opens_block,
                        )
                    )
                    begin += cut
                lines.append(SourceLine(number, raw[begin:end], masked_line[begin:end], indent))
        return cls(lines, language)

    def __len__(self) -> int:
        return len(self.lines)

    def __getitem__(self, index: int) -> SourceLine:
        return self.lines[index]

    def next_code_line(self, start: int, limit: int | None = None) -> int | None:
        """Index of the first line at or after ``start`` holding code."""
        stop = len(self.lines) - 1 if limit is None else min(limit, len(self.lines) - 1)
        for index in range(start, stop + 1):
            if self.lines[index].is_code:
                return index
        return None

    def opens_brace_block(self, start: int) -> bool:
        """Whether the block headed by ``start`` is delimited by braces."""
        if self.indentation_based:
            return False
        depth = 0
        for char in self.lines[start].code:
            if char == "{":
                depth += 1
            elif char == "}" and depth > 0:
                depth -= 1
        if depth > 0:
            return True
        following = self.next_code_line(start + 1)
        return following is not None and self.lines[following].code_trimmed.startswith("{")

    def find_block_end(self, start: int) -> int:
        """Index of the last line of the block whose header is at ``start``.

        Brace blocks end on the line where the brace depth returns to zero;
        indentation blocks end on their last code line indented deeper than
        the header. Unterminated brace blocks run to the end of the text.
        A braceless header split off its line owns exactly the next
        statement (or the next block, when that statement heads one).
        """
        if self.lines[start].inline_header:
            return self._inline_body_end(start)
        if self.opens_brace_block(start):
            return self._match_braces(start)
        return self._indentation_end(start)

    def _inline_body_end(self, start: int) -> int:
        body = self.next_code_line(start + 1)
        if body is None:
            return start
        if self.lines[body].inline_header or self.opens_brace_block(body):
            return self.find_block_end(body)
        return body

    def _match_braces(self, start: int) -> int:
        depth = 0
        opened = False
        for index in range(start, len(self.lines)):
            for char in self.lines[index].code:
                if char == "{":
                    depth += 1
                    opened = True
                elif char == "}" and opened:
                    depth -= 1
                    if depth == 0:
                        return index
        return len(self.lines) - 1

    def _indentation_end(self, start: int) -> int:
        base = self.lines[start].indent
        number = self.lines[start].number
        last = start
        for index in range(start + 1, len(self.lines)):
            line = self.lines[index]
            if line.number == number:
                last = index
                continue
            if not line.is_code:
                continue
            if line.indent <= base:
                break
            last = index
        return last
