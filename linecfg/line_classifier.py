"""
Line classification for heuristic CFG construction.

Each logical line is classified on its own, with no parser: an ordered
list of patterns is tried, most specific first, and the first match
decides the line kind and its display label.

Order of categories:
1. conditionals (if / else if / elif / guard / when / else / ternary)
2. loops (for / while / do / repeat / foreach-style methods / loop)
3. terminal flow (return / throw / yield / break / continue)
4. exception blocks (try / catch / finally / defer)
5. switch / match / case / default
6. async, await and declarations
7. bare calls, object method calls, self/this calls
8. assertions and logging
9. anything else is a generic statement
"""

import re
from dataclasses import dataclass

LABEL_LIMIT = 50

# Never reported as callee names
CALL_KEYWORDS = frozenset(
    {
        "if",
        "for",
        "while",
        "switch",
        "catch",
        "function",
        "return",
        "throw",
        "new",
        "typeof",
        "instanceof",
        "elif",
        "when",
        "match",
        "guard",
        "foreach",
        "until",
        "unless",
        "else",
        "do",
        "await",
        "yield",
        "sizeof",
        "using",
        "lock",
        "synchronized",
        "def",
        "fun",
        "func",
        "fn",
        "and",
        "or",
        "not",
        "in",
    }
)

_ASSERT_NAMES = ("assert", "require", "check", "precondition")
_LOG_NAMES = ("print", "println", "NSLog", "debugPrint", "puts", "printf")
_LOG_RECEIVERS = ("console", "Log", "logger", "logging", "log", "System")

_CALL_PATTERNS = (
    re.compile(r"\b(\w+)\s*\("),
    re.compile(r"\b(\w+)\s*\.\s*(\w+)\s*\("),
)

_IF = re.compile(r"^(else\s+if|elif|if)(?:\s*[(\{:]|\s+)")
_GUARD = re.compile(r"^guard\s+")
_WHEN = re.compile(r"^when\s*[(\{]")
_ELSE = re.compile(r"^else\s*[\{:]?$")
_TERNARY = re.compile(r"\s\?\s.*\s:\s")

_FOR_C = re.compile(r"^for\s*\(([^;]*);([^;]*);([^)]*)\)")
_FOR_PAREN = re.compile(r"^for\s*\((.+)\)")
_FOR_IN = re.compile(r"^for\s+([\w, ()]+?)\s+in\s+([^:\{]+)")
_FOR_ANY = re.compile(r"^for\b\s*(.*?)\s*\{?$")
_FOREACH = re.compile(r"^foreach\s*\((.+)\)")
_WHILE = re.compile(r"^while(?:\s*[(\{]|\s+)")
_DO = re.compile(r"^do\s*\{?$")
_REPEAT = re.compile(r"^repeat\s*\{?$")
_ITERATOR_METHOD = re.compile(
    r"\.(forEach|map|filter|reduce|flatMap|compactMap|some|every|find|findIndex|each)"
    r"(?:\s*[(\{]|\s+do\b)"
)
_LOOP = re.compile(r"^loop\s*\{")

_RETURN = re.compile(r"^return\b")
_THROW = re.compile(r"^(?:throw|raise)\b")
_YIELD = re.compile(r"^yield\b")
_BREAK = re.compile(r"^break\b(?:\s+(\w+))?")
_CONTINUE = re.compile(r"^continue\b(?:\s+(\w+))?")

_TRY = re.compile(r"^(?:try|begin)\s*(?:[\{:]|$)")
_CATCH = re.compile(r"^(?:catch|except|rescue)\b")
_FINALLY = re.compile(r"^(?:finally|ensure)\s*[\{:]?$")
_DEFER = re.compile(r"^defer\s*\{")

_SWITCH = re.compile(r"^(?:switch\b|match\s+(?![\s=(.]))")
_CASE = re.compile(r"^(?:case|is)\s+([^:]+)")
_DEFAULT = re.compile(r"^(?:default\s*:|else\s*->)")

_AWAIT = re.compile(r"^(?:const|let|var|val)?\s*\w*\s*=?\s*await\b")
_ASYNC_LET = re.compile(r"^async\s+let\s+(\w+)")
_DECLARATION = re.compile(r"^(?:const|let|var|val|final)\s+(\w+)\s*[:=]")
_PROPERTY_DECLARATION = re.compile(
    r"^(?:(?:private|public|protected|internal)\s+)?(?:var|val|let)\s+(\w+)"
)
_SHORT_DECLARATION = re.compile(r"^(\w+(?:\s*,\s*\w+)*)\s*:=")

_BARE_CALL = re.compile(r"^(\w+)\s*\(")
_METHOD_CALL = re.compile(r"^(\w+)\s*\.\s*(\w+)\s*\(")
_ASSERT = re.compile(r"^(?:assert|require|check|precondition)\b(?:\s*[(\{]\s*([^)\}]*)|\s+(?![=.])(.*))")
_LOG = re.compile(r"^(?:print|println|printf|puts|NSLog|debugPrint|console\.|Log\.|logger\.|logging\.|log\.|System\.out\.)")

_SKIP_PATTERNS = (
    re.compile(r"^import\s"),
    re.compile(r"^from\s+[\w.]+\s+import\b"),
    re.compile(r"^(?:const|let|var)\s+\w+\s*=\s*require\s*\("),
    re.compile(r"^require\s*\("),
    re.compile(r"^package\s"),
    re.compile(r"^using\s+[\w.]+\s*;"),
    re.compile(r"^using\s+(?:static\s+)?[\w.]+\s*$"),
    re.compile(r"^#include\b"),
    re.compile(r"^@[\w.]+(?:\(.*\))?$"),
    re.compile(r"^(?://|/\*|\*|#|\"\"\"|''')"),
)
_CLOSING_LINES = frozenset({"{", "}", "};", "},", ")", ");", "]", "];", "end", "})", "});"})


@dataclass(frozen=True)
class LineAnalysis:
    """Classification of one line.

    ``construct`` names the matched construct (``if``, ``while``, ``return``,
    ``try``...) so that the block builder does not have to re-match the line.
    """

    kind: str
    label: str
    is_block_start: bool = False
    is_block_end: bool = False
    is_call: bool = False
    called_name: str | None = None
    is_declaration: bool = False
    declared_name: str | None = None
    construct: str | None = None


def truncate(text: str, limit: int) -> str:
    """Cut ``text`` to ``limit`` characters, marking the cut with '...'."""
    text = text.strip()
    if len(text) > limit:
        return text[:limit].rstrip() + "..."
    return text


def _condition_text(text: str) -> str:
    """Condition of a header with its keyword already removed."""
    text = text.strip()
    for suffix in ("{", ":", " then", " do"):
        if text.endswith(suffix):
            text = text[: -len(suffix)].strip()
    if text.startswith("(") and text.endswith(")") and _balanced(text[1:-1]):
        text = text[1:-1].strip()
    return text


def _balanced(text: str) -> bool:
    depth = 0
    for char in text:
        if char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
            if depth < 0:
                return False
    return depth == 0


def extract_function_calls(line: str) -> list[str]:
    """Names of functions and methods called on ``line``, in order, unique."""
    calls: dict[str, None] = {}
    for pattern in _CALL_PATTERNS:
        for match in pattern.finditer(line):
            name = match.group(match.lastindex)
            if name not in CALL_KEYWORDS and not name.isdigit():
                calls.setdefault(name, None)
    return list(calls)


def should_skip_line(trimmed: str) -> bool:
    """Lines that never produce nodes: blanks, closers, imports, comments."""
    if not trimmed or trimmed in _CLOSING_LINES:
        return True
    if trimmed.startswith("}"):
        return True
    return any(pattern.match(trimmed) for pattern in _SKIP_PATTERNS)


def classify_line(raw_line: str, trimmed: str, language: str) -> LineAnalysis:
    """Classify one line; see the module docstring for the match order."""
    is_block_end = bool(re.match(r"^[}\])]", trimmed)) or trimmed.endswith("}")
    generic_label = truncate(trimmed, LABEL_LIMIT)

    def result(kind: str, label: str, construct: str | None, **flags) -> LineAnalysis:
        return LineAnalysis(
            kind=kind, label=label, is_block_end=is_block_end, construct=construct, **flags
        )

    # Conditionals
    match = _IF.match(trimmed)
    if match:
        condition = _condition_text(trimmed[match.end(1) :])
        construct = "if" if match.group(1) == "if" else "elif"
        return result(
            "condition", f"if ({truncate(condition, 30)})", construct, is_block_start=True
        )
    if _GUARD.match(trimmed):
        found = re.match(r"guard\s+(.+?)\s+else\b", trimmed)
        condition = found.group(1) if found else trimmed[len("guard") :]
        return result(
            "condition", f"guard {truncate(condition, 25)}", "guard", is_block_start=True
        )
    if _WHEN.match(trimmed):
        found = re.match(r"when\s*\(([^)]+)\)", trimmed)
        expression = found.group(1) if found else ""
        return result(
            "condition", f"when ({truncate(expression, 25)})", "switch", is_block_start=True
        )
    if _ELSE.match(trimmed):
        return result("condition", "else", "else", is_block_start=True)
    if _TERNARY.search(trimmed) and not trimmed.startswith("?"):
        return result("condition", "conditional expression", "ternary")

    # Loops
    if trimmed.startswith("for"):
        match = _FOR_C.match(trimmed)
        if match:
            return result(
                "loop", f"for ({truncate(match.group(2), 20) or '...'})", "for",
                is_block_start=True,
            )
        match = _FOR_PAREN.match(trimmed)
        if match:
            return result(
                "loop", f"for ({truncate(match.group(1), 25)})", "for", is_block_start=True
            )
        match = _FOR_IN.match(trimmed)
        if match:
            target = truncate(match.group(2), 15) or "..."
            return result(
                "loop", f"for {match.group(1).strip()} in {target}", "for",
                is_block_start=True,
            )
        match = _FOR_ANY.match(trimmed)
        if match:
            header = truncate(match.group(1), 25)
            return result(
                "loop", f"for {header}" if header else "for", "for", is_block_start=True
            )
    match = _FOREACH.match(trimmed)
    if match:
        return result(
            "loop", f"foreach ({truncate(match.group(1), 25)})", "for", is_block_start=True
        )
    if _WHILE.match(trimmed):
        condition = _condition_text(trimmed[len("while") :])
        return result(
            "loop", f"while ({truncate(condition, 20)})", "while", is_block_start=True
        )
    if _DO.match(trimmed):
        if language == "swift":
            # do { } catch { } in Swift
            return result("statement", "try", "try", is_block_start=True)
        return result("loop", "do", "do", is_block_start=True)
    if _REPEAT.match(trimmed):
        return result("loop", "repeat", "do", is_block_start=True)
    match = _ITERATOR_METHOD.search(trimmed)
    if match:
        method = match.group(1)
        return result(
            "loop", f".{method}(...)", "foreach", is_call=True, called_name=method
        )
    if _LOOP.match(trimmed):
        return result("loop", "loop", "loop", is_block_start=True)

    # Terminal flow
    if _RETURN.match(trimmed):
        value = re.sub(r"^return\s*", "", trimmed).rstrip(";").strip()
        label = f"return {truncate(value, 30)}" if value else "return"
        return result("return", label, "return")
    if _THROW.match(trimmed):
        value = re.sub(r"^(?:throw|raise)\s*", "", trimmed).rstrip(";").strip()
        return result("throw", f"throw {truncate(value, 25)}".rstrip(), "throw")
    if _YIELD.match(trimmed):
        value = re.sub(r"^yield\s*", "", trimmed).rstrip(";").strip()
        return result("statement", f"yield {truncate(value, 25)}".rstrip(), "yield")
    match = _BREAK.match(trimmed)
    if match:
        label = f"break {match.group(1)}" if match.group(1) else "break"
        return result("statement", label, "break")
    match = _CONTINUE.match(trimmed)
    if match:
        label = f"continue {match.group(1)}" if match.group(1) else "continue"
        return result("statement", label, "continue")

    # Exception blocks
    if _TRY.match(trimmed):
        return result("statement", "try", "try", is_block_start=True)
    if _CATCH.match(trimmed):
        found = re.search(r"[(\{]\s*([^)\}]+)", trimmed)
        if found:
            param = found.group(1)
        else:
            param = re.sub(r"^(?:catch|except|rescue)\b", "", trimmed).rstrip(":{ ").strip()
        return result(
            "condition", f"catch ({truncate(param or 'error', 15)})", "catch",
            is_block_start=True,
        )
    if _FINALLY.match(trimmed):
        return result("statement", "finally", "finally", is_block_start=True)
    if _DEFER.match(trimmed):
        label = "defer" if language in ("swift", "go") else "finally"
        return result("statement", label, "defer", is_block_start=True)

    # Switch / match
    if _SWITCH.match(trimmed):
        keyword = "switch" if trimmed.startswith("switch") else "match"
        expression = _condition_text(trimmed[len(keyword) :])
        return result(
            "condition", f"switch ({truncate(expression, 20)})", "switch",
            is_block_start=True,
        )
    match = _CASE.match(trimmed)
    if match:
        return result("condition", f"case {truncate(match.group(1), 20)}", "case")
    if _DEFAULT.match(trimmed):
        return result("condition", "default", "default")

    # Async / declarations
    if _AWAIT.match(trimmed):
        found = re.search(r"await\s+([^;]+)", trimmed)
        awaited = found.group(1) if found else ""
        callee = re.search(r"(\w+)\s*\(", awaited)
        return result(
            "statement",
            f"await {truncate(awaited, 25) or '...'}",
            "await",
            is_call=True,
            called_name=callee.group(1) if callee else None,
        )
    match = _ASYNC_LET.match(trimmed)
    if match:
        name = match.group(1)
        return result(
            "statement", f"async let {name}", "declaration",
            is_declaration=True, declared_name=name,
        )
    match = _DECLARATION.match(trimmed) or _PROPERTY_DECLARATION.match(trimmed)
    if match:
        name = match.group(1)
        return result(
            "statement", f"{name} = ...", "declaration",
            is_declaration=True, declared_name=name,
        )
    match = _SHORT_DECLARATION.match(trimmed)
    if match:
        name = match.group(1).split(",")[0].strip()
        return result(
            "statement", f"{name} = ...", "declaration",
            is_declaration=True, declared_name=name,
        )

    # Calls
    match = _BARE_CALL.match(trimmed)
    if (
        match
        and match.group(1) not in CALL_KEYWORDS
        and match.group(1) not in _ASSERT_NAMES
        and match.group(1) not in _LOG_NAMES
    ):
        name = match.group(1)
        return result("statement", f"{name}(...)", "call", is_call=True, called_name=name)
    match = _METHOD_CALL.match(trimmed)
    if match and match.group(1) not in _LOG_RECEIVERS:
        receiver, method = match.groups()
        if receiver in ("self", "this"):
            return result(
                "statement", f"this.{method}(...)", "call", is_call=True, called_name=method
            )
        return result(
            "statement", f"{receiver}.{method}(...)", "call", is_call=True, called_name=method
        )

    # Assertions / logging
    match = _ASSERT.match(trimmed)
    if match:
        assertion = match.group(1) if match.group(1) is not None else (match.group(2) or "")
        return result("condition", f"assert ({truncate(assertion, 20)})", "assert")
    if _LOG.match(trimmed):
        return result("statement", "log(...)", "log", is_call=True)

    return result("statement", generic_label, None)
