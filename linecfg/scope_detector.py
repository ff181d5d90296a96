"""
Class and function scope detection.

A single pass over the logical lines finds class headers and
function/method/constructor headers with per-style regular expressions.
Scope ends come from ``SourceText.find_block_end`` (brace depth, or
indentation when no brace opens the block). Scopes are construction-time
records only; the exported graph carries the node ids they produced.
"""

import logging
import re
from dataclasses import dataclass, field

from .line_classifier import CALL_KEYWORDS, extract_function_calls
from .source_text import SourceText

logger = logging.getLogger(__name__)

IMPLICIT_FUNCTION_NAME = "main"
CONSTRUCTOR_NAMES = frozenset({"constructor", "__init__", "init", "initialize"})

# Every function header starts with def/fun/func/fn; `name(args) {` is a call
KEYWORD_DECLARATION_LANGUAGES = frozenset({"python", "ruby", "kotlin", "swift", "go", "rust", "scala"})

# Header words that look like calls followed by a block
_NOT_FUNCTION_NAMES = CALL_KEYWORDS | frozenset(
    {"fixed", "with", "super", "this", "assert", "require", "print", "echo"}
)
_NOT_RETURN_TYPES = frozenset({"new", "return", "else", "throw", "await", "yield", "case", "echo"})

_MODIFIERS = (
    r"(?:(?:public|private|protected|internal|abstract|final|static|sealed|open|data|"
    r"partial|fileprivate|enum|annotation|inner|value|case)\s+)*"
)

_CLASS_PATTERNS = (
    # C++ base lists: class A : public B
    re.compile(
        r"^(?:template\s*<[^>]*>\s*)?(?:class|struct)\s+(\w+)\s*(?:final\s*)?:\s*"
        r"(?:public|private|protected)\s+(?:virtual\s+)?(\w+)"
    ),
    # JavaScript/TypeScript, Java, PHP, Dart
    re.compile(
        r"^(?:export\s+)?(?:default\s+)?" + _MODIFIERS
        + r"class\s+(\w+)(?:<[^>]*>)?\s+extends\s+(\w+)"
    ),
    # Kotlin, Swift, C#
    re.compile(
        r"^" + _MODIFIERS + r"class\s+(\w+)(?:<[^>]*>)?(?:\s*\([^)]*\))?\s*:\s*(\w+)"
    ),
    # Python
    re.compile(r"^class\s+(\w+)\s*\(\s*([\w.]+)\s*[,)]"),
    # Ruby
    re.compile(r"^class\s+(\w+)\s*<\s*(\w+)"),
    # Any other class-like header
    re.compile(
        r"^(?:export\s+)?(?:default\s+)?" + _MODIFIERS
        + r"(?:class|interface|object|trait|enum|extension)\s+(\w+)"
    ),
    # Rust / C / Swift structs, Rust impl blocks, Go struct types
    re.compile(r"^(?:pub(?:\([^)]*\))?\s+)?struct\s+(\w+)"),
    re.compile(r"^impl(?:<[^>]*>)?\s+(?:\w+(?:<[^>]*>)?\s+for\s+)?(\w+)"),
    re.compile(r"^type\s+(\w+)\s+struct\b"),
)

_FUNCTION_PATTERNS = (
    # JavaScript/TypeScript/PHP function declarations
    re.compile(
        r"^(?:export\s+)?(?:default\s+)?(?:(?:public|private|protected|static|abstract|final)\s+)*"
        r"(?:async\s+)?function\s*\*?\s*(?P<name>\w+)\s*(?:<[^>]*>)?\s*\((?P<params>[^)]*)\)"
    ),
    # JavaScript/TypeScript arrow functions
    re.compile(
        r"^(?:export\s+)?(?:const|let|var)\s+(?P<name>\w+)\s*(?::[^=]+)?=\s*(?:async\s+)?"
        r"(?:\((?P<params>[^)]*)\)|(?P<param>\w+))\s*(?::\s*[^=]+)?=>"
    ),
    # Kotlin
    re.compile(
        r"^(?:(?:private|public|internal|protected|override|open|abstract|final|inline|"
        r"operator|infix|tailrec|suspend)\s+)*fun\s+(?:<[^>]*>\s*)?(?:[\w.]+\.)?"
        r"(?P<name>\w+)\s*\((?P<params>[^)]*)\)"
    ),
    # Go, with optional receiver
    re.compile(
        r"^func\s+(?:\([^)]*\)\s*)?(?P<name>\w+)\s*(?:\[[^\]]*\])?\s*\((?P<params>[^)]*)\)"
    ),
    # Swift
    re.compile(
        r"^(?:@\w+\s+)*(?:(?:private|public|internal|fileprivate|open|static|class|override|"
        r"final|mutating)\s+)*func\s+(?P<name>\w+)\s*(?:<[^>]*>)?\s*\((?P<params>[^)]*)\)"
    ),
    # Python, Ruby, Scala
    re.compile(
        r"^(?:(?:override|private|protected|final)\s+)*(?:async\s+)?def\s+(?:self\.)?"
        r"(?P<name>\w+[?!]?)\s*(?:\[[^\]]*\])?\s*(?:\((?P<params>[^)]*)\)?)?"
    ),
    # Rust
    re.compile(
        r"^(?:pub(?:\([^)]*\))?\s+)?(?:const\s+)?(?:async\s+)?(?:unsafe\s+)?"
        r"(?:extern\s+\"[^\"]*\"\s+)?fn\s+(?P<name>\w+)\s*(?:<[^>]*>)?\s*\((?P<params>[^)]*)\)"
    ),
    # Swift initializers
    re.compile(r"^(?:(?:public|private|internal|convenience|required|override)\s+)*"
               r"(?P<name>init)[?!]?\s*\((?P<params>[^)]*)\)"),
)

# Headers without a declaration keyword
_SIGNATURE_PATTERNS = (
    # JavaScript/TypeScript class methods
    re.compile(
        r"^(?:(?:public|private|protected|static|readonly|override|abstract|get|set)\s+)*"
        r"(?:async\s+)?\*?(?P<name>\w+)\s*(?:<[^>]*>)?\s*\((?P<params>[^)]*)\)\s*"
        r"(?::\s*[\w<>\[\]|&?,.\s]+)?\s*\{"
    ),
    # C++ out-of-class definitions
    re.compile(
        r"^(?:[\w:<>,*&]+\s+)*?[*&]?(?:\w+::)+(?P<name>~?\w+)\s*\((?P<params>[^)]*)\)\s*"
        r"(?:const\s*)?(?:noexcept\s*)?(?:override\s*)?(?::[^{]*)?\{?$"
    ),
    # Java, C#, C, C++, Dart methods
    re.compile(
        r"^(?:(?:public|private|protected|internal|static|final|abstract|virtual|override|"
        r"async|synchronized|native|inline|extern|unsafe|sealed|const)\s+)*"
        r"(?:(?P<type>[\w<>\[\],.?*&]+)\s+)?[*&]?(?P<name>\w+)\s*\((?P<params>[^)]*)\)\s*"
        r"(?:const\s*)?(?:throws\s+[\w.,\s]+)?\s*\{"
    ),
    # Constructors without a brace on the header line
    re.compile(r"^(?:(?:public|private|protected)\s+)?(?P<name>constructor)\s*\((?P<params>[^)]*)\)"),
)

_PROPERTY_PATTERNS = (
    re.compile(
        r"^(?:(?:public|private|protected|internal|static|readonly|final|override|lateinit|"
        r"open|const|weak|lazy|fileprivate)\s+)*(?:val|var|let|const)\s+(\w+)"
    ),
    re.compile(
        r"^(?:(?:public|private|protected|internal|static|readonly|final|volatile|transient)\s+)+"
        r"[\w<>\[\],.?]+\s+(\w+)\s*(?:=(?!=)|;|$)"
    ),
    re.compile(r"^[\w<>\[\],.?]+\s+(\w+)\s*(?:=(?![=>]).*)?;$"),
    re.compile(
        r"^(?:(?:public|private|protected|readonly|static)\s+)*(\w+)\s*[?!]?\s*:"
        r"\s*[\w<>\[\]|.,\s]+?\s*(?:=.*)?;?$"
    ),
    re.compile(r"^(\w+)\s*=(?!=)"),
)

_ASYNC_MARKER = re.compile(r"\b(?:async|suspend)\b")


@dataclass
class ClassScope:
    name: str
    start_line: int  # logical line indices
    end_line: int
    parent_class: str | None = None
    methods: list["FunctionScope"] = field(default_factory=list)
    properties: list[tuple[str, int]] = field(default_factory=list)  # (name, line index)
    node_id: str | None = None

    def contains(self, index: int) -> bool:
        return self.start_line < index <= self.end_line


@dataclass
class FunctionScope:
    name: str
    start_line: int
    end_line: int
    body_start: int
    parent_class: str | None = None
    is_constructor: bool = False
    is_async: bool = False
    parameters: list[str] = field(default_factory=list)
    calls: list[str] = field(default_factory=list)
    depth: int = 0
    implicit: bool = False
    entry_node_id: str | None = None
    exit_node_id: str | None = None

    @property
    def qualified_name(self) -> str:
        if self.parent_class:
            return f"{self.parent_class}.{self.name}"
        return self.name

    def contains(self, index: int) -> bool:
        return self.start_line < index <= self.end_line


def _split_top_level(text: str) -> list[str]:
    parts = []
    depth = 0
    current = []
    for char in text:
        if char in "([{<":
            depth += 1
        elif char in ")]}>" and depth > 0:
            depth -= 1
        if char == "," and depth == 0:
            parts.append("".join(current))
            current = []
        else:
            current.append(char)
    parts.append("".join(current))
    return parts


def parse_parameters(text: str | None, language: str) -> list[str]:
    """Parameter names from a header's parameter list.

    Default values and type annotations are dropped: ``name: Type`` keeps the
    name, ``Type name`` keeps the last identifier, Go's ``name Type`` keeps
    the first.
    """
    if not text:
        return []
    names = []
    for part in _split_top_level(text):
        part = part.split("=")[0].strip()
        if not part:
            continue
        if ":" in part and language != "go":
            part = part.split(":")[0]
        identifiers = re.findall(r"[A-Za-z_$][\w$]*", part)
        if not identifiers:
            continue
        names.append(identifiers[0] if language == "go" else identifiers[-1])
    return names


def _innermost(scopes, index):
    best = None
    for scope in scopes:
        if scope.contains(index) and (best is None or scope.start_line > best.start_line):
            best = scope
    return best


def detect_classes(source: SourceText) -> list[ClassScope]:
    """Find class-like scopes (classes, interfaces, structs, impl blocks)."""
    classes: list[ClassScope] = []
    for index, line in enumerate(source.lines):
        text = line.code_trimmed
        if not text:
            continue
        for pattern in _CLASS_PATTERNS:
            match = pattern.match(text)
            if not match:
                continue
            end = source.find_block_end(index)
            if end > index:
                parent = match.group(2) if match.lastindex and match.lastindex >= 2 else None
                classes.append(
                    ClassScope(name=match.group(1), start_line=index, end_line=end, parent_class=parent)
                )
            break
    return classes


def _match_function_header(source: SourceText, index: int):
    text = source.lines[index].code_trimmed
    following = source.next_code_line(index + 1)
    if following is not None and source.lines[following].code_trimmed == "{":
        # Allman style: brace on its own line
        text = f"{text} {{"
    patterns = _FUNCTION_PATTERNS
    if source.language not in KEYWORD_DECLARATION_LANGUAGES:
        patterns += _SIGNATURE_PATTERNS
    for pattern in patterns:
        match = pattern.match(text)
        if not match:
            continue
        groups = match.groupdict()
        name = groups["name"]
        if name in _NOT_FUNCTION_NAMES or (groups.get("type") or "") in _NOT_RETURN_TYPES:
            return None
        params = groups.get("params")
        if params is None:
            params = groups.get("param")
        return name, params
    return None


def detect_functions(source: SourceText, classes: list[ClassScope]) -> list[FunctionScope]:
    """Find functions, methods and constructors; attach methods to classes.

    When nothing is found the whole text becomes one implicit function.
    """
    class_headers = {cls.start_line for cls in classes}
    functions: list[FunctionScope] = []

    for index, line in enumerate(source.lines):
        if index in class_headers or not line.is_code:
            continue
        header = _match_function_header(source, index)
        if header is None:
            continue
        name, params = header
        end = source.find_block_end(index)
        owner = _innermost(classes, index)
        is_constructor = name in CONSTRUCTOR_NAMES or (owner is not None and name == owner.name)
        functions.append(
            FunctionScope(
                name=name,
                start_line=index,
                end_line=end,
                body_start=index + 1,
                parent_class=owner.name if owner else None,
                is_constructor=is_constructor,
                is_async=bool(_ASYNC_MARKER.search(line.code)),
                parameters=parse_parameters(params, source.language),
            )
        )

    if not functions:
        logger.debug("No function headers found, wrapping input as implicit function")
        functions.append(
            FunctionScope(
                name=IMPLICIT_FUNCTION_NAME,
                start_line=0,
                end_line=max(len(source.lines) - 1, 0),
                body_start=0,
                implicit=True,
            )
        )

    headers = {func.start_line for func in functions if not func.implicit} | class_headers
    for func in functions:
        enclosing = [f for f in functions if f is not func and f.contains(func.start_line)]
        func.depth = len(enclosing) + (1 if func.parent_class else 0)

        calls: dict[str, None] = {}
        for index in range(func.body_start, min(func.end_line, len(source.lines) - 1) + 1):
            if index in headers:
                continue
            for name in extract_function_calls(source.lines[index].code):
                calls.setdefault(name, None)
        func.calls = list(calls)

        if func.parent_class:
            owner = _innermost(classes, func.start_line)
            if owner is not None:
                owner.methods.append(func)

    return functions


def detect_properties(source: SourceText, classes: list[ClassScope], functions: list[FunctionScope]):
    """Record field/attribute declarations made directly in class bodies."""
    for cls in classes:
        for index in range(cls.start_line + 1, cls.end_line + 1):
            line = source.lines[index]
            if not line.is_code:
                continue
            if any(f.start_line <= index <= f.end_line for f in functions if not f.implicit):
                continue
            if _innermost(classes, index) is not cls:
                continue
            text = line.code_trimmed
            for pattern in _PROPERTY_PATTERNS:
                match = pattern.match(text)
                if match:
                    name = match.group(1)
                    if name not in _NOT_FUNCTION_NAMES:
                        cls.properties.append((name, index))
                    break
