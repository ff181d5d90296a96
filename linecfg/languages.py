"""
Language vocabulary for the line-oriented CFG heuristics.

The language tag is supplied by an external classifier and is drawn from
a closed set. Each tag maps to a Pygments lexer (used only to blank out
comments and string literals) and to a block style.
"""

SUPPORTED_LANGUAGES = (
    "javascript",
    "typescript",
    "python",
    "java",
    "kotlin",
    "swift",
    "cpp",
    "csharp",
    "go",
    "rust",
    "php",
    "ruby",
    "dart",
    "scala",
)

DEFAULT_LANGUAGE = "javascript"

EXTENSION_TO_LANGUAGE = {
    ".js": "javascript",
    ".jsx": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".ts": "typescript",
    ".tsx": "typescript",
    ".py": "python",
    ".java": "java",
    ".kt": "kotlin",
    ".kts": "kotlin",
    ".swift": "swift",
    ".cpp": "cpp",
    ".cc": "cpp",
    ".cxx": "cpp",
    ".hpp": "cpp",
    ".h": "cpp",
    ".cs": "csharp",
    ".go": "go",
    ".rs": "rust",
    ".php": "php",
    ".rb": "ruby",
    ".dart": "dart",
    ".scala": "scala",
    ".sc": "scala",
}

# Pygments lexer alias per language tag
PYGMENTS_LEXERS = {
    "javascript": "javascript",
    "typescript": "typescript",
    "python": "python",
    "java": "java",
    "kotlin": "kotlin",
    "swift": "swift",
    "cpp": "cpp",
    "csharp": "csharp",
    "go": "go",
    "rust": "rust",
    "php": "php",
    "ruby": "ruby",
    "dart": "dart",
    "scala": "scala",
}

# Blocks are delimited by indentation only; braces never open a block
INDENTATION_LANGUAGES = frozenset({"python"})


def normalize_language(language: str | None) -> str:
    """Lower-case a language tag, defaulting to javascript when empty."""
    if not language:
        return DEFAULT_LANGUAGE
    return language.strip().lower()


def is_indentation_based(language: str) -> bool:
    return language in INDENTATION_LANGUAGES
