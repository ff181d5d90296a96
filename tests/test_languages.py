"""
Test suite for language wiring completeness.

When adding a language to linecfg, this test ensures every registration
point knows about it. Run with:

    pytest tests/test_languages.py -v

To test a specific language:

    pytest tests/test_languages.py -v -k "kotlin"
"""

import pytest

# Languages and their primary extensions
LANGUAGE_EXTENSIONS = {
    "javascript": [".js", ".jsx", ".mjs", ".cjs"],
    "typescript": [".ts", ".tsx"],
    "python": [".py"],
    "java": [".java"],
    "kotlin": [".kt", ".kts"],
    "swift": [".swift"],
    "cpp": [".cpp", ".cc", ".hpp"],
    "csharp": [".cs"],
    "go": [".go"],
    "rust": [".rs"],
    "php": [".php"],
    "ruby": [".rb"],
    "dart": [".dart"],
    "scala": [".scala", ".sc"],
}


class TestLanguageWiring:
    """Each language is registered in every table."""

    def test_vocabulary_matches(self):
        from linecfg.languages import SUPPORTED_LANGUAGES

        assert set(SUPPORTED_LANGUAGES) == set(LANGUAGE_EXTENSIONS)

    @pytest.mark.parametrize("language", sorted(LANGUAGE_EXTENSIONS))
    def test_extensions(self, language):
        from linecfg.languages import EXTENSION_TO_LANGUAGE

        for ext in LANGUAGE_EXTENSIONS[language]:
            assert EXTENSION_TO_LANGUAGE.get(ext) == language, (
                f"Extension {ext} for {language} missing from EXTENSION_TO_LANGUAGE"
            )

    @pytest.mark.parametrize("language", sorted(LANGUAGE_EXTENSIONS))
    def test_pygments_lexer_exists(self, language):
        """Every language masks comments with a real Pygments lexer."""
        from pygments.lexers import get_lexer_by_name

        from linecfg.languages import PYGMENTS_LEXERS

        assert language in PYGMENTS_LEXERS, f"{language} missing from PYGMENTS_LEXERS"
        get_lexer_by_name(PYGMENTS_LEXERS[language])

    @pytest.mark.parametrize("language", sorted(LANGUAGE_EXTENSIONS))
    def test_builds_without_error(self, language):
        """A trivial snippet builds a graph in every language."""
        from linecfg import build_control_flow_graph

        cfg = build_control_flow_graph("x = 1\n", language)
        assert cfg.nodes
        assert cfg.exit_nodes


class TestNormalizeLanguage:
    @pytest.mark.parametrize(
        "tag,expected",
        [(None, "javascript"), ("", "javascript"), (" Python ", "python"), ("GO", "go")],
    )
    def test_normalize(self, tag, expected):
        from linecfg.languages import normalize_language

        assert normalize_language(tag) == expected

    def test_only_python_is_indentation_based(self):
        from linecfg.languages import SUPPORTED_LANGUAGES, is_indentation_based

        assert [lang for lang in SUPPORTED_LANGUAGES if is_indentation_based(lang)] == ["python"]
