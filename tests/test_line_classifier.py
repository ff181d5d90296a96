"""Tests for single-line classification.

Each line is classified on its own; the first matching category wins.
"""

import pytest


def classify(line, language="javascript"):
    from linecfg.line_classifier import classify_line

    return classify_line(line, line.strip(), language)


# =============================================================================
# Conditionals
# =============================================================================


class TestConditionals:
    @pytest.mark.parametrize(
        "line,label,construct",
        [
            ("if (x > 0) {", "if (x > 0)", "if"),
            ("else if (y) {", "if (y)", "elif"),
            ("elif x:", "if (x)", "elif"),
            ("if ready:", "if (ready)", "if"),
            ("if ((a && b) || c) {", "if ((a && b) || c)", "if"),
        ],
    )
    def test_if_headers(self, line, label, construct):
        analysis = classify(line)
        assert analysis.kind == "condition"
        assert analysis.label == label
        assert analysis.construct == construct
        assert analysis.is_block_start

    def test_guard(self):
        analysis = classify("guard x > 0 else {", "swift")
        assert analysis.kind == "condition"
        assert analysis.label == "guard x > 0"
        assert analysis.construct == "guard"

    def test_kotlin_when_is_a_switch(self):
        analysis = classify("when (value) {", "kotlin")
        assert analysis.construct == "switch"
        assert analysis.label == "when (value)"

    @pytest.mark.parametrize("line", ["else {", "else:", "else"])
    def test_else(self, line):
        assert classify(line).construct == "else"

    def test_ternary(self):
        analysis = classify("const a = b ? c : d;")
        assert analysis.kind == "condition"
        assert analysis.label == "conditional expression"
        assert analysis.construct == "ternary"


# =============================================================================
# Loops
# =============================================================================


class TestLoops:
    @pytest.mark.parametrize(
        "line,label",
        [
            ("for (let i = 0; i < n; i++) {", "for (i < n)"),
            ("for (const item of items) {", "for (const item of items)"),
            ("for item in items:", "for item in items"),
            ("while (x < 10) {", "while (x < 10)"),
            ("while queue:", "while (queue)"),
            ("foreach ($rows as $row) {", "foreach ($rows as $row)"),
            ("loop {", "loop"),
            ("repeat {", "repeat"),
            ("do {", "do"),
        ],
    )
    def test_loop_headers(self, line, label):
        analysis = classify(line)
        assert analysis.kind == "loop"
        assert analysis.label == label

    def test_iterator_method_is_loop_and_call(self):
        analysis = classify("items.forEach(item => {")
        assert analysis.kind == "loop"
        assert analysis.label == ".forEach(...)"
        assert analysis.is_call
        assert analysis.called_name == "forEach"
        assert analysis.construct == "foreach"

    def test_swift_do_is_try(self):
        analysis = classify("do {", "swift")
        assert analysis.kind == "statement"
        assert analysis.construct == "try"


# =============================================================================
# Terminal flow
# =============================================================================


class TestTerminalFlow:
    def test_return_with_value(self):
        analysis = classify("return x + 1;")
        assert analysis.kind == "return"
        assert analysis.label == "return x + 1"

    def test_bare_return(self):
        assert classify("return").label == "return"

    @pytest.mark.parametrize("line", ['throw new Error("bad");', 'raise ValueError("x")'])
    def test_throw(self, line):
        analysis = classify(line)
        assert analysis.kind == "throw"
        assert analysis.label.startswith("throw ")

    def test_yield_is_not_terminal(self):
        analysis = classify("yield value")
        assert analysis.kind == "statement"
        assert analysis.construct == "yield"

    @pytest.mark.parametrize(
        "line,construct,label",
        [
            ("break;", "break", "break"),
            ("break outer", "break", "break outer"),
            ("continue", "continue", "continue"),
        ],
    )
    def test_loop_control(self, line, construct, label):
        analysis = classify(line)
        assert analysis.kind == "statement"
        assert analysis.construct == construct
        assert analysis.label == label


# =============================================================================
# Exceptions and switch
# =============================================================================


class TestExceptionsAndSwitch:
    def test_try(self):
        analysis = classify("try {")
        assert analysis.construct == "try"
        assert analysis.label == "try"

    @pytest.mark.parametrize(
        "line,label",
        [
            ("catch (e) {", "catch (e)"),
            ("except ValueError:", "catch (ValueError)"),
        ],
    )
    def test_catch(self, line, label):
        analysis = classify(line)
        assert analysis.construct == "catch"
        assert analysis.label == label

    @pytest.mark.parametrize("line", ["finally {", "finally:", "ensure"])
    def test_finally(self, line):
        assert classify(line).construct == "finally"

    def test_switch(self):
        analysis = classify("switch (value) {")
        assert analysis.kind == "condition"
        assert analysis.label == "switch (value)"

    def test_python_match(self):
        assert classify("match command:", "python").construct == "switch"

    def test_match_as_identifier_is_not_a_switch(self):
        assert classify("match = pattern.search(text)", "python").construct != "switch"

    def test_case_and_default(self):
        assert classify("case 1:").construct == "case"
        assert classify("default:").construct == "default"
        assert classify("else -> 0", "kotlin").construct == "default"


# =============================================================================
# Declarations, calls, assertions, logging
# =============================================================================


class TestStatements:
    def test_await(self):
        analysis = classify("const result = await fetchData(url);")
        assert analysis.construct == "await"
        assert analysis.is_call
        assert analysis.called_name == "fetchData"

    @pytest.mark.parametrize(
        "line,name",
        [
            ("let total = 0;", "total"),
            ("val name: String = x", "name"),
            ("x := compute()", "x"),
        ],
    )
    def test_declarations(self, line, name):
        analysis = classify(line)
        assert analysis.is_declaration
        assert analysis.declared_name == name
        assert analysis.label == f"{name} = ..."

    def test_bare_call(self):
        analysis = classify("processItem(item);")
        assert analysis.is_call
        assert analysis.called_name == "processItem"
        assert analysis.label == "processItem(...)"

    def test_method_call(self):
        analysis = classify("repo.save(user);")
        assert analysis.called_name == "save"
        assert analysis.label == "repo.save(...)"

    def test_self_call(self):
        analysis = classify("this.save();")
        assert analysis.label == "this.save(...)"

    @pytest.mark.parametrize("line", ['console.log("hi")', 'print("hi")', 'logger.info("x")'])
    def test_logging(self, line):
        analysis = classify(line)
        assert analysis.construct == "log"
        assert analysis.label == "log(...)"

    def test_assert(self):
        analysis = classify("assert x > 0", "python")
        assert analysis.construct == "assert"
        assert analysis.label == "assert (x > 0)"

    def test_generic_statement(self):
        analysis = classify("x = y + 1")
        assert analysis.kind == "statement"
        assert analysis.label == "x = y + 1"
        assert analysis.construct is None

    def test_long_label_is_truncated(self):
        line = "x = " + " + ".join(f"value{i}" for i in range(20))
        label = classify(line).label
        assert label.endswith("...")
        assert len(label) <= 53


# =============================================================================
# Helpers
# =============================================================================


def test_extract_function_calls_orders_and_dedupes():
    from linecfg.line_classifier import extract_function_calls

    assert extract_function_calls("foo(bar(1)) + obj.baz() + foo()") == ["foo", "bar", "baz"]


def test_extract_function_calls_skips_keywords():
    from linecfg.line_classifier import extract_function_calls

    assert extract_function_calls("if (check(x)) {") == ["check"]
    assert extract_function_calls("while (true) {") == []


@pytest.mark.parametrize(
    "line",
    [
        "",
        "}",
        "});",
        "} // end",
        "end",
        "import os",
        "from typing import Any",
        "package main",
        "using System;",
        "#include <stdio.h>",
        "// note",
        "# note",
        "@Override",
        "const fs = require('fs');",
    ],
)
def test_should_skip_line(line):
    from linecfg.line_classifier import should_skip_line

    assert should_skip_line(line)


@pytest.mark.parametrize("line", ["x = 1", "return x", "foo()"])
def test_should_not_skip_code(line):
    from linecfg.line_classifier import should_skip_line

    assert not should_skip_line(line)
