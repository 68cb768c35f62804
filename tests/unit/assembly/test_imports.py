"""Unit tests for dependency extraction."""

from digestctl.assembly.imports import DependencyAnalyzer, PythonAstStrategy, RegexImportStrategy

JS_SOURCE = """\
import React from 'react';
import { useState } from "react";
import './styles.css';
export * from './lib';
const fs = require('fs');
const lazy = () => import('./lazy');
"""

PY_SOURCE = """\
import os, sys
from pathlib import Path
from . import sibling
from ..pkg.mod import thing

def load():
    import json
"""


class TestPythonAstStrategy:
    """Tests for structured Python extraction."""

    def test_extracts_in_source_order(self) -> None:
        modules = PythonAstStrategy().extract(".py", PY_SOURCE)
        assert modules == ["os", "sys", "pathlib", ".", "..pkg.mod", "json"]

    def test_syntax_error_returns_none(self) -> None:
        """Unparseable content is handed to the fallback."""
        assert PythonAstStrategy().extract(".py", "import os\ndef broken(:\n") is None


class TestRegexImportStrategy:
    """Tests for regex extraction."""

    def test_javascript(self) -> None:
        modules = RegexImportStrategy().extract(".js", JS_SOURCE)
        assert set(modules or []) == {"react", "./styles.css", "./lib", "fs", "./lazy"}

    def test_python(self) -> None:
        modules = RegexImportStrategy().extract(".py", "import os, sys\nfrom x.y import z\n")
        assert modules == ["os", "sys", "x.y"]

    def test_unsupported(self) -> None:
        assert not RegexImportStrategy().supports(".go")


class TestDependencyAnalyzer:
    """Tests for strategy ordering."""

    def test_deduplicates(self) -> None:
        """Repeated modules are reported once, in first-seen order."""
        imports = DependencyAnalyzer().analyze(".ts", JS_SOURCE)
        assert imports.count("react") == 1
        assert imports[0] == "react"

    def test_falls_back_to_regex(self) -> None:
        """Broken Python still yields the regex matches."""
        imports = DependencyAnalyzer().analyze(".py", "import os\nfrom json import dumps\ndef broken(:\n")
        assert imports == ("os", "json")

    def test_unknown_extension(self) -> None:
        assert DependencyAnalyzer().analyze(".txt", "import os") == ()
