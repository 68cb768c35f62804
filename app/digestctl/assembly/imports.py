"""Best-effort dependency extraction.

Two strategies are tried in order: a structured parser where one exists for
the language, then a regex scan that always works. A structured strategy
reports ``None`` when it cannot parse the content, which hands the file to
the regex strategy.
"""

import ast
import re
from abc import ABC, abstractmethod
from collections.abc import Sequence

JS_EXTENSIONS = frozenset({".js", ".jsx", ".ts", ".tsx", ".mjs", ".cjs"})
PY_EXTENSIONS = frozenset({".py", ".pyi"})

_JS_PATTERNS = (
    re.compile(r"""^\s*import\s+(?:[\w*{}\s,]+?\s+from\s+)?['"]([^'"]+)['"]""", re.MULTILINE),
    re.compile(r"""^\s*export\s+(?:\*|\{[^}]*\}|\*\s+as\s+\w+)\s+from\s+['"]([^'"]+)['"]""", re.MULTILINE),
    re.compile(r"""\brequire\(\s*['"]([^'"]+)['"]\s*\)"""),
    re.compile(r"""\bimport\(\s*['"]([^'"]+)['"]\s*\)"""),
)

_PY_PATTERNS = (
    re.compile(r"^\s*import\s+([\w.]+(?:\s*,\s*[\w.]+)*)", re.MULTILINE),
    re.compile(r"^\s*from\s+(\.*[\w.]*)\s+import\b", re.MULTILINE),
)


class ImportStrategy(ABC):
    """A way of extracting import references from source text."""

    name: str = ""

    @abstractmethod
    def supports(self, extension: str) -> bool:
        """Return True if the strategy understands files with this extension."""

    @abstractmethod
    def extract(self, extension: str, content: str) -> list[str] | None:
        """Return referenced modules, or None if the content could not be parsed."""


class PythonAstStrategy(ImportStrategy):
    """Structured import extraction for Python using ``ast``."""

    name = "python-ast"

    def supports(self, extension: str) -> bool:
        return extension in PY_EXTENSIONS

    def extract(self, extension: str, content: str) -> list[str] | None:
        try:
            tree = ast.parse(content)
        except (SyntaxError, ValueError):
            return None

        statements = sorted(
            (node for node in ast.walk(tree) if isinstance(node, (ast.Import, ast.ImportFrom))),
            key=lambda node: (node.lineno, node.col_offset),
        )
        modules: list[str] = []
        for node in statements:
            if isinstance(node, ast.Import):
                modules.extend(alias.name for alias in node.names)
            elif isinstance(node, ast.ImportFrom):
                modules.append("." * node.level + (node.module or ""))
        return modules


class RegexImportStrategy(ImportStrategy):
    """Regex import extraction for JavaScript, TypeScript and Python."""

    name = "regex"

    def supports(self, extension: str) -> bool:
        return extension in JS_EXTENSIONS or extension in PY_EXTENSIONS

    def extract(self, extension: str, content: str) -> list[str] | None:
        if extension in JS_EXTENSIONS:
            return [m.group(1) for pattern in _JS_PATTERNS for m in pattern.finditer(content)]
        if extension in PY_EXTENSIONS:
            modules: list[str] = []
            for m in _PY_PATTERNS[0].finditer(content):
                modules.extend(name.strip() for name in m.group(1).split(","))
            modules.extend(m.group(1) for m in _PY_PATTERNS[1].finditer(content))
            return modules
        return []


class DependencyAnalyzer:
    """Runs the structured strategies first and the fallback last.

    Args:
        structured: Strategies backed by a real parser.
        fallback: Strategy used when no structured strategy produced a result.
    """

    def __init__(
        self,
        structured: Sequence[ImportStrategy] | None = None,
        fallback: ImportStrategy | None = None,
    ) -> None:
        self._structured = list(structured) if structured is not None else [PythonAstStrategy()]
        self._fallback = fallback or RegexImportStrategy()

    def analyze(self, extension: str, content: str) -> tuple[str, ...]:
        """Extract deduplicated import references in source order."""
        for strategy in self._structured:
            if strategy.supports(extension):
                found = strategy.extract(extension, content)
                if found is not None:
                    return tuple(dict.fromkeys(found))
        if self._fallback.supports(extension):
            return tuple(dict.fromkeys(self._fallback.extract(extension, content) or ()))
        return ()
