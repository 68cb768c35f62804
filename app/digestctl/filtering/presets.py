"""Built-in filter presets.

A preset is a named bundle of include and exclude globs. Names are matched
loosely: ``code-only``, ``code_only`` and ``codeOnly`` select the same preset.
"""

from dataclasses import dataclass

CODE_EXTENSIONS: tuple[str, ...] = (
    "js",
    "ts",
    "jsx",
    "tsx",
    "py",
    "java",
    "go",
    "cpp",
    "c",
    "cs",
    "rb",
    "php",
    "rs",
    "swift",
    "kt",
    "m",
    "scala",
    "sh",
    "pl",
    "dart",
    "lua",
    "groovy",
    "sql",
    "html",
    "css",
    "scss",
    "json",
    "xml",
    "yml",
    "yaml",
)

DOC_PATTERNS: tuple[str, ...] = ("**/*.md", "**/*.rst")
TEST_PATTERNS: tuple[str, ...] = ("**/test.*", "**/spec.*", "**/tests/**")
NOTEBOOK_PATTERNS: tuple[str, ...] = ("**/*.ipynb",)
CODE_PATTERNS: tuple[str, ...] = tuple(f"**/*.{ext}" for ext in CODE_EXTENSIONS)


@dataclass(frozen=True, slots=True)
class PresetPatterns:
    """Include and exclude globs of a preset."""

    include: tuple[str, ...] = ()
    exclude: tuple[str, ...] = ()

    def __add__(self, other: "PresetPatterns") -> "PresetPatterns":
        return PresetPatterns(
            include=self.include + other.include,
            exclude=self.exclude + other.exclude,
        )


EMPTY_PRESET = PresetPatterns()

FILTER_PRESETS: dict[str, PresetPatterns] = {
    "default": EMPTY_PRESET,
    "all": EMPTY_PRESET,
    "codeonly": PresetPatterns(
        include=CODE_PATTERNS,
        exclude=("docs/**", *DOC_PATTERNS, *NOTEBOOK_PATTERNS),
    ),
    "docsonly": PresetPatterns(
        include=DOC_PATTERNS,
        exclude=(*CODE_PATTERNS, *NOTEBOOK_PATTERNS, *TEST_PATTERNS),
    ),
    "testsonly": PresetPatterns(
        include=TEST_PATTERNS,
        exclude=(*DOC_PATTERNS, "docs/**", *NOTEBOOK_PATTERNS),
    ),
}


def preset_key(name: str) -> str:
    """Normalize a preset name for lookup."""
    return name.strip().lower().replace("-", "").replace("_", "")
