"""Pytest configuration and shared fixtures.

This module contains fixtures used across all test modules.
"""

from collections.abc import Callable
from pathlib import Path

import pytest
from digestctl.core.config import DigestConfig

TreeFactory = Callable[[dict[str, str | bytes]], Path]


@pytest.fixture
def make_tree(tmp_path: Path) -> TreeFactory:
    """Create files below a fresh ``root`` directory.

    Keys are POSIX paths relative to the root, values are text or bytes.
    """

    def factory(files: dict[str, str | bytes]) -> Path:
        root = tmp_path / "root"
        root.mkdir(exist_ok=True)
        for rel, content in files.items():
            path = root / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            if isinstance(content, bytes):
                path.write_bytes(content)
            else:
                path.write_text(content)
        return root

    return factory


@pytest.fixture
def plain_config() -> DigestConfig:
    """Config without default excludes, so only the test's rules apply."""
    return DigestConfig(exclude_patterns=())


@pytest.fixture
def include_exclude_tree(make_tree: TreeFactory) -> Path:
    """src/ tree with an excluded and an included subdirectory."""
    return make_tree(
        {
            "src/a.js": "export const a = 1;\n",
            "src/exclude/b.js": "export const b = 2;\n",
            "src/include/c.js": "export const c = 3;\n",
        }
    )
