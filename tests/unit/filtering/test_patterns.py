"""Unit tests for pattern merging, presets and filter decisions."""

import warnings

import pytest
from digestctl.core.config import DigestConfig
from digestctl.filtering.patterns import PatternFilterService, PatternSet
from digestctl.filtering.presets import CODE_PATTERNS, EMPTY_PRESET, FILTER_PRESETS, preset_key


@pytest.fixture
def service() -> PatternFilterService:
    return PatternFilterService()


class TestPresets:
    """Tests for preset resolution."""

    @pytest.mark.parametrize("name", ["code-only", "codeOnly", "CODE_ONLY", " code-only "])
    def test_loose_names(self, service: PatternFilterService, name: str) -> None:
        """Preset names ignore case, dashes and underscores."""
        assert service.resolve_preset(name) == FILTER_PRESETS["codeonly"]

    def test_unknown_preset_is_empty(self, service: PatternFilterService) -> None:
        """Unknown presets contribute no patterns."""
        assert service.resolve_preset("everything") == EMPTY_PRESET

    def test_code_only_contents(self) -> None:
        """code-only includes one glob per extension and excludes docs."""
        preset = FILTER_PRESETS[preset_key("code-only")]
        assert "**/*.py" in preset.include
        assert "**/*.yaml" in preset.include
        assert len(preset.include) == len(CODE_PATTERNS)
        assert "docs/**" in preset.exclude
        assert "**/*.ipynb" in preset.exclude

    def test_combined_presets(self, service: PatternFilterService) -> None:
        """Several presets are concatenated in order."""
        combined = service.resolve_presets(["docs-only", "tests-only"])
        assert combined.include[:2] == ("**/*.md", "**/*.rst")
        assert "**/tests/**" in combined.include


class TestMergePatterns:
    """Tests for PatternFilterService.merge_patterns."""

    def test_negated_include_becomes_exclude(self, service: PatternFilterService) -> None:
        """!p in the include list excludes p."""
        merged = service.merge_patterns(["src/**", "!src/gen/**"], ["*.log"])

        assert merged.include == ("src/**",)
        assert merged.exclude == ("*.log", "src/gen/**")
        assert "src/gen/**" in merged.negations
        assert merged.include_negations == ("src/gen/**",)

    def test_overlap_removed_from_exclude(self, service: PatternFilterService) -> None:
        """A pattern in both lists stays an include."""
        merged = service.merge_patterns(["*.md"], ["*.md", "*.log"])

        assert merged.include == ("*.md",)
        assert merged.exclude == ("*.log",)

    def test_explicit_negation_survives_overlap(self, service: PatternFilterService) -> None:
        """Explicit negations are never dropped by overlap removal."""
        merged = service.merge_patterns(["keep.log"], ["keep.log"], explicit_negations=["keep.log"])

        assert "keep.log" in merged.exclude

    def test_normalization(self, service: PatternFilterService) -> None:
        """Separators are normalized; blanks and duplicates dropped."""
        merged = service.merge_patterns(["src\\**", "src/**", "  ", ""], [" *.log ", "*.log"])

        assert merged.include == ("src/**",)
        assert merged.exclude == ("*.log",)

    def test_preset_merged_before_user_patterns(self, service: PatternFilterService) -> None:
        """Preset patterns come first."""
        merged = service.merge_patterns(["extra/**"], [], preset=service.resolve_preset("docs-only"))
        assert merged.include == ("**/*.md", "**/*.rst", "extra/**")


class TestPatternSet:
    """Tests for PatternSet decisions."""

    def test_include_wins_over_exclude_for_files(self) -> None:
        """A matching include keeps a file that an exclude also matches."""
        patterns = PatternSet(["src/**"], ["src/a.js"])
        assert patterns.keep_file("src/a.js")

    def test_include_required_when_configured(self) -> None:
        """With includes, unmatched files are dropped."""
        patterns = PatternSet(["src/**"])
        assert not patterns.keep_file("README.md")

    def test_exclude_without_includes(self) -> None:
        """Without includes, excludes drop files."""
        patterns = PatternSet((), ["*.log"])
        assert not patterns.keep_file("a.log")
        assert patterns.keep_file("a.txt")

    def test_exclusion_exception(self) -> None:
        """! entries in the exclude list rescue paths."""
        patterns = PatternSet((), ["*.log", "!keep.log"])
        assert patterns.keep_file("keep.log")
        assert not patterns.keep_file("other.log")

    def test_negated_include_vetoes_include(self) -> None:
        """An include negation drops a file that an include matches."""
        patterns = PatternSet(["src/**"], include_negations=["**/*.test.js"])
        assert patterns.keep_file("src/a.js")
        assert not patterns.keep_file("src/a.test.js")

    def test_negated_include_from_config(self, service: PatternFilterService) -> None:
        """A !pattern in the configured includes survives into the file decision."""
        config = DigestConfig(include_patterns=("src/**", "!**/*.test.js"))
        patterns = service.build_pattern_set(config)

        assert patterns.keep_file("src/a.js")
        assert not patterns.keep_file("src/a.test.js")

    def test_compiles_without_deprecation_warning(self) -> None:
        """Include and exclude globs compile without warnings."""
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            patterns = PatternSet(["src/**"], ["*.log"])

        assert patterns.keep_file("src/a.py")

    def test_ignored_file_dropped(self) -> None:
        """The ignore verdict always drops a file."""
        patterns = PatternSet(["**/*.py"])
        assert not patterns.keep_file("a.py", ignored=True)

    def test_exclude_directory(self) -> None:
        """An exclude glob ending in /** prunes its directory."""
        patterns = PatternSet(["src/**"], ["src/exclude/**"])
        assert patterns.exclude_directory("src/exclude")
        assert not patterns.exclude_directory("src/include")

    def test_may_target_inside(self) -> None:
        """Only includes with a literal prefix target a directory."""
        assert PatternSet(["src/include/**"]).may_target_inside("src")
        assert PatternSet(["src/include/**"]).may_target_inside("src/include/deep")
        assert not PatternSet(["src/include/**"]).may_target_inside("other")
        assert not PatternSet(["**/*.py"]).may_target_inside("src")

    def test_build_from_config(self, service: PatternFilterService) -> None:
        """Presets and user patterns from the config are combined."""
        config = DigestConfig(filter_presets=("code-only",), exclude_patterns=("build/**",))
        patterns = service.build_pattern_set(config)

        assert patterns.keep_file("app/main.py")
        assert not patterns.keep_file("README.md")
        assert patterns.exclude_directory("build")
