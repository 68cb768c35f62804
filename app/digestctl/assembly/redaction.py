"""Secret redaction.

Built-in rules cover AWS access key ids, JWT-shaped strings, ``key=``/
``token:``/``secret=`` style assignments and high-entropy strings on lines
that mention a secret. Users may add their own patterns, written either as
``/body/flags``, as a raw regex, or as a literal string.

Redaction is a fixed point: matched text is replaced by a placeholder that no
rule matches again, so redacting twice changes nothing.
"""

import json
import logging
import math
import re
from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_PLACEHOLDER = "[REDACTED]"
ENTROPY_THRESHOLD = 3.5

_CONTEXT = re.compile(r"(?i)secret|token|passw|api[_-]?key|credential|auth|private[_-]?key")
_REGEX_HINT = re.compile(r"[\\^$\[\]()*+?{}|]")
_SLASH_FORM = re.compile(r"/(.+)/([a-z]*)", re.DOTALL)
_SHORTHAND = (
    (re.compile(r"(?<![\\\w])w\+"), "[A-Za-z0-9_]+"),
    (re.compile(r"(?<![\\\w])d\+"), "[0-9]+"),
    (re.compile(r"(?<![\\\w])s\+"), r"[ \t]+"),
)
_FLAGS = {"i": re.IGNORECASE, "m": re.MULTILINE, "s": re.DOTALL, "x": re.VERBOSE}


@dataclass(frozen=True, slots=True)
class RedactionRule:
    """One secret pattern.

    Attributes:
        name: Rule identifier.
        pattern: Compiled regex.
        group: Group whose text is replaced (0 = whole match).
        guarded: Skip targets that look like paths or booleans.
        context: Only apply on lines matching this regex.
        min_entropy: Only redact targets at least this random.
    """

    name: str
    pattern: re.Pattern[str]
    group: int = 0
    guarded: bool = False
    context: re.Pattern[str] | None = None
    min_entropy: float = 0.0


@dataclass(frozen=True, slots=True)
class RedactionOutcome:
    """Redacted text and how many replacements were made."""

    content: str
    applied: bool
    count: int = 0


BUILTIN_RULES: tuple[RedactionRule, ...] = (
    RedactionRule("aws-access-key", re.compile(r"\b(AKIA[0-9A-Z]{16})\b"), group=1),
    RedactionRule(
        "jwt",
        re.compile(r"\b(eyJ[A-Za-z0-9_=-]+\.[A-Za-z0-9_=-]+\.[A-Za-z0-9_.+/=-]+)"),
        group=1,
    ),
    RedactionRule(
        "assignment",
        re.compile(
            r"(?i)(?:key|token|secret|password|passwd|pwd|pw)['\"]?\s*[:=]\s*['\"]?([A-Za-z0-9/+=_-]{16,})['\"]?"
        ),
        group=1,
        guarded=True,
    ),
    RedactionRule(
        "high-entropy",
        re.compile(r"(?<![A-Za-z0-9/+_-])([A-Za-z0-9+/_-]{20,}={0,2})(?![A-Za-z0-9/+=_-])"),
        group=1,
        guarded=True,
        context=_CONTEXT,
        min_entropy=ENTROPY_THRESHOLD,
    ),
)

LOOSE_ASSIGNMENT = RedactionRule(
    "loose-assignment",
    re.compile(
        r"(?i)([A-Za-z_][\w.-]*(?:key|token|secret|pass(?:word)?|auth|credential)[\w.-]*)"
        r"['\"]?\s*[:=]\s*['\"]?([^\s'\",;]{8,})"
    ),
    group=2,
    guarded=True,
)


def shannon_entropy(text: str) -> float:
    """Bits of entropy per character."""
    if not text:
        return 0.0
    length = len(text)
    return -sum(count / length * math.log2(count / length) for count in Counter(text).values())


def expand_shorthand(pattern: str) -> str:
    """Expand bare ``w+``/``d+``/``s+`` written without their backslash."""
    for shorthand, replacement in _SHORTHAND:
        pattern = shorthand.sub(lambda _m, r=replacement: r, pattern)
    return pattern


def compile_user_pattern(text: str, *, loose: bool = False) -> re.Pattern[str]:
    """Compile a user-supplied secret pattern.

    Args:
        text: ``/body/flags``, a regex, or a literal string.
        loose: Expand shorthand classes and match case-insensitively.

    Returns:
        The compiled pattern.

    Raises:
        re.error: If the pattern is not a valid regex.
    """
    flags = 0
    slash = _SLASH_FORM.fullmatch(text)
    if slash:
        body = slash.group(1)
        for flag in slash.group(2):
            flags |= _FLAGS.get(flag, 0)
    elif _REGEX_HINT.search(text) or loose:
        body = text
    else:
        body = re.escape(text)
    if loose:
        body = expand_shorthand(body)
        flags |= re.IGNORECASE
    return re.compile(body, flags)


class Redactor:
    """Applies built-in and user secret rules to text.

    Args:
        patterns: User patterns added after the built-in rules.
        placeholder: Replacement text.
    """

    def __init__(self, patterns: Iterable[str] = (), placeholder: str = DEFAULT_PLACEHOLDER) -> None:
        self.placeholder = placeholder
        self.invalid_patterns: list[str] = []
        user_patterns = [p for p in patterns if p]

        user_rules: list[RedactionRule] = []
        loose_rules: list[RedactionRule] = []
        for index, text in enumerate(user_patterns):
            try:
                user_rules.append(RedactionRule(f"user-{index}", compile_user_pattern(text)))
            except re.error as e:
                logger.warning("Invalid redaction pattern %r: %s", text, e)
                self.invalid_patterns.append(text)
            try:
                loose_rules.append(RedactionRule(f"user-loose-{index}", compile_user_pattern(text, loose=True)))
            except re.error:
                logger.debug("Redaction pattern %r has no loose form", text)

        self.has_custom_patterns = bool(user_patterns)
        self._rules = BUILTIN_RULES + tuple(user_rules)
        self._fallback_rules = tuple(loose_rules) + (LOOSE_ASSIGNMENT,)

    def redact(self, text: str, *, fallback: bool = False) -> RedactionOutcome:
        """Redact secrets in plain text.

        Args:
            text: Text to scan.
            fallback: Use the permissive fallback rules instead of the primary ones.

        Returns:
            The redaction outcome.
        """
        total = 0
        for rule in self._fallback_rules if fallback else self._rules:
            text, count = self._apply(rule, text)
            total += count
        return RedactionOutcome(text, total > 0, total)

    def redact_document(self, text: str, *, fallback: bool = False) -> RedactionOutcome:
        """Redact text that may itself be a JSON document.

        Plain-text rules run first. If the text parses as JSON, every nested
        string is redacted as well, keyed strings together with their key,
        since quoting and escaping can hide secrets from the text rules.
        """
        outcome = self.redact(text, fallback=fallback)
        stripped = outcome.content.lstrip()
        if not stripped.startswith(("{", "[")):
            return outcome
        try:
            document = json.loads(outcome.content)
        except ValueError:
            return outcome

        redacted, count = self._redact_value(document, None, fallback)
        if count == 0:
            return outcome
        content = json.dumps(redacted, indent=2, ensure_ascii=False)
        return RedactionOutcome(content, True, outcome.count + count)

    def redact_value(self, value: Any, *, fallback: bool = False) -> tuple[Any, int]:
        """Redact every string inside a JSON-like value, mapping keys included.

        Returns:
            The redacted copy and the number of replacements.
        """
        return self._redact_value(value, None, fallback)

    def _redact_value(self, value: Any, key: str | None, fallback: bool) -> tuple[Any, int]:
        if isinstance(value, dict):
            total = 0
            result: dict[str, Any] = {}
            for k, v in value.items():
                name = self.redact(str(k), fallback=fallback)
                result[name.content], count = self._redact_value(v, str(k), fallback)
                total += name.count + count
            return result, total
        if isinstance(value, list):
            total = 0
            items: list[Any] = []
            for item in value:
                redacted, count = self._redact_value(item, key, fallback)
                items.append(redacted)
                total += count
            return items, total
        if not isinstance(value, str):
            return value, 0

        if key:
            prefix = f"{key}: "
            keyed = self.redact(prefix + value, fallback=fallback)
            if keyed.applied and keyed.content.startswith(prefix):
                return keyed.content[len(prefix) :], keyed.count
        plain = self.redact(value, fallback=fallback)
        return plain.content, plain.count

    def _placeholder_spans(self, text: str) -> list[tuple[int, int]]:
        spans: list[tuple[int, int]] = []
        start = text.find(self.placeholder)
        while start != -1:
            end = start + len(self.placeholder)
            spans.append((start, end))
            start = text.find(self.placeholder, end)
        return spans

    def _apply(self, rule: RedactionRule, text: str) -> tuple[str, int]:
        count = 0
        spans: list[tuple[int, int]] = []

        def replace(match: re.Match[str]) -> str:
            nonlocal count
            target = match.group(rule.group)
            if not target or self._skip(rule, target):
                return match.group(0)
            # placeholders from earlier rules or runs are never rewrapped
            first, last = match.span(rule.group)
            if any(lo < last and first < hi for lo, hi in spans):
                return match.group(0)
            start = match.start(rule.group) - match.start(0)
            end = match.end(rule.group) - match.start(0)
            whole = match.group(0)
            count += 1
            return whole[:start] + self.placeholder + whole[end:]

        if rule.context is None:
            spans = self._placeholder_spans(text)
            return rule.pattern.sub(replace, text), count

        lines = text.splitlines(keepends=True)
        for index, line in enumerate(lines):
            if rule.context.search(line):
                spans = self._placeholder_spans(line)
                lines[index] = rule.pattern.sub(replace, line)
        return "".join(lines), count

    @staticmethod
    def _skip(rule: RedactionRule, target: str) -> bool:
        if rule.guarded:
            if "/" in target or "\\" in target or target.lower() in ("true", "false"):
                return True
        return rule.min_entropy > 0 and shannon_entropy(target) < rule.min_entropy


def redact_secrets(
    text: str,
    patterns: Iterable[str] = (),
    placeholder: str = DEFAULT_PLACEHOLDER,
) -> RedactionOutcome:
    """Redact secrets in a string, trying the fallback rules if needed.

    Args:
        text: Text to scan.
        patterns: User patterns.
        placeholder: Replacement text.

    Returns:
        The redaction outcome.
    """
    redactor = Redactor(patterns, placeholder)
    outcome = redactor.redact(text)
    if not outcome.applied and redactor.has_custom_patterns:
        outcome = redactor.redact(text, fallback=True)
    return outcome
