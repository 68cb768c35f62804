"""Digest assembly.

Selected files are sorted by relative path, turned into one task each and
run through the bounded worker pool. Results are folded in selection order,
never completion order. A task never raises: its failures become an
``ERROR:`` body plus a recorded ``FileError``.

After assembly the redaction pass rewrites every part that reaches the
output and the document is rebuilt from those parts. A final guard makes
sure the tree block still leads human-readable output.
"""

import functools
import logging
import time
import traceback
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from digestctl.assembly.content import ContentReader, render_binary
from digestctl.assembly.formatters import JsonFormatter, OutputFormatter, get_formatter
from digestctl.assembly.handlers import ContentHandler, ContentHandlerRegistry, TokenizerRegistry
from digestctl.assembly.imports import DependencyAnalyzer
from digestctl.assembly.models import DigestResult, FileError, FileTaskResult, OutputObject
from digestctl.assembly.redaction import Redactor
from digestctl.assembly.summary import build_error_section, build_summary, render_tree
from digestctl.assembly.tokens import TokenEstimator, format_estimate, limit_warning
from digestctl.core.cancellation import CancellationToken
from digestctl.core.config import DigestConfig
from digestctl.core.errors import CancelReason, OperationCancelledError
from digestctl.core.overrides import (
    WARN_THRESHOLD,
    AutoApprovePrompter,
    OverridePrompter,
    OverrideState,
    QuotaKind,
    ThresholdUsage,
)
from digestctl.core.pool import run_pool
from digestctl.core.progress import DebouncedProgress, ProgressEvent, ProgressSink
from digestctl.traversal.models import ContentNode, TraversalResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class _RedactedParts:
    """Redacted copies of every digest part that reaches the output."""

    objects: list[OutputObject]
    summary: str
    tree: str
    warnings: list[str]
    metadata: dict[str, Any]
    count: int


def dedupe_errors(errors: Sequence[FileError]) -> list[FileError]:
    """Drop repeated ``(path, message)`` pairs, keeping the first."""
    seen: dict[tuple[str, str], FileError] = {}
    for error in errors:
        seen.setdefault((error.path, error.message), error)
    return list(seen.values())


class AssemblyPipeline:
    """Reads selected files concurrently and assembles the digest.

    Args:
        prompter: Collaborator consulted when the token budget reaches 80%.
        progress_sink: Receiver of debounced progress events.
        handlers: Registry of content handlers.
        tokenizers: Registry of named tokenizers.
        reader: File content reader.
        analyzer: Dependency extractor.
        estimator: Fallback token estimator.
        clock: Monotonic clock for debouncing and timing.
    """

    def __init__(
        self,
        *,
        prompter: OverridePrompter | None = None,
        progress_sink: ProgressSink | None = None,
        handlers: ContentHandlerRegistry | None = None,
        tokenizers: TokenizerRegistry | None = None,
        reader: ContentReader | None = None,
        analyzer: DependencyAnalyzer | None = None,
        estimator: TokenEstimator | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._prompter: OverridePrompter = prompter or AutoApprovePrompter()
        self._progress_sink = progress_sink
        self._handlers = handlers or ContentHandlerRegistry()
        self._tokenizers = tokenizers or TokenizerRegistry.with_defaults()
        self._reader = reader or ContentReader()
        self._analyzer = analyzer or DependencyAnalyzer()
        self._estimator = estimator or TokenEstimator()
        self._clock = clock

    def generate(
        self,
        selected_files: Sequence[ContentNode],
        config: DigestConfig,
        format_plugins: Sequence[ContentHandler] = (),
        output_format: str | None = None,
        *,
        traversal: TraversalResult | None = None,
        token: CancellationToken | None = None,
    ) -> DigestResult:
        """Build a digest from selected file nodes.

        Args:
            selected_files: File nodes to include; directories are ignored.
            config: Configuration snapshot.
            format_plugins: Content handlers consulted before the registry.
            output_format: Format name; defaults to ``config.output_format``.
            traversal: Traversal result the selection came from, used for
                the tree and statistics.
            token: Optional cancellation token.

        Returns:
            The assembled digest.

        Raises:
            ValueError: If the output format is unknown.
            OperationCancelledError: If cancelled or the token override is
                declined.
        """
        started = self._clock()
        formatter = get_formatter(output_format or config.output_format)
        files = sorted((n for n in selected_files if not n.is_directory), key=lambda n: n.rel_path)
        handlers = ContentHandlerRegistry([*format_plugins, *self._handlers.handlers])

        warnings: list[str] = list(traversal.stats.warnings) if traversal is not None else []
        results = self._run_tasks(files, config, formatter, handlers, warnings, token)

        errors = dedupe_errors([r.error for r in results if r.error is not None])
        for error in errors:
            logger.error("Failed to process %s: %s", error.path, error.message)

        token_estimate = sum(r.token_cost for r in results)
        over_limit = limit_warning(token_estimate, config.token_limit)
        if over_limit:
            warnings.append(over_limit)

        tree = render_tree(files, config, traversal.nodes if traversal is not None else None)
        summary = build_summary(
            config=config,
            files=files,
            token_estimate=format_estimate(token_estimate),
            output_format=formatter.name,
            generated_at=datetime.now(UTC),
            stats=traversal.stats if traversal is not None else None,
            warnings=warnings,
        )
        summary += build_error_section(
            [(e.path, e.message) for e in errors],
            markdown=formatter.name == "markdown",
        )

        digest = DigestResult(
            summary=summary,
            tree=tree,
            content="",
            output_format=formatter.name,
            output_objects=[OutputObject(r.header, r.body, r.imports) for r in results],
            warnings=warnings,
            token_estimate=token_estimate,
            errors=errors,
        )
        digest.metadata = self._build_metadata(digest, files, results, config, traversal)

        leading = self._leading_block(digest, formatter, config)
        self._rebuild(digest, formatter, config, leading)
        leading = self._apply_redaction(digest, formatter, config, leading)
        self._ensure_tree(digest, formatter, config, leading)

        digest.metadata["redaction_applied"] = digest.redaction_applied
        digest.metadata["duration_ms"] = int((self._clock() - started) * 1000)
        if formatter.name == "json" and config.include_metadata:
            self._rebuild(digest, formatter, config, leading)
        logger.debug(
            "Generated %s digest of %d files (%d tokens, %d errors)",
            formatter.name,
            len(files),
            token_estimate,
            len(errors),
        )
        return digest

    # =========================================================================
    # Per-file tasks
    # =========================================================================

    def _run_tasks(
        self,
        files: Sequence[ContentNode],
        config: DigestConfig,
        formatter: OutputFormatter,
        handlers: ContentHandlerRegistry,
        warnings: list[str],
        token: CancellationToken | None,
    ) -> list[FileTaskResult]:
        state = OverrideState()
        progress = DebouncedProgress(
            self._progress_sink,
            interval_ms=config.progress_interval_ms,
            clock=self._clock,
        )
        tasks = [
            functools.partial(self._process_file, index, node, config, formatter, handlers)
            for index, node in enumerate(files)
        ]
        running_tokens = 0
        completed = 0

        def on_result(index: int, result: FileTaskResult) -> None:
            nonlocal running_tokens, completed
            running_tokens += result.token_cost
            completed += 1
            self._check_token_budget(running_tokens, config, state, warnings)
            progress.update(
                ProgressEvent(
                    op="digest",
                    percent=completed * 100 / len(tasks),
                    message=f"Processed {completed}/{len(tasks)} files",
                )
            )

        results = run_pool(tasks, concurrency=config.concurrency, token=token, on_result=on_result)
        progress.update(ProgressEvent(op="digest", mode="complete", percent=100.0, message="Digest assembled"))
        progress.flush()
        return results

    def _process_file(
        self,
        index: int,
        node: ContentNode,
        config: DigestConfig,
        formatter: OutputFormatter,
        handlers: ContentHandlerRegistry,
    ) -> FileTaskResult:
        """Read, render and measure one file. Never raises."""
        header = formatter.build_header(node, config)
        imports: tuple[str, ...] = ()
        error: FileError | None = None
        try:
            handler = handlers.resolve(node)
            if handler is not None:
                output = handler.handle(node, config)
                if isinstance(output, bytes):
                    body = render_binary(output, config.binary_file_policy).text
                else:
                    body = str(output)
                source = body
            else:
                content = self._reader.read(node, config)
                body = formatter.build_body(content, node, config)
                source = "" if content.is_binary else content.text
            if config.analyze_dependencies and source:
                imports = self._analyzer.analyze(node.extension, source)
        except Exception as e:
            message = str(e) or e.__class__.__name__
            error = FileError(path=node.rel_path, message=message, stack=traceback.format_exc())
            body = f"ERROR: {message}"

        return FileTaskResult(
            index=index,
            rel_path=node.rel_path,
            header=header,
            body=body,
            token_cost=self._count_tokens(header + body, config),
            imports=imports,
            error=error,
        )

    def _count_tokens(self, text: str, config: DigestConfig) -> int:
        tokenizer = self._tokenizers.get(config.token_model)
        if tokenizer is not None:
            try:
                return int(tokenizer(text, config))
            except Exception as e:
                logger.warning("Tokenizer %s failed, using estimate: %s", config.token_model, e)
        return self._estimator.estimate(text, config.token_model, config.token_divisor_overrides)

    def _check_token_budget(
        self,
        running_tokens: int,
        config: DigestConfig,
        state: OverrideState,
        warnings: list[str],
    ) -> None:
        """Consult the prompter once when the budget reaches 80%.

        Raises:
            OperationCancelledError: If the prompter declines.
        """
        if config.token_limit <= 0 or state.warned_tokens:
            return
        if running_tokens / config.token_limit < WARN_THRESHOLD:
            return
        state.warned_tokens = True
        usage = ThresholdUsage(QuotaKind.TOKENS, running_tokens, config.token_limit)
        if not self._prompter.prompt_for_token_override(usage):
            raise OperationCancelledError(CancelReason.TOKENS_DECLINED, "Digest cancelled at token limit")
        warnings.append(f"Approaching token limit: {usage.percent}%")

    # =========================================================================
    # Assembly
    # =========================================================================

    def _build_metadata(
        self,
        digest: DigestResult,
        files: Sequence[ContentNode],
        results: Sequence[FileTaskResult],
        config: DigestConfig,
        traversal: TraversalResult | None,
    ) -> dict[str, Any]:
        return {
            "format": digest.output_format,
            "generated_at": datetime.now(UTC).isoformat(timespec="seconds"),
            "files": len(files),
            "total_size": sum(f.size for f in files),
            "token_estimate": digest.token_estimate,
            "limits": {
                "max_file_size": config.max_file_size,
                "max_files": config.max_files,
                "max_total_size_bytes": config.max_total_size_bytes,
                "max_directory_depth": config.max_directory_depth,
                "token_limit": config.token_limit,
            },
            "stats": traversal.stats.to_dict() if traversal is not None else None,
            "imports": {r.rel_path: list(r.imports) for r in results if r.imports},
            "errors": len(digest.errors),
        }

    def _leading_block(self, digest: DigestResult, formatter: OutputFormatter, config: DigestConfig) -> str:
        if isinstance(formatter, JsonFormatter):
            return ""
        summary = digest.summary if config.include_summary else ""
        return formatter.render_leading(summary, digest.tree)

    def _rebuild(self, digest: DigestResult, formatter: OutputFormatter, config: DigestConfig, leading: str) -> None:
        """Derive chunks and content from the current output objects."""
        if isinstance(formatter, JsonFormatter):
            digest.chunks = []
            digest.content = formatter.render_document(
                summary=digest.summary,
                tree=digest.tree,
                files=digest.output_objects,
                warnings=digest.warnings,
                metadata=digest.metadata if config.include_metadata else None,
            )
            return
        chunks = [formatter.render_chunk(item) for item in digest.output_objects]
        if leading:
            chunks.insert(0, leading)
        digest.chunks = chunks
        digest.content = formatter.finalize(chunks, config)

    def _apply_redaction(
        self,
        digest: DigestResult,
        formatter: OutputFormatter,
        config: DigestConfig,
        leading: str,
    ) -> str:
        """Redact secrets in place and return the (possibly redacted) leading block.

        Failures are recorded as a warning and leave the digest unredacted.
        """
        digest.redaction_applied = False
        if config.show_redacted:
            return leading

        try:
            redactor = Redactor(config.redaction_patterns, config.redaction_placeholder)
            digest.warnings.extend(f"Invalid redaction pattern: {p}" for p in redactor.invalid_patterns)
            parts = self._redact_parts(digest, redactor, formatter, fallback=False)
            if parts.count == 0 and redactor.has_custom_patterns:
                parts = self._redact_parts(digest, redactor, formatter, fallback=True)
        except Exception as e:
            logger.warning("Redaction failed: %s", e)
            digest.warnings.append(f"Redaction failed: {e}")
            return leading

        if parts.count == 0:
            return leading
        digest.output_objects = parts.objects
        digest.summary = parts.summary
        digest.tree = parts.tree
        digest.warnings = parts.warnings
        digest.metadata = parts.metadata
        digest.redaction_applied = True
        redacted_leading = self._leading_block(digest, formatter, config) if leading else ""
        self._rebuild(digest, formatter, config, redacted_leading)
        logger.debug("Redacted %d secrets", parts.count)
        return redacted_leading

    def _redact_parts(
        self,
        digest: DigestResult,
        redactor: Redactor,
        formatter: OutputFormatter,
        *,
        fallback: bool,
    ) -> _RedactedParts:
        total = 0
        objects: list[OutputObject] = []
        is_json = isinstance(formatter, JsonFormatter)
        for item in digest.output_objects:
            header = redactor.redact(item.header, fallback=fallback)
            if is_json:
                body = redactor.redact_document(item.body, fallback=fallback)
            else:
                body = redactor.redact(item.body, fallback=fallback)
            total += header.count + body.count
            objects.append(OutputObject(header.content, body.content, item.imports))

        summary = redactor.redact(digest.summary, fallback=fallback)
        tree = redactor.redact(digest.tree, fallback=fallback)
        warnings: list[str] = []
        for warning in digest.warnings:
            outcome = redactor.redact(warning, fallback=fallback)
            warnings.append(outcome.content)
            total += outcome.count
        metadata, metadata_count = redactor.redact_value(digest.metadata, fallback=fallback)
        total += summary.count + tree.count + metadata_count
        return _RedactedParts(objects, summary.content, tree.content, warnings, metadata, total)

    def _ensure_tree(
        self,
        digest: DigestResult,
        formatter: OutputFormatter,
        config: DigestConfig,
        leading: str,
    ) -> None:
        """Put the tree block back at the front if post-processing lost it."""
        if isinstance(formatter, JsonFormatter) or config.include_tree == "none" or not digest.tree:
            return
        if digest.chunks and digest.tree in digest.chunks[0]:
            return

        block = formatter.render_tree_block(digest.tree) + "\n"
        if leading and digest.chunks:
            digest.chunks[0] = f"{block}\n{digest.chunks[0]}"
        else:
            digest.chunks.insert(0, block)
        digest.content = formatter.finalize(digest.chunks, config)
        logger.debug("Restored tree block at the start of the digest")
