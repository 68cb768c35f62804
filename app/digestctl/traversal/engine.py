"""Directory traversal under filter rules and resource quotas.

The walk is single-threaded and depth-first. Directory entries are read in
bounded batches; cancellation is polled and progress is reported between
batches. Files pass three quotas in order (per-file size, cumulative size,
file count); the latter two consult an ``OverridePrompter`` once at 80%.
"""

import itertools
import logging
import os
import stat
import time
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from datetime import UTC, datetime

from digestctl.core.cancellation import CancellationToken
from digestctl.core.config import DigestConfig
from digestctl.core.errors import CancelReason, InvalidRootError, OperationCancelledError, PathTraversalError
from digestctl.core.overrides import (
    WARN_THRESHOLD,
    AutoApprovePrompter,
    OverridePrompter,
    OverrideState,
    QuotaKind,
    ThresholdUsage,
)
from digestctl.core.progress import DebouncedProgress, ProgressEvent, ProgressSink
from digestctl.filtering.ignore import IgnoreMatcher
from digestctl.filtering.patterns import PatternFilterService, PatternSet
from digestctl.traversal.models import (
    ContentNode,
    NodeKind,
    ShallowPage,
    StatsAccumulator,
    TraversalResult,
    sort_nodes,
)

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class _WalkContext:
    """State owned by a single traversal invocation."""

    root: str
    real_root: str
    config: DigestConfig
    matcher: IgnoreMatcher
    patterns: PatternSet
    stats: StatsAccumulator
    overrides: OverrideState
    progress: DebouncedProgress
    token: CancellationToken | None
    halted: bool = False
    visited: set[str] = field(default_factory=set)


@dataclass(frozen=True, slots=True)
class _Entry:
    """A directory entry that passed path, filter and stat checks."""

    path: str
    rel_path: str
    name: str
    kind: NodeKind
    size: int
    mtime: datetime
    ignored: bool


def _mtime(st: os.stat_result) -> datetime:
    return datetime.fromtimestamp(st.st_mtime, tz=UTC)


class TraversalEngine:
    """Walks directory trees into ``ContentNode`` forests.

    The engine itself is stateless between calls; every scan builds its own
    ignore matcher, pattern set, statistics and override state.

    Args:
        prompter: Collaborator consulted at 80% of a quota.
        progress_sink: Receiver of debounced progress events.
        filter_service: Preset and pattern merging service.
        clock: Monotonic clock used for progress debouncing.
    """

    def __init__(
        self,
        *,
        prompter: OverridePrompter | None = None,
        progress_sink: ProgressSink | None = None,
        filter_service: PatternFilterService | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._prompter: OverridePrompter = prompter or AutoApprovePrompter()
        self._progress_sink = progress_sink
        self._filters = filter_service or PatternFilterService()
        self._clock = clock

    # =========================================================================
    # Public API
    # =========================================================================

    def scan_root(
        self,
        root_path: str | os.PathLike[str],
        config: DigestConfig,
        *,
        token: CancellationToken | None = None,
    ) -> TraversalResult:
        """Recursively scan a root directory.

        Literal negations from ignore files are reconciled into the tree
        after the walk.

        Args:
            root_path: Directory to scan.
            config: Configuration snapshot.
            token: Optional cancellation token.

        Returns:
            Node forest and frozen statistics.

        Raises:
            InvalidRootError: If the root is not a directory.
            OperationCancelledError: If the scan is cancelled or an override
                is declined.
        """
        started = self._clock()
        ctx = self._create_context(root_path, config, token)
        nodes = self._walk(ctx, ctx.root, depth=0)
        if config.respect_gitignore:
            self._reconcile_negations(ctx, nodes)
        return self._finish(ctx, nodes, started)

    def scan_directory(
        self,
        dir_path: str | os.PathLike[str],
        config: DigestConfig,
        *,
        root_path: str | os.PathLike[str] | None = None,
        token: CancellationToken | None = None,
    ) -> TraversalResult:
        """Recursively scan a directory below a scan root.

        Relative paths stay relative to ``root_path`` and the ignore files
        of every directory between the root and ``dir_path`` apply.

        Args:
            dir_path: Directory to scan.
            config: Configuration snapshot.
            root_path: Original scan root. Defaults to ``dir_path``.
            token: Optional cancellation token.

        Returns:
            Node forest and frozen statistics.

        Raises:
            InvalidRootError: If either path is not a directory.
            PathTraversalError: If ``dir_path`` lies outside of the root.
            OperationCancelledError: If the scan is cancelled.
        """
        started = self._clock()
        ctx = self._create_context(root_path or dir_path, config, token)
        directory, depth = self._prepare_subdirectory(ctx, dir_path)
        nodes = self._walk(ctx, directory, depth=depth)
        return self._finish(ctx, nodes, started)

    def scan_directory_shallow(
        self,
        dir_path: str | os.PathLike[str],
        config: DigestConfig,
        *,
        offset: int = 0,
        page_size: int | None = None,
        root_path: str | os.PathLike[str] | None = None,
        token: CancellationToken | None = None,
    ) -> ShallowPage:
        """List one directory level, one page at a time.

        Filters apply but quotas do not; directories are returned without
        children.

        Args:
            dir_path: Directory to list.
            config: Configuration snapshot.
            offset: Index of the first entry to return.
            page_size: Entries per page. Defaults to ``config.directory_page_size``.
            root_path: Original scan root. Defaults to ``dir_path``.
            token: Optional cancellation token.

        Returns:
            The requested page and the total number of eligible entries.
        """
        ctx = self._create_context(root_path or dir_path, config, token)
        directory, depth = self._prepare_subdirectory(ctx, dir_path)
        size = page_size or config.directory_page_size

        nodes: list[ContentNode] = []
        for batch in self._iter_batches(ctx, directory):
            for dir_entry in batch:
                entry = self._inspect(ctx, dir_entry)
                if entry is None:
                    continue
                if entry.kind == NodeKind.DIRECTORY:
                    if entry.ignored and not self._should_descend_ignored(ctx, entry):
                        ctx.stats.skipped_by_ignore += 1
                        continue
                elif not ctx.patterns.keep_file(entry.rel_path, entry.ignored):
                    ctx.stats.skipped_by_ignore += 1
                    continue
                nodes.append(self._make_node(entry, depth))

        sort_nodes(nodes)
        start = max(0, offset)
        return ShallowPage(items=nodes[start : start + size], total=len(nodes), offset=start)

    # =========================================================================
    # Setup and teardown
    # =========================================================================

    def _create_context(
        self,
        root_path: str | os.PathLike[str],
        config: DigestConfig,
        token: CancellationToken | None,
    ) -> _WalkContext:
        root = os.path.normpath(os.path.abspath(os.fspath(root_path)))
        if not os.path.isdir(root):
            msg = f"Scan root is not a directory: {root}"
            raise InvalidRootError(msg)

        matcher = IgnoreMatcher(root, ignore_files=config.ignore_files)
        if config.respect_gitignore:
            matcher.load_for_directory(root)
        patterns = self._filters.build_pattern_set(config, matcher.list_explicit_negations())

        return _WalkContext(
            root=root,
            real_root=os.path.realpath(root),
            config=config,
            matcher=matcher,
            patterns=patterns,
            stats=StatsAccumulator(),
            overrides=OverrideState(),
            progress=DebouncedProgress(
                self._progress_sink,
                interval_ms=config.progress_interval_ms,
                clock=self._clock,
            ),
            token=token,
        )

    def _prepare_subdirectory(self, ctx: _WalkContext, dir_path: str | os.PathLike[str]) -> tuple[str, int]:
        """Validate a directory below the root and load its ancestors' ignore files."""
        directory = os.path.normpath(os.path.abspath(os.fspath(dir_path)))
        if not os.path.isdir(directory):
            msg = f"Not a directory: {directory}"
            raise InvalidRootError(msg)
        if not self._within_root(ctx, directory):
            raise PathTraversalError(directory, ctx.root)

        rel = self._relative(ctx, directory)
        if ctx.config.respect_gitignore and rel:
            current = ctx.root
            for segment in rel.split("/"):
                current = os.path.join(current, segment)
                ctx.matcher.load_for_directory(current)
        depth = 0 if not rel else rel.count("/") + 1
        return directory, depth

    def _finish(self, ctx: _WalkContext, nodes: list[ContentNode], started: float) -> TraversalResult:
        sort_nodes(nodes)
        ctx.progress.update(
            ProgressEvent(
                op="scan",
                mode="complete",
                percent=100.0,
                message=f"Scanned {ctx.stats.total_files} files",
            )
        )
        ctx.progress.flush()
        duration_ms = int((self._clock() - started) * 1000)
        stats = ctx.stats.freeze(duration_ms)
        logger.debug(
            "Traversal of %s finished: %d files, %d bytes, %d warnings",
            ctx.root,
            stats.total_files,
            stats.total_size,
            len(stats.warnings),
        )
        return TraversalResult(nodes=nodes, stats=stats)

    # =========================================================================
    # Walking
    # =========================================================================

    def _relative(self, ctx: _WalkContext, path: str) -> str:
        if path == ctx.root:
            return ""
        prefix = ctx.root if ctx.root.endswith(os.sep) else ctx.root + os.sep
        return path[len(prefix) :].replace(os.sep, "/")

    def _within_root(self, ctx: _WalkContext, path: str) -> bool:
        real = os.path.realpath(path)
        try:
            return os.path.commonpath([ctx.real_root, real]) == ctx.real_root
        except ValueError:
            return False

    def _checkpoint(self, ctx: _WalkContext) -> None:
        if ctx.token is not None:
            ctx.token.raise_if_cancelled()

    def _iter_batches(self, ctx: _WalkContext, directory: str) -> Iterator[list[os.DirEntry[str]]]:
        """Yield lists of at most ``read_batch_size`` directory entries."""
        rel = self._relative(ctx, directory) or "."
        try:
            iterator = os.scandir(directory)
        except OSError as e:
            logger.warning("Failed to read directory %s: %s", directory, e)
            ctx.stats.warn(f"Failed to read directory: {rel}")
            return
        with iterator:
            while not ctx.halted:
                self._checkpoint(ctx)
                try:
                    batch = list(itertools.islice(iterator, ctx.config.read_batch_size))
                except OSError as e:
                    logger.warning("Failed to read directory %s: %s", directory, e)
                    ctx.stats.warn(f"Failed to read directory: {rel}")
                    return
                if not batch:
                    return
                yield batch

    def _walk(self, ctx: _WalkContext, directory: str, depth: int) -> list[ContentNode]:
        """Walk one directory level and recurse into subdirectories."""
        if ctx.halted:
            return []
        if depth > ctx.config.max_directory_depth:
            ctx.stats.skipped_by_depth += 1
            ctx.stats.warn(f"Max directory depth reached: {self._relative(ctx, directory)}")
            return []

        self._checkpoint(ctx)
        if ctx.config.respect_gitignore:
            ctx.matcher.load_for_directory(directory)

        nodes: list[ContentNode] = []
        for batch in self._iter_batches(ctx, directory):
            for dir_entry in batch:
                ctx.visited.add(self._relative(ctx, dir_entry.path))
                node = self._visit(ctx, dir_entry, depth)
                if node is not None:
                    nodes.append(node)
                if ctx.halted:
                    break
        sort_nodes(nodes)
        return nodes

    def _visit(self, ctx: _WalkContext, dir_entry: os.DirEntry[str], depth: int) -> ContentNode | None:
        entry = self._inspect(ctx, dir_entry)
        if entry is None:
            return None

        if entry.kind == NodeKind.DIRECTORY:
            if entry.ignored and not self._should_descend_ignored(ctx, entry):
                ctx.stats.skipped_by_ignore += 1
                return None
            children = self._walk(ctx, entry.path, depth + 1)
            if entry.ignored and not children:
                return None
            ctx.stats.directories += 1
            node = self._make_node(entry, depth)
            node.children = children
            return node

        if not ctx.patterns.keep_file(entry.rel_path, entry.ignored):
            ctx.stats.skipped_by_ignore += 1
            return None

        if entry.kind == NodeKind.SYMLINK:
            ctx.stats.symlinks += 1
            return self._make_node(entry, depth)

        if not self._admit_file(ctx, entry):
            return None

        ctx.stats.total_files += 1
        ctx.stats.total_size += entry.size
        ctx.progress.update(
            ProgressEvent(
                op="scan",
                percent=min(100.0, ctx.stats.total_files * 100 / ctx.config.max_files),
                message=f"Scanned {ctx.stats.total_files} files",
            )
        )
        return self._make_node(entry, depth)

    def _inspect(self, ctx: _WalkContext, dir_entry: os.DirEntry[str]) -> _Entry | None:
        """Classify, guard, filter and stat one directory entry.

        Directory exclusion by pattern happens here; file decisions need the
        ignore verdict and are left to the caller.
        """
        path = dir_entry.path
        rel = self._relative(ctx, path)
        try:
            is_symlink = dir_entry.is_symlink()
            is_dir = not is_symlink and dir_entry.is_dir(follow_symlinks=False)
            st = dir_entry.stat(follow_symlinks=False)
        except OSError as e:
            logger.debug("Failed to stat %s: %s", path, e)
            ctx.stats.warn(f"Failed to stat: {rel}")
            return None

        if not self._within_root(ctx, path):
            ctx.stats.warn(f"Path escapes scan root: {rel}")
            return None

        if is_dir:
            if ctx.patterns.exclude_directory(rel):
                ctx.stats.skipped_by_ignore += 1
                return None
            kind = NodeKind.DIRECTORY
            readable = os.access(path, os.R_OK | os.X_OK)
        elif is_symlink:
            kind = NodeKind.SYMLINK
            readable = True
        elif stat.S_ISREG(st.st_mode):
            kind = NodeKind.FILE
            readable = os.access(path, os.R_OK)
        else:
            logger.debug("Skipping special file %s", path)
            return None

        if not readable:
            ctx.stats.warn(f"Unreadable path skipped: {rel}")
            return None

        ignored = ctx.config.respect_gitignore and ctx.matcher.is_ignored(path, is_dir)
        return _Entry(
            path=path,
            rel_path=rel,
            name=dir_entry.name,
            kind=kind,
            size=0 if is_dir else st.st_size,
            mtime=_mtime(st),
            ignored=ignored,
        )

    def _should_descend_ignored(self, ctx: _WalkContext, entry: _Entry) -> bool:
        """Ignored directories are walked only if something could surface inside."""
        return ctx.matcher.may_unignore_inside(entry.path) or ctx.patterns.may_target_inside(entry.rel_path)

    def _make_node(self, entry: _Entry, depth: int) -> ContentNode:
        return ContentNode(
            path=entry.path,
            rel_path=entry.rel_path,
            name=entry.name,
            kind=entry.kind,
            size=entry.size,
            mtime=entry.mtime,
            depth=depth,
        )

    # =========================================================================
    # Quotas
    # =========================================================================

    def _admit_file(self, ctx: _WalkContext, entry: _Entry) -> bool:
        """Apply per-file size, cumulative size and file count quotas.

        Returns:
            True if the file is accepted.

        Raises:
            OperationCancelledError: If the prompter declines an override.
        """
        config = ctx.config
        stats = ctx.stats
        state = ctx.overrides

        if entry.size >= config.max_file_size:
            stats.skipped_by_size += 1
            stats.warn(
                f"Skipped oversized file: {entry.rel_path} ({entry.size} bytes, limit {config.max_file_size})"
            )
            return False

        projected = stats.total_size + entry.size
        size_ratio = projected / config.max_total_size_bytes
        if size_ratio >= 1:
            if not state.consume_size_override():
                stats.skipped_by_total_limit += 1
                stats.warn(f"Skipped file due to total size limit: {entry.rel_path}")
                return False
        elif size_ratio >= WARN_THRESHOLD and not state.warned_size:
            state.warned_size = True
            usage = ThresholdUsage(QuotaKind.TOTAL_SIZE, projected, config.max_total_size_bytes)
            if not self._prompter.prompt_for_size_override(usage):
                raise OperationCancelledError(CancelReason.SIZE_DECLINED, "Scan cancelled at total size limit")
            state.allow_size_once = True
            stats.warn(f"Approaching total size limit: {usage.percent}%")

        count_ratio = stats.total_files / config.max_files
        if count_ratio >= 1:
            if not state.consume_files_override():
                stats.skipped_by_max_files += 1
                stats.warn(f"Max file count reached: {config.max_files}")
                ctx.halted = True
                return False
        elif count_ratio >= WARN_THRESHOLD and not state.warned_files:
            state.warned_files = True
            usage = ThresholdUsage(QuotaKind.FILE_COUNT, stats.total_files, config.max_files)
            if not self._prompter.prompt_for_file_count_override(usage):
                raise OperationCancelledError(CancelReason.FILES_DECLINED, "Scan cancelled at file count limit")
            state.allow_files_once = True
            stats.warn(f"Approaching file count limit: {usage.percent}%")

        return True

    # =========================================================================
    # Negation reconciliation
    # =========================================================================

    def _reconcile_negations(self, ctx: _WalkContext, nodes: list[ContentNode]) -> None:
        """Inject literal negation targets the walk did not reach.

        Entries the walk already visited keep the walk's verdict, and
        injected files go through the same quotas as walked ones.
        """
        for rel in ctx.matcher.list_explicit_negations():
            if ctx.halted:
                return
            if rel in ctx.visited or ctx.patterns.matches_exclude(rel):
                continue
            path = os.path.join(ctx.root, *rel.split("/"))
            if not os.path.lexists(path) or not self._within_root(ctx, path):
                continue
            if self._find(nodes, rel) is not None:
                continue
            try:
                self._inject(ctx, nodes, rel, path)
            except OSError as e:
                logger.debug("Failed to reconcile negation %s: %s", rel, e)
                ctx.stats.warn(f"Failed to stat: {rel}")

    @staticmethod
    def _find(nodes: list[ContentNode], rel_path: str) -> ContentNode | None:
        level: list[ContentNode] | None = nodes
        found: ContentNode | None = None
        segments = rel_path.split("/")
        for index, segment in enumerate(segments):
            if level is None:
                return None
            prefix = "/".join(segments[: index + 1])
            found = next((n for n in level if n.rel_path == prefix), None)
            if found is None:
                return None
            level = found.children
        return found

    def _inject(self, ctx: _WalkContext, nodes: list[ContentNode], rel_path: str, path: str) -> None:
        segments = rel_path.split("/")
        st = os.lstat(path)
        if stat.S_ISLNK(st.st_mode):
            kind = NodeKind.SYMLINK
        elif stat.S_ISDIR(st.st_mode):
            kind = NodeKind.DIRECTORY
        elif stat.S_ISREG(st.st_mode):
            kind = NodeKind.FILE
        else:
            return
        entry = _Entry(
            path=path,
            rel_path=rel_path,
            name=segments[-1],
            kind=kind,
            size=st.st_size if kind == NodeKind.FILE else 0,
            mtime=_mtime(st),
            ignored=False,
        )
        if kind == NodeKind.FILE and not self._admit_file(ctx, entry):
            return

        level = nodes
        for depth, segment in enumerate(segments[:-1]):
            prefix = "/".join(segments[: depth + 1])
            parent = next((n for n in level if n.rel_path == prefix), None)
            if parent is None:
                dir_path = os.path.join(ctx.root, *segments[: depth + 1])
                parent = ContentNode(
                    path=dir_path,
                    rel_path=prefix,
                    name=segment,
                    kind=NodeKind.DIRECTORY,
                    mtime=_mtime(os.lstat(dir_path)),
                    depth=depth,
                )
                ctx.stats.directories += 1
                level.append(parent)
                sort_nodes(level)
            if parent.children is None:
                return
            level = parent.children

        depth = len(segments) - 1
        node = self._make_node(entry, depth)
        if kind == NodeKind.DIRECTORY:
            node.children = self._walk(ctx, path, depth + 1)
            ctx.stats.directories += 1
        elif kind == NodeKind.SYMLINK:
            ctx.stats.symlinks += 1
        else:
            ctx.stats.total_files += 1
            ctx.stats.total_size += entry.size
        level.append(node)
        sort_nodes(level)
        logger.debug("Reconciled negated path %s into the tree", rel_path)
