"""
In-process cache of compiled content filter rules.

The cache holds one immutable FilterSnapshot. Reloads build a fresh snapshot
off to the side and install it with a single attribute assignment, so
readers never take a lock and never see a half-built rule set. Invalidation
bumps a generation number. A reload that started before the bump does not
install its result, and readers reload any snapshot from an older
generation, so rules that are already out of date are never served twice.
"""

import itertools
import re
import time
from collections.abc import Callable, Iterable
from contextlib import AbstractContextManager
from dataclasses import dataclass, field
from typing import Optional

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from models.config import settings
from models.exceptions import DependencyException, InvalidRegexException
from repositories.content_filter_repository import ContentFilterRepository
from repositories.database import session_scope
from repositories.db_models import ContentFilterRule

# Upper bound on re-filtering passes in apply_rules
MAX_FILTER_PASSES = 8


@dataclass(frozen=True)
class CompiledRule:
    rule_id: int
    pattern: str
    replacement: str
    is_regex: bool
    matcher: re.Pattern


@dataclass(frozen=True)
class FilterResult:
    filtered_text: str
    matched_rule_ids: tuple[int, ...] = ()

    @property
    def changed(self) -> bool:
        return bool(self.matched_rule_ids)


@dataclass(frozen=True)
class FilterSnapshot:
    """Compiled active rules in application order."""

    rules: tuple[CompiledRule, ...]
    generation: int
    loaded_at: float
    skipped_rule_ids: tuple[int, ...] = field(default_factory=tuple)

    @property
    def literal_rules(self) -> tuple[CompiledRule, ...]:
        return tuple(rule for rule in self.rules if not rule.is_regex)

    @property
    def regex_rules(self) -> tuple[CompiledRule, ...]:
        return tuple(rule for rule in self.rules if rule.is_regex)


def compile_pattern(pattern: str, is_regex: bool, max_regex_length: int) -> re.Pattern:
    """
    Compile a rule pattern into a case-insensitive matcher.

    Literal patterns are escaped so punctuation in URLs and phrases matches
    itself.

    Raises:
        InvalidRegexException: Empty pattern, over-long regex or bad syntax
    """
    if not pattern:
        raise InvalidRegexException(pattern, "pattern is empty")
    if not is_regex:
        return re.compile(re.escape(pattern), re.IGNORECASE)
    if len(pattern) > max_regex_length:
        raise InvalidRegexException(
            pattern[:50], f"regex longer than {max_regex_length} characters"
        )
    try:
        return re.compile(pattern, re.IGNORECASE)
    except re.error as e:
        raise InvalidRegexException(pattern, str(e)) from e


def compile_rule(
    rule: ContentFilterRule,
    max_regex_length: Optional[int] = None,
    default_replacement: Optional[str] = None,
) -> CompiledRule:
    """Compile a stored rule. Raises InvalidRegexException like compile_pattern."""
    matcher = compile_pattern(
        rule.pattern,
        rule.is_regex,
        max_regex_length or settings.CONTENT_FILTER_MAX_REGEX_LENGTH,
    )
    return CompiledRule(
        rule_id=rule.id,
        pattern=rule.pattern,
        replacement=rule.replacement
        or default_replacement
        or settings.CONTENT_FILTER_DEFAULT_REPLACEMENT,
        is_regex=rule.is_regex,
        matcher=matcher,
    )


def _overlaps(claimed: list[tuple[int, int, str]], start: int, end: int) -> bool:
    return any(start < c_end and c_start < end for c_start, c_end, _ in claimed)


def apply_pass(rules: Iterable[CompiledRule], text: str) -> FilterResult:
    """
    One replacement pass over `text`.

    All rules run against the same input. Earlier rules claim spans first;
    a later match overlapping a claimed span is dropped. Zero-width regex
    matches are ignored.
    """
    claimed: list[tuple[int, int, str]] = []
    matched: list[int] = []

    for rule in rules:
        for match in rule.matcher.finditer(text):
            start, end = match.span()
            if start == end or _overlaps(claimed, start, end):
                continue
            claimed.append((start, end, rule.replacement))
            if rule.rule_id not in matched:
                matched.append(rule.rule_id)

    if not claimed:
        return FilterResult(filtered_text=text)

    claimed.sort()
    pieces = []
    cursor = 0
    for start, end, replacement in claimed:
        pieces.append(text[cursor:start])
        pieces.append(replacement)
        cursor = end
    pieces.append(text[cursor:])
    return FilterResult(filtered_text="".join(pieces), matched_rule_ids=tuple(matched))


def apply_rules(
    rules: Iterable[CompiledRule], text: str, max_passes: int = MAX_FILTER_PASSES
) -> FilterResult:
    """
    Replace rule matches in `text` until no rule matches any more.

    A replacement can join with its neighbours into a new match ("a" + "xxx"
    next to rule "axx"), so passes repeat until the text stops changing.
    Matched rule IDs are merged across passes in first-match order. Text
    that still changes after `max_passes` is returned as is.
    """
    rules = tuple(rules)
    matched: list[int] = []
    current = text

    for _ in range(max_passes):
        result = apply_pass(rules, current)
        if not result.changed:
            break
        for rule_id in result.matched_rule_ids:
            if rule_id not in matched:
                matched.append(rule_id)
        current = result.filtered_text
    else:
        if apply_pass(rules, current).changed:
            logger.warning(
                f"Content filter did not settle after {max_passes} passes"
            )

    return FilterResult(filtered_text=current, matched_rule_ids=tuple(matched))


class ContentFilterCache:
    """
    Process-wide holder of the current FilterSnapshot.

    Reads go through `snapshot()`, which reloads lazily after `invalidate()`
    or once the TTL has passed. Cross-process freshness is bounded by the
    TTL, since invalidate() only reaches this process.
    """

    def __init__(
        self,
        session_factory: Callable[[], AbstractContextManager[Session]] = session_scope,
        ttl_seconds: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._session_factory = session_factory
        self._ttl_seconds = ttl_seconds
        self._clock = clock
        self._generations = itertools.count(1)
        self._generation = 0
        self._snapshot: Optional[FilterSnapshot] = None
        self._last_good: Optional[FilterSnapshot] = None

    @property
    def ttl_seconds(self) -> int:
        if self._ttl_seconds is not None:
            return self._ttl_seconds
        return settings.CONTENT_FILTER_CACHE_TTL_SECONDS

    @property
    def generation(self) -> int:
        return self._generation

    def _is_expired(self, snapshot: FilterSnapshot) -> bool:
        ttl = self.ttl_seconds
        return ttl > 0 and self._clock() - snapshot.loaded_at >= ttl

    def _build(self, db: Session, generation: int) -> FilterSnapshot:
        rules = ContentFilterRepository(db).get_active_rules()
        compiled: list[CompiledRule] = []
        skipped: list[int] = []
        for rule in rules:
            try:
                compiled.append(compile_rule(rule))
            except InvalidRegexException as e:
                skipped.append(rule.id)
                logger.warning(f"Skipping content filter rule {rule.id}: {e.message}")
        return FilterSnapshot(
            rules=tuple(compiled),
            generation=generation,
            loaded_at=self._clock(),
            skipped_rule_ids=tuple(skipped),
        )

    def _read_store(self, db: Optional[Session], generation: int) -> FilterSnapshot:
        if db is not None:
            return self._build(db, generation)
        with self._session_factory() as session:
            return self._build(session, generation)

    def load(self, db: Optional[Session] = None) -> FilterSnapshot:
        """
        Read active rules from the store and install a new snapshot.

        Tries twice. If the store stays unavailable, the last successfully
        loaded snapshot keeps serving; with nothing loaded yet the failure
        surfaces as DependencyException.

        Args:
            db: Session to read through (a short-lived one is opened if None)

        Returns:
            The snapshot that was built
        """
        generation = self._generation
        last_error: Optional[SQLAlchemyError] = None
        for attempt in (1, 2):
            try:
                snapshot = self._read_store(db, generation)
                break
            except SQLAlchemyError as e:
                last_error = e
                if db is not None:
                    db.rollback()
                logger.warning(f"Content filter load failed (attempt {attempt}/2): {e!r}")
        else:
            if self._last_good is not None:
                logger.error("Content filter store unavailable, serving previous rules")
                return self._last_good
            raise DependencyException("load_content_filters") from last_error

        # An invalidate() during the read means these rules may already be stale
        if generation == self._generation:
            self._snapshot = snapshot
            self._last_good = snapshot
            logger.debug(
                f"Content filter snapshot loaded: {len(snapshot.rules)} rules, "
                f"{len(snapshot.skipped_rule_ids)} skipped"
            )
        return snapshot

    def snapshot(self, db: Optional[Session] = None) -> FilterSnapshot:
        """
        Current snapshot.

        Reloads when there is none, when it was built before the latest
        invalidate(), or when it is past its TTL.
        """
        current = self._snapshot
        if (
            current is None
            or current.generation != self._generation
            or self._is_expired(current)
        ):
            return self.load(db)
        return current

    def invalidate(self) -> None:
        """Drop the cached rules; the next read reloads them."""
        self._generation = next(self._generations)
        self._snapshot = None

    def apply(self, text: str, db: Optional[Session] = None) -> FilterResult:
        """
        Filter submitted text.

        Args:
            text: Post or thread body
            db: Optional session to load rules through

        Returns:
            FilterResult with the rewritten text and IDs of matched rules
        """
        if not text:
            return FilterResult(filtered_text=text)
        snapshot = self.snapshot(db)
        if not snapshot.rules:
            return FilterResult(filtered_text=text)
        return apply_rules(snapshot.rules, text)

    def check_clean(self, text: str, db: Optional[Session] = None) -> bool:
        """True if no active rule matches the text."""
        return not self.apply(text, db).changed

    def blocked_patterns(self, text: str, db: Optional[Session] = None) -> list[str]:
        """Patterns of the rules that would rewrite the text, in rule order."""
        if not text:
            return []
        snapshot = self.snapshot(db)
        matched = set(apply_rules(snapshot.rules, text).matched_rule_ids)
        return [rule.pattern for rule in snapshot.rules if rule.rule_id in matched]


content_filter_cache = ContentFilterCache()
