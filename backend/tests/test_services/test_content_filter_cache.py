"""
Tests for the content filter cache and rule application.
"""

import re
from contextlib import contextmanager
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from models.exceptions import DependencyException, InvalidRegexException
from services.content_filter_cache import (
    CompiledRule,
    ContentFilterCache,
    apply_pass,
    apply_rules,
    compile_pattern,
)


def _rule(rule_id, pattern, replacement="xxx", is_regex=False):
    return CompiledRule(
        rule_id=rule_id,
        pattern=pattern,
        replacement=replacement,
        is_regex=is_regex,
        matcher=compile_pattern(pattern, is_regex, 200),
    )


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


@pytest.fixture
def make_cache(db_session):
    """Cache reading through the test session."""

    @contextmanager
    def session_factory():
        yield db_session

    def _make_cache(ttl_seconds=0, clock=None):
        return ContentFilterCache(
            session_factory=session_factory,
            ttl_seconds=ttl_seconds,
            clock=clock or FakeClock(),
        )

    return _make_cache


class TestCompilePattern:
    """Tests for compile_pattern"""

    def test_literal_is_escaped(self):
        matcher = compile_pattern("spam.example.com", False, 200)
        assert matcher.search("visit SPAM.example.com now")
        assert not matcher.search("spamXexampleXcom")

    def test_invalid_regex(self):
        with pytest.raises(InvalidRegexException):
            compile_pattern("(unclosed", True, 200)

    def test_regex_too_long(self):
        with pytest.raises(InvalidRegexException):
            compile_pattern("a" * 201, True, 200)

    def test_long_literal_allowed(self):
        assert compile_pattern("a" * 300, False, 200).search("a" * 300)

    def test_empty_pattern(self):
        with pytest.raises(InvalidRegexException):
            compile_pattern("", False, 200)


class TestApplyRules:
    """Tests for apply_rules"""

    def test_case_insensitive_replacement(self):
        result = apply_rules([_rule(1, "spam", "***")], "This is SPAM and spam")
        assert result.filtered_text == "This is *** and ***"
        assert result.matched_rule_ids == (1,)
        assert result.changed is True

    def test_no_rules_is_identity(self):
        result = apply_rules([], "hello")
        assert result.filtered_text == "hello"
        assert result.changed is False

    def test_earlier_rule_wins_overlap(self):
        rules = [_rule(1, "bad word", "[removed]"), _rule(2, "word", "***")]
        result = apply_rules(rules, "a bad word here, a word there")
        assert result.filtered_text == "a [removed] here, a *** there"
        assert result.matched_rule_ids == (1, 2)

    def test_later_rule_dropped_when_fully_overlapped(self):
        rules = [_rule(1, "scam", "xxx"), _rule(2, "cam", "yyy")]
        result = apply_rules(rules, "a scam")
        assert result.filtered_text == "a xxx"
        assert result.matched_rule_ids == (1,)

    def test_regex_rule(self):
        rules = [_rule(1, r"buy\s+now", "[ad]", is_regex=True)]
        assert apply_rules(rules, "BUY   now!").filtered_text == "[ad]!"

    def test_zero_width_matches_ignored(self):
        rules = [_rule(1, r"x*", "!", is_regex=True)]
        result = apply_rules(rules, "abc")
        assert result.filtered_text == "abc"
        assert result.changed is False

    def test_single_pass_does_not_rescan_replacements(self):
        rules = [_rule(1, "foo", "bar"), _rule(2, "bar", "baz")]
        assert apply_pass(rules, "foo").filtered_text == "bar"

    def test_repeats_until_settled(self):
        rules = [_rule(1, "foo", "bar"), _rule(2, "bar", "baz")]
        result = apply_rules(rules, "foo")
        assert result.filtered_text == "baz"
        assert result.matched_rule_ids == (1, 2)

    def test_replacement_joining_neighbour_is_refiltered(self):
        rules = [_rule(1, "axx")]
        result = apply_rules(rules, "aaxx")
        assert result.filtered_text == "xxxx"
        assert apply_rules(rules, result.filtered_text).filtered_text == "xxxx"

    def test_replacement_joining_neighbour_hits_other_rule(self):
        rules = [_rule(1, "foo"), _rule(2, "axxx", "zz")]
        result = apply_rules(rules, "afoo")
        assert result.filtered_text == "zz"
        assert result.matched_rule_ids == (1, 2)

    def test_gives_up_after_max_passes(self):
        # "bab" contains "ab" again, so every pass grows the text
        rules = [_rule(1, "ab", "bab")]
        text = "ab"
        result = apply_rules(rules, text, max_passes=3)
        assert result.filtered_text == "bbbab"
        assert result.matched_rule_ids == (1,)

    @pytest.mark.parametrize(
        "text",
        [
            "this is spam",
            "SPAM spam sPaM",
            "nothing to see",
            "spammy spam-bot",
            "aaxx",
            "aaaxx x",
            "sspamm",
            "a bot!bot",
        ],
    )
    def test_idempotent(self, text):
        rules = [
            _rule(1, "spam", "***"),
            _rule(2, r"bot\b", "[filtered]", is_regex=True),
            _rule(3, "axx"),
        ]
        once = apply_rules(rules, text).filtered_text
        assert apply_rules(rules, once).filtered_text == once


class TestContentFilterCache:
    """Tests for ContentFilterCache load, invalidate and apply"""

    def test_word_rule_then_deactivate(self, db_session, make_cache, make_filter_rule):
        cache = make_cache()
        rule = make_filter_rule("spam", "***")

        assert cache.apply("this is spam").filtered_text == "this is ***"

        rule.is_active = False
        db_session.commit()
        cache.invalidate()

        assert cache.apply("this is spam").filtered_text == "this is spam"

    def test_default_replacement(self, make_cache, make_filter_rule):
        make_filter_rule("spam")
        assert make_cache().apply("spam").filtered_text == "xxx"

    def test_empty_text_skips_load(self, make_cache):
        cache = make_cache()
        with patch.object(cache, "load") as mock_load:
            assert cache.apply("").filtered_text == ""
        mock_load.assert_not_called()

    def test_no_active_rules(self, make_cache, make_filter_rule):
        make_filter_rule("spam", is_active=False)
        result = make_cache().apply("spam")
        assert result.filtered_text == "spam"
        assert result.matched_rule_ids == ()

    def test_rules_applied_in_creation_order(self, make_cache, make_filter_rule):
        first = make_filter_rule("bad word", "[removed]")
        second = make_filter_rule("word", "***")

        snapshot = make_cache().snapshot()

        assert [r.rule_id for r in snapshot.rules] == [first.id, second.id]

    def test_bad_stored_regex_is_skipped(self, make_cache, make_filter_rule):
        bad = make_filter_rule("(unclosed", is_regex=True)
        too_long = make_filter_rule("a" * 250, is_regex=True)
        good = make_filter_rule("spam", "***")

        cache = make_cache()
        snapshot = cache.snapshot()

        assert [r.rule_id for r in snapshot.rules] == [good.id]
        assert set(snapshot.skipped_rule_ids) == {bad.id, too_long.id}
        assert cache.apply("spam").filtered_text == "***"

    def test_literal_and_regex_partitions(self, make_cache, make_filter_rule):
        make_filter_rule("spam", "***")
        make_filter_rule(r"\d{3}-\d{4}", "[phone]", is_regex=True)

        snapshot = make_cache().snapshot()

        assert [r.pattern for r in snapshot.literal_rules] == ["spam"]
        assert [r.pattern for r in snapshot.regex_rules] == [r"\d{3}-\d{4}"]
        assert all(isinstance(r.matcher, re.Pattern) for r in snapshot.rules)

    def test_snapshot_reused_until_invalidated(self, make_cache, make_filter_rule):
        make_filter_rule("spam")
        cache = make_cache()

        first = cache.snapshot()
        assert cache.snapshot() is first

        cache.invalidate()
        assert cache.snapshot() is not first

    def test_ttl_expiry_reloads(self, make_cache, make_filter_rule):
        clock = FakeClock()
        cache = make_cache(ttl_seconds=60, clock=clock)
        make_filter_rule("spam")

        first = cache.snapshot()
        clock.now += 59
        assert cache.snapshot() is first
        clock.now += 1
        assert cache.snapshot() is not first

    def test_invalidate_during_load_discards_result(
        self, make_cache, make_filter_rule
    ):
        """A reload racing an invalidate must not install outdated rules."""
        make_filter_rule("spam")
        cache = make_cache()
        real_build = cache._build

        def build_then_invalidate(db, generation):
            snapshot = real_build(db, generation)
            cache.invalidate()
            return snapshot

        with patch.object(cache, "_build", side_effect=build_then_invalidate):
            loaded = cache.load()

        assert loaded.rules
        assert cache._snapshot is None
        assert cache.generation > loaded.generation

    def test_snapshot_from_older_generation_is_reloaded(
        self, db_session, make_cache, make_filter_rule
    ):
        """A reload that lands just after an invalidate is not served."""
        rule = make_filter_rule("spam", "***")
        cache = make_cache()
        outdated = cache.snapshot()

        rule.is_active = False
        db_session.commit()
        cache.invalidate()
        # The racing reload assigns its result after invalidate() cleared it
        cache._snapshot = outdated

        current = cache.snapshot()

        assert current is not outdated
        assert current.generation == cache.generation
        assert cache.apply("spam").filtered_text == "spam"

    def test_store_failure_serves_last_good_snapshot(
        self, make_cache, make_filter_rule
    ):
        make_filter_rule("spam", "***")
        cache = make_cache()
        good = cache.snapshot()
        cache.invalidate()

        with patch.object(
            cache,
            "_build",
            side_effect=OperationalError("SELECT", {}, Exception("down")),
        ) as mock_build:
            assert cache.apply("spam").filtered_text == "***"

        assert mock_build.call_count == 2
        assert cache.snapshot() is not None
        assert good.rules

    def test_store_failure_without_snapshot(self, make_cache):
        cache = make_cache()
        with patch.object(
            cache,
            "_build",
            side_effect=OperationalError("SELECT", {}, Exception("down")),
        ):
            with pytest.raises(DependencyException):
                cache.apply("spam")

    def test_check_clean_and_blocked_patterns(self, make_cache, make_filter_rule):
        make_filter_rule("spam")
        make_filter_rule("scam")
        cache = make_cache()

        assert cache.check_clean("hello there") is True
        assert cache.check_clean("a SCAM") is False
        assert cache.blocked_patterns("spam and scam") == ["spam", "scam"]
        assert cache.blocked_patterns("") == []
