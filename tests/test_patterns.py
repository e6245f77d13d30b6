"""Tests for the compiled exclude glob matcher."""

from __future__ import annotations

from pathlib import PurePosixPath

import pytest

from yarawatch_core.patterns import GlobPattern


class TestDoubleStar:

    def test_matches_directory_at_any_depth(self):
        p = GlobPattern("**/target")
        assert p.matches("/a/target")
        assert p.matches("/x/y/z/target")
        assert p.matches("target")

    def test_does_not_match_similar_names(self):
        p = GlobPattern("**/target")
        assert not p.matches("/a/targets")
        assert not p.matches("/a/my-target")

    def test_does_not_match_children_by_itself(self):
        # subtree exclusion comes from pruning, not from the pattern
        assert not GlobPattern("**/target").matches("/a/target/file.bin")

    def test_trailing_double_star_matches_everything_below(self):
        p = GlobPattern("/data/**")
        assert p.matches("/data/a")
        assert p.matches("/data/a/b/c.bin")
        assert not p.matches("/other/a")

    def test_middle_double_star_matches_zero_segments(self):
        p = GlobPattern("/home/**/cache")
        assert p.matches("/home/cache")
        assert p.matches("/home/u/.local/cache")

    def test_bare_double_star_matches_anything(self):
        assert GlobPattern("**").matches("/any/path/at/all")


class TestSingleSegment:

    def test_star_stays_within_segment(self):
        p = GlobPattern("/home/*/Downloads")
        assert p.matches("/home/alice/Downloads")
        assert not p.matches("/home/alice/x/Downloads")

    def test_extension_needs_double_star_to_cross_directories(self):
        assert not GlobPattern("*.iso").matches("/a/b.iso")
        assert GlobPattern("**/*.iso").matches("/a/b.iso")

    def test_question_mark(self):
        p = GlobPattern("/tmp/file?.log")
        assert p.matches("/tmp/file1.log")
        assert not p.matches("/tmp/file12.log")
        assert not p.matches("/tmp/file/.log")

    def test_character_classes(self):
        assert GlobPattern("/x/[ab].bin").matches("/x/a.bin")
        assert not GlobPattern("/x/[ab].bin").matches("/x/c.bin")
        assert GlobPattern("/x/[!ab].bin").matches("/x/c.bin")
        assert not GlobPattern("/x/[!ab].bin").matches("/x/a.bin")
        assert GlobPattern("/x/[0-9].bin").matches("/x/7.bin")

    def test_unclosed_bracket_is_literal(self):
        assert GlobPattern("/x/[abc").matches("/x/[abc")

    def test_regex_metacharacters_are_literal(self):
        p = GlobPattern("/x/a+b(1).txt")
        assert p.matches("/x/a+b(1).txt")
        assert not p.matches("/x/aab1.txt")


class TestGlobPattern:

    def test_accepts_path_objects(self):
        assert GlobPattern("**/target").matches(PurePosixPath("/a/target"))

    def test_empty_pattern_rejected(self):
        with pytest.raises(ValueError):
            GlobPattern("")

    def test_str_and_equality(self):
        assert str(GlobPattern("**/x")) == "**/x"
        assert GlobPattern("**/x") == GlobPattern("**/x")
        assert len({GlobPattern("a"), GlobPattern("a")}) == 1
