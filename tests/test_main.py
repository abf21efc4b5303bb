import logging

import pytest

from consumable.main import (
    ABSENT,
    CharMismatch,
    EndOfInput,
    NoAlternative,
    ParseError,
    ParseFailure,
    Source,
    alphanumeric,
    any_char,
    as_consumer,
    char,
    consume,
    consume_iter,
    end,
    literal,
    mapped,
    nothing,
    oneof,
    optional,
    parse,
    repeat0,
    repeat1,
    satisfy,
    seq,
    whitespace,
    ws0,
    ws1,
)


SENTINEL = ParseFailure(Source("x"), "sentinel")


def failing(source: Source) -> ParseFailure:
    return SENTINEL


class Spy:
    def __init__(self) -> None:
        self.calls = 0

    def __call__(self, source: Source):
        self.calls += 1
        return source.result(None)


class TestSource:
    def test_compares_to_remaining_text(self) -> None:
        """A source equals the string of its unconsumed text."""
        source = Source("abc", 1)

        assert source == "bc"
        assert len(source) == 2
        assert source.rest == "bc"
        assert str(source) == "bc"

    def test_advance_returns_new_view(self) -> None:
        """Advancing never changes the original source."""
        source = Source("abc")
        rest = source.advance(2)

        assert source == "abc"
        assert rest == "c"
        assert rest.src is source.src
        assert not rest.advance(1)
        assert rest.advance(1).is_eof()

    def test_peek(self) -> None:
        source = Source("ab")

        assert source.peek(2) == "ab"
        assert source.peek(3) is None

    def test_hashes_like_remaining_text(self) -> None:
        source = Source("xab", 1)

        assert hash(source) == hash("ab")
        assert source in {"ab"}
        assert "ab" in {source}

    def test_sources_of_different_strings_are_not_equal(self) -> None:
        assert Source("xab", 1) == "ab"
        assert Source("ab") == "ab"
        assert Source("xab", 1) != Source("ab")
        assert Source("xab", 1) == Source("xab").advance(1)

    def test_position_outside_source_is_rejected(self) -> None:
        with pytest.raises(ValueError):
            Source("abc", 4)


class TestLeaves:
    def test_char_consumes_one_character(self) -> None:
        """The scenario of paying in dollars starts with the `$`."""
        r = consume(char("$"), "$12.50, please!")

        assert r
        assert r.data == "$"
        assert r.rest == "12.50, please!"
        assert r.consumed == 1
        assert r.pos == (0, 1)

    def test_char_mismatch_reports_expected_and_actual(self) -> None:
        r = consume(char("$"), "x")

        assert isinstance(r, CharMismatch)
        assert r.expected == "'$'"
        assert r.actual == "x"
        assert r.pos == 0

    def test_char_at_end_of_input(self) -> None:
        r = consume(char("$"), "")

        assert isinstance(r, EndOfInput)
        assert r.expected == "'$'"

    def test_char_requires_single_character(self) -> None:
        with pytest.raises(ValueError):
            char("ab")

    def test_literal(self) -> None:
        r = consume(literal("scalar"), "scalar*42")

        assert r
        assert r.data == "scalar"
        assert r.rest == "*42"

    def test_literal_fails_at_first_difference(self) -> None:
        r = consume(literal("abc"), "abd")

        assert isinstance(r, CharMismatch)
        assert r.pos == 2
        assert r.actual == "d"

    def test_literal_runs_out_of_input(self) -> None:
        r = consume(literal("abc"), "ab")

        assert isinstance(r, EndOfInput)
        assert r.pos == 2

    def test_empty_literal_is_rejected(self) -> None:
        with pytest.raises(ValueError):
            literal("")

    def test_whitespace_is_unicode_aware(self) -> None:
        r = consume(whitespace, "　x")

        assert r
        assert r.data == "　"
        assert r.rest == "x"
        assert not consume(whitespace, "x")

    def test_alphanumeric(self) -> None:
        assert consume(alphanumeric, "é").data == "é"
        assert isinstance(consume(alphanumeric, "-"), CharMismatch)

    def test_any_char(self) -> None:
        assert consume(any_char, "-").data == "-"
        assert isinstance(consume(any_char, ""), EndOfInput)

    def test_satisfy(self) -> None:
        vowel = satisfy(lambda token: token in "aeiou", "a vowel")

        assert consume(vowel, "ab").data == "a"
        assert consume(vowel, "ba").msg == "Expected a vowel, found 'b'."

    def test_end(self) -> None:
        assert consume(end, "")
        assert isinstance(consume(end, "a"), CharMismatch)

    def test_nothing_consumes_nothing(self) -> None:
        r = consume(nothing, "abc")

        assert r
        assert r.data is None
        assert r.rest == "abc"

    def test_ws0_and_ws1(self) -> None:
        r = consume(ws0, " \t x")

        assert r.data == " \t "
        assert r.rest == "x"
        assert consume(ws0, "x").data == ""
        assert consume(ws1, "  x").rest == "x"
        assert isinstance(consume(ws1, "x"), CharMismatch)


class TestSeq:
    def test_values_are_a_tuple(self) -> None:
        r = consume(seq(char("a"), "b"), "abc")

        assert r
        assert r.data == ("a", "b")
        assert r.rest == "c"

    def test_fails_fast_with_unchanged_failure(self) -> None:
        """A failing element stops the sequence and its failure is returned as-is."""
        spy = Spy()
        r = consume(seq(char("a"), failing, spy), "abc")

        assert r is SENTINEL
        assert spy.calls == 0

    def test_first_element_failure(self) -> None:
        r = consume(seq(char("a"), char("b")), "bb")

        assert isinstance(r, CharMismatch)
        assert r.pos == 0

    def test_arity_limits(self) -> None:
        with pytest.raises(ValueError):
            seq(char("a"))
        with pytest.raises(ValueError):
            seq(*[char("a")] * 11)

        r = consume(seq(*[char("a")] * 10), "a" * 10)

        assert r
        assert len(r.data) == 10


class TestOptional:
    def test_absent_at_end_of_input(self) -> None:
        """An optional `(` on empty input succeeds without consuming."""
        r = consume(optional(char("(")), "")

        assert r
        assert r.data is None
        assert r.rest == ""

    def test_present(self) -> None:
        r = consume(optional(char("(")), "(1")

        assert r.data == "("
        assert r.rest == "1"

    def test_default(self) -> None:
        assert consume(optional(char("-"), default="+"), "1").data == "+"

    def test_absent_is_distinct_from_none(self) -> None:
        """`ABSENT` tells a missing match apart from a match with `None`."""
        present = consume(optional(end, default=ABSENT), "")
        absent = consume(optional(end, default=ABSENT), "x")

        assert present.data is None
        assert absent.data is ABSENT
        assert absent.rest == "x"
        assert not ABSENT
        assert repr(ABSENT) == "ABSENT"

    def test_never_fails(self) -> None:
        for text in ["", "a", "(", ")(", "\n"]:
            r = consume(optional(char("("), char(")")), text)

            assert r
            assert len(r.rest) <= len(text)

    def test_multiple_consumers_match_in_sequence(self) -> None:
        r = consume(optional(char("a"), char("b")), "ac")

        assert r.data is None
        assert r.rest == "ac"


class TestRepeat:
    def test_repeat0_collects_until_failure(self) -> None:
        r = consume(repeat0(char("a")), "aab")

        assert r.data == ["a", "a"]
        assert r.rest == "b"

    def test_repeat0_never_fails(self) -> None:
        r = consume(repeat0(char("a")), "")

        assert r
        assert r.data == []
        assert r.rest == ""

    def test_repeat0_stops_on_zero_length_match(self) -> None:
        """An inner consumer that matches without consuming can't loop forever."""
        r = consume(repeat0(nothing), "abc")

        assert r.data == []
        assert r.rest == "abc"

        r = consume(repeat0(optional(char("a"))), "aab")

        assert r.data == ["a", "a"]
        assert r.rest == "b"

    def test_repeat0_multiple_consumers(self) -> None:
        r = consume(repeat0(char("a"), char("b")), "ababa")

        assert r.data == [("a", "b"), ("a", "b")]
        assert r.rest == "a"

    def test_repeat1_fails_with_first_failure(self) -> None:
        assert consume(repeat1(failing), "abc") is SENTINEL

        r = consume(repeat1(char("a")), "b")

        assert isinstance(r, CharMismatch)

    def test_repeat1_succeeds_after_first_match(self) -> None:
        r = consume(repeat1(char("a")), "aaab")

        assert r.data == ["a", "a", "a"]
        assert r.rest == "b"

    def test_repeat1_keeps_zero_length_first_match(self) -> None:
        r = consume(repeat1(nothing), "x")

        assert r.data == [None]
        assert r.rest == "x"

    def test_zero_length_match_is_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        caplog.set_level(logging.DEBUG, logger="consumable.main")

        consume(repeat0(nothing), "abc")

        assert "zero-length match at position 0" in caplog.text


class TestOneof:
    def test_first_match_wins(self) -> None:
        """The first declared alternative wins even if a later one is longer."""
        r = consume(oneof(literal("ab"), literal("abc")), "abc")

        assert r.data == "ab"
        assert r.rest == "c"

    def test_alternatives_start_from_original_input(self) -> None:
        r = consume(oneof(literal("ax"), literal("ab")), "ab")

        assert r.data == "ab"
        assert r.rest == ""

    def test_all_failures_are_kept(self) -> None:
        r = consume(oneof(char("a"), char("b")), "c")

        assert isinstance(r, NoAlternative)
        assert r.pos == 0
        assert len(r.failures) == 2
        assert isinstance(r.last, CharMismatch)
        assert r.last.expected == "'b'"

    def test_furthest_failure(self) -> None:
        r = consume(oneof(literal("xy"), literal("cd")), "cz")

        assert isinstance(r, NoAlternative)
        assert r.furthest.pos == 1
        assert r.furthest is r.failures[1]

    def test_exhaustion_is_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        caplog.set_level(logging.DEBUG, logger="consumable.main")

        consume(oneof(char("a"), char("b")), "c")

        assert "All 2 alternatives failed at position 0." in caplog.text

    def test_requires_two_alternatives(self) -> None:
        with pytest.raises(ValueError):
            oneof(char("a"))


class TestEntryPoints:
    def test_result_unpacks(self) -> None:
        value, rest = consume(mapped(char("7"), int), "7up")

        assert value == 7
        assert rest == "up"

    def test_string_is_a_literal(self) -> None:
        r = consume("ab", "abc")

        assert r.data == "ab"
        assert r.text == "ab"

    def test_as_consumer_rejects_unknown_values(self) -> None:
        class Plain:
            pass

        with pytest.raises(TypeError):
            as_consumer(Plain)

        class Child(Plain):
            pass

        Plain.consume = char("p")  # type: ignore[attr-defined]

        assert consume(Plain, "p")
        with pytest.raises(TypeError):
            as_consumer(Child)
        with pytest.raises(TypeError):
            as_consumer(42)  # type: ignore[arg-type]

    def test_parse_returns_value(self) -> None:
        assert parse(char("a"), "ab") == "a"

    def test_parse_complete_rejects_leftovers(self) -> None:
        with pytest.raises(ParseError) as exc_info:
            parse(char("a"), "ab", complete=True)

        assert str(exc_info.value) == "Expected the end of the input, found 'b'."
        assert exc_info.value.pos == 1
        assert "line 1, column 2" in exc_info.value.__notes__[0]

    def test_parse_error_reports_line_and_column(self) -> None:
        with pytest.raises(ParseError) as exc_info:
            parse(seq("ab\ncd", char("!")), "ab\ncd?")

        assert exc_info.value.pos == 5
        assert "line 2, column 3" in exc_info.value.__notes__[0]

    def test_caret_points_at_the_position_far_into_a_line(self) -> None:
        error = ParseError("abcdefghijklmnopqrstuvwxyzABCDEFG", 25, "m")
        excerpt, caret = error.__notes__[0].split("\n")[-2:]

        assert excerpt[caret.index("^")] == "z"

    def test_caret_points_at_the_position_near_the_start(self) -> None:
        error = ParseError("abcdef", 3)
        excerpt, caret = error.__notes__[0].split("\n")[-2:]

        assert excerpt[caret.index("^")] == "d"

    def test_excerpt_is_the_line_of_the_position(self) -> None:
        """Only `\\n` separates lines, like in the line count."""
        error = ParseError("ab\u2028cd\nxy", 7)
        note = error.__notes__[0]
        excerpt, caret = note.split("\n")[-2:]

        assert "line 2, column 2" in note
        assert excerpt == "xy"
        assert excerpt[caret.index("^")] == "y"

    def test_failure_converts_to_error(self) -> None:
        r = consume(oneof(char("a"), char("b")), "c")
        error = r.error()

        assert isinstance(error, ParseError)
        # the position itself and one note for each alternative
        assert len(error.__notes__) == 3

    def test_consume_iter(self) -> None:
        assert list(consume_iter(char("a"), "aab")) == ["a", "a"]
        assert list(consume_iter(nothing, "abc")) == []
