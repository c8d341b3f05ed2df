"""Tests for the VALUES clause lexer and value decoder."""

from location_lookup_db.importers.sql_values import ParseStats, TupleLexer, ValueDecoder


def lex(text: str, stats: ParseStats | None = None) -> list[str]:
    return list(TupleLexer(text, stats=stats))


def decode(raw: str, stats: ParseStats | None = None) -> list:
    return ValueDecoder(stats).decode(raw)


# ---------------------------------------------------------------------------
# TupleLexer
# ---------------------------------------------------------------------------


class TestTupleLexer:
    def test_simple_tuples(self):
        assert lex("(1,'a'),(2,'b');") == ["1,'a'", "2,'b'"]

    def test_whitespace_and_newlines_between_tuples(self):
        assert lex("\n  (1,'a') ,\n  (2,'b')\n;") == ["1,'a'", "2,'b'"]

    def test_parens_inside_quotes_do_not_close_tuple(self):
        assert lex("(1,'a)b'),(2,'(c')") == ["1,'a)b'", "2,'(c'"]

    def test_nested_unquoted_parens(self):
        assert lex("(1,(2,3),4),(5)") == ["1,(2,3),4", "5"]

    def test_backslash_escaped_quote(self):
        text = r"(1,'it\'s (fine)'),(2,'x')"
        assert lex(text) == [r"1,'it\'s (fine)'", "2,'x'"]

    def test_doubled_quote(self):
        assert lex("(1,'O''Brien'),(2,'x')") == ["1,'O''Brien'", "2,'x'"]

    def test_apostrophe_inside_unquoted_value(self):
        stats = ParseStats()
        text = "(1,O'Neil,'AA'),(2,'Lagos','LA'),(3,'Kano','KN');"
        assert lex(text, stats) == ["1,O'Neil,'AA'", "2,'Lagos','LA'", "3,'Kano','KN'"]
        assert stats.unterminated == 0
        assert decode("1,O'Neil,'AA'") == ["1", "O'Neil", "AA"]

    def test_quote_after_whitespace_opens_string(self):
        assert lex("( 1 , 'a)b' ),(2,'c')") == [" 1 , 'a)b' ", "2,'c'"]

    def test_double_quoted_values(self):
        assert lex('(1,"a\'b)"),(2,"c")') == ["1,\"a'b)\"", '2,"c"']

    def test_semicolon_inside_quotes_does_not_end_clause(self):
        text = "(1,'a;b'),(2,'c');(3,'d')"
        assert lex(text) == ["1,'a;b'", "2,'c'"]

    def test_end_points_past_semicolon(self):
        text = "(1,'a'),(2,'b'); INSERT INTO"
        lexer = TupleLexer(text)
        list(lexer)
        assert text[lexer.end:] == " INSERT INTO"

    def test_end_without_semicolon_is_text_length(self):
        text = "(1,'a'),(2,'b')"
        lexer = TupleLexer(text)
        list(lexer)
        assert lexer.end == len(text)

    def test_start_offset(self):
        text = "VALUES (1,'a');"
        assert list(TupleLexer(text, start=6)) == ["1,'a'"]

    def test_stray_characters_counted(self):
        stats = ParseStats()
        assert lex("(1,'a') garbage (2,'b')", stats) == ["1,'a'", "2,'b'"]
        assert stats.skipped_chars == len("garbage")
        assert stats.tuples == 2

    def test_unterminated_tuple_is_best_effort(self):
        stats = ParseStats()
        assert lex("(1,'a'),(2,'b", stats) == ["1,'a'", "2,'b"]
        assert stats.unterminated == 1
        assert stats.tuples == 2

    def test_no_tuples(self):
        stats = ParseStats()
        assert lex("   ;", stats) == []
        assert stats.tuples == 0

    def test_empty_tuple(self):
        assert lex("()") == [""]

    def test_lazy(self):
        iterator = iter(TupleLexer("(1),(2),(3)"))
        assert next(iterator) == "1"
        assert next(iterator) == "2"


# ---------------------------------------------------------------------------
# ValueDecoder
# ---------------------------------------------------------------------------


class TestValueDecoder:
    def test_unquoted_and_quoted(self):
        assert decode("1, 'Lagos State', 'LA'") == ["1", "Lagos State", "LA"]

    def test_backslash_escaped_quote(self):
        row = decode(r"2, 'O\'Brien Ward', 'OBW'")
        assert row[1] == "O'Brien Ward"

    def test_doubled_single_quote(self):
        assert decode("1,'O''Brien'") == ["1", "O'Brien"]

    def test_doubled_double_quote(self):
        assert decode('1,"Say ""hi"""') == ["1", 'Say "hi"']

    def test_double_quoted_value_with_single_quote(self):
        assert decode('1,"it\'s"') == ["1", "it's"]

    def test_embedded_commas(self):
        assert decode("1,'Town Hall, Ikeja','X'") == ["1", "Town Hall, Ikeja", "X"]

    def test_escaped_backslash(self):
        assert decode(r"'C:\\dir'") == ["C:\\dir"]

    def test_escaped_double_quote_in_single_quotes(self):
        assert decode(r"'a\"b'") == ['a"b']

    def test_control_escapes(self):
        assert decode(r"'a\nb\tc\rd'") == ["a\nb\tc\rd"]

    def test_unknown_escape_drops_backslash(self):
        assert decode(r"'\q'") == ["q"]

    def test_null_any_case(self):
        assert decode("NULL, null, Null") == [None, None, None]

    def test_quoted_null_is_string(self):
        assert decode("'NULL'") == ["NULL"]

    def test_empty_quoted_string(self):
        assert decode("1,'',3") == ["1", "", "3"]

    def test_whitespace_trimmed_for_unquoted(self):
        assert decode("  42 ,  abc  ") == ["42", "abc"]

    def test_whitespace_preserved_inside_quotes(self):
        assert decode("'  padded  '") == ["  padded  "]

    def test_numbers_stay_strings(self):
        assert decode("1, 2.5, -3") == ["1", "2.5", "-3"]

    def test_empty_raw_tuple(self):
        assert decode("") == []

    def test_empty_unquoted_field(self):
        assert decode("1,,3") == ["1", "", "3"]

    def test_parens_inside_quotes(self):
        assert decode("1,'Ward (North)'") == ["1", "Ward (North)"]

    def test_unterminated_quote_is_best_effort(self):
        stats = ParseStats()
        assert decode("1,'abc", stats) == ["1", "abc"]
        assert stats.unterminated_quotes == 1

    def test_round_trip_of_escaped_strings(self):
        originals = ["O'Brien", "a, b, c", "it''s", "x\\y", "(nested, 'quoted')"]
        for original in originals:
            escaped = original.replace("\\", "\\\\").replace("'", "\\'")
            assert decode(f"7,'{escaped}'") == ["7", original]
