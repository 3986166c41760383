"""Tests for the CSV record reader."""

from pkbimport.utils.csvline import CsvHeader, cell, iter_csv_records, split_csv_line


class TestSplitCsvLine:
    """Tests for split_csv_line."""

    def test_quoted_field_keeps_delimiter(self) -> None:
        values = split_csv_line('"https://example.com","Title with, comma","tag1,tag2"')

        assert values == ["https://example.com", "Title with, comma", "tag1,tag2"]

    def test_doubled_quotes(self) -> None:
        assert split_csv_line('a,"say ""hi""",b') == ["a", 'say "hi"', "b"]

    def test_empty_fields_and_trimming(self) -> None:
        assert split_csv_line(" a ,, b ,") == ["a", "", "b", ""]

    def test_custom_delimiter(self) -> None:
        assert split_csv_line("a;b;c", delimiter=";") == ["a", "b", "c"]

    def test_quote_inside_unquoted_field_is_text(self) -> None:
        assert split_csv_line('https://a.com,12" Vinyl,music') == ["https://a.com", '12" Vinyl', "music"]

    def test_quoted_field_after_leading_space(self) -> None:
        assert split_csv_line('a, "b, c"') == ["a", "b, c"]


class TestIterCsvRecords:
    """Tests for iter_csv_records."""

    def test_quoted_newline_stays_in_record(self) -> None:
        text = 'url,note\nhttps://a.com,"line one\nline two"\nhttps://b.com,x\n'

        records = list(iter_csv_records(text))

        assert records == [
            (1, "url,note"),
            (2, 'https://a.com,"line one\nline two"'),
            (4, "https://b.com,x"),
        ]

    def test_crlf_and_bom(self) -> None:
        records = list(iter_csv_records("\ufeffurl,title\r\nhttps://a.com,A\r\n"))

        assert records == [(1, "url,title"), (2, "https://a.com,A")]

    def test_last_line_without_newline(self) -> None:
        assert list(iter_csv_records("a\nb")) == [(1, "a"), (2, "b")]

    def test_mid_field_quote_does_not_join_lines(self) -> None:
        text = 'url,title\nhttps://a.com,12" Vinyl\nhttps://b.com,B\n'

        records = list(iter_csv_records(text))

        assert records == [(1, "url,title"), (2, 'https://a.com,12" Vinyl'), (3, "https://b.com,B")]

    def test_doubled_quotes_inside_quoted_field(self) -> None:
        text = 'a,"say ""hi""\nthere"\nb,c\n'

        records = list(iter_csv_records(text))

        assert records == [(1, 'a,"say ""hi""\nthere"'), (3, "b,c")]

    def test_unterminated_quote_falls_back_to_lines(self) -> None:
        text = 'url,title\nhttps://a.com,"Open\nhttps://b.com,B\nhttps://c.com,C'

        records = list(iter_csv_records(text))

        assert records == [
            (1, "url,title"),
            (2, 'https://a.com,"Open'),
            (3, "https://b.com,B"),
            (4, "https://c.com,C"),
        ]


class TestCsvHeader:
    """Tests for CsvHeader lookups."""

    def test_resolve_synonyms_case_insensitive(self) -> None:
        header = CsvHeader.parse("Link,Name,Time_Added")

        columns = header.resolve({"url": ("url", "link"), "date": ("date", "time_added"), "tags": ("tags",)})

        assert columns == {"url": 0, "date": 2, "tags": None}

    def test_cell(self) -> None:
        values = ["a", "b"]

        assert cell(values, 1) == "b"
        assert cell(values, 5) is None
        assert cell(values, None) is None
