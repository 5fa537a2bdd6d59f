import pytest

from strive.errors import ClientError, InvalidHeadersError, LegacyHeadersError
from strive.exporters.csv_codec import HEADERS, encode_csv, parse_csv, template_csv
from strive.models import ExportRecord

HEADER_LINE = "tmdbId,imdbId,name,year,mediaType,tmdbRating,imdbRating,tmdbVotes,imdbVotes"


def test_header_only_when_no_records():
    assert encode_csv([]) == HEADER_LINE


def test_rows_joined_by_newline_without_trailing_newline():
    body = encode_csv(
        [
            ExportRecord(tmdbId="1", name="A", year="2001", mediaType="movie"),
            ExportRecord(tmdbId="2", name="B", year="2002", mediaType="tv"),
        ]
    )
    assert body.split("\n") == [HEADER_LINE, "1,,A,2001,movie,,,,", "2,,B,2002,tv,,,,"]
    assert not body.endswith("\n")


def test_special_characters_are_quoted():
    body = encode_csv([ExportRecord(tmdbId="1", name='Say "Hi", World')])
    assert body.split("\n")[1] == '1,,"Say ""Hi"", World",,,,,,'


@pytest.mark.parametrize(
    "title",
    [
        "Crouching Tiger, Hidden Dragon",
        'The "Best" Film',
        "Line one\nLine two",
        'All, "of"\nthem',
    ],
)
def test_escaped_titles_survive_parsing(title):
    rows = parse_csv(encode_csv([ExportRecord(tmdbId="7", name=title, mediaType="movie")]))
    assert rows[0]["name"] == title


def test_template_has_example_row():
    assert template_csv() == HEADER_LINE + "\n603,tt0133093,The Matrix,1999,movie,8.2,8.7,2000000,1900000"


def test_parse_strips_bom_and_blank_lines():
    text = "\ufeff" + HEADER_LINE + "\n\n603,,The Matrix,1999,movie,,,,\n\n"
    rows = parse_csv(text)
    assert len(rows) == 1
    assert rows[0]["tmdbId"] == "603"
    assert list(rows[0]) == HEADERS


def test_parse_pads_short_rows():
    rows = parse_csv(HEADER_LINE + "\n603,tt0133093")
    assert rows[0]["imdbId"] == "tt0133093"
    assert rows[0]["name"] == ""
    assert rows[0]["imdbVotes"] == ""


def test_parse_header_only_yields_no_rows():
    assert parse_csv(HEADER_LINE) == []


def test_legacy_headers_rejected_with_specific_message():
    with pytest.raises(LegacyHeadersError) as exc:
        parse_csv("tmdbId,Name,Year,Letterboxd URI\n603,The Matrix,1999,https://boxd.it/x")
    assert exc.value.message.startswith("Legacy CSV headers detected")


def test_wrong_headers_rejected_with_generic_message():
    with pytest.raises(InvalidHeadersError) as exc:
        parse_csv("tmdbId,wrong,headers\n1,2,3")
    assert not isinstance(exc.value, LegacyHeadersError)
    assert exc.value.message.startswith("Invalid CSV headers")


def test_reordered_headers_rejected():
    reordered = ",".join(reversed(HEADERS))
    with pytest.raises(InvalidHeadersError):
        parse_csv(reordered + "\n")


def test_empty_text_rejected():
    with pytest.raises(InvalidHeadersError):
        parse_csv("")


def test_oversized_field_rejected_as_invalid_csv():
    text = HEADER_LINE + '\n1,,"' + "x" * 200000 + '",,movie,,,,'
    with pytest.raises(ClientError, match="Invalid CSV format"):
        parse_csv(text)
