# tests/test_response_parser.py
import pytest

from app.services.response_parser import (
    FALLBACK_DEFINITION,
    FALLBACK_WORD,
    ResponseParseFailure,
    load_items,
    parse_analysis,
)


def test_json_array_is_passed_through_in_order():
    res = parse_analysis('[{"word":"b"},{"word":"a","extra":1}]')
    assert res.parsed is True
    assert res.items == [{"word": "b"}, {"word": "a", "extra": 1}]


def test_markdown_fenced_array_is_accepted():
    text = '```json\n[{"word":"cup","definition":"d","sampleSentence":"s"}]\n```'
    res = parse_analysis(text)
    assert res.parsed is True
    assert res.items[0]["word"] == "cup"


def test_plain_text_becomes_single_fallback_item():
    res = parse_analysis("I see a dog and a ball.")
    assert res.parsed is False
    assert res.items == [{
        "word": FALLBACK_WORD,
        "definition": FALLBACK_DEFINITION,
        "sampleSentence": "I see a dog and a ball.",
    }]


def test_json_object_is_not_an_array():
    # 不是陣列也走 fallback
    res = parse_analysis('{"word":"cat"}')
    assert res.parsed is False
    assert res.items[0]["sampleSentence"] == '{"word":"cat"}'


def test_empty_array_is_valid():
    res = parse_analysis("[]")
    assert res.parsed is True
    assert res.items == []


def test_load_items_raises_on_garbage():
    with pytest.raises(ResponseParseFailure):
        load_items("[{broken")


def test_padded_json_still_parses():
    res = parse_analysis('  [{"word":"cat"}] \n')
    assert res.parsed is True
    assert res.items == [{"word": "cat"}]


def test_fallback_keeps_raw_text_verbatim():
    res = parse_analysis(" I see a dog.\n")
    assert res.items[0]["sampleSentence"] == " I see a dog.\n"
