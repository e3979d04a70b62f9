import json

from parley.ai.json_stream import IncrementalJSONParser


def chunk(text, finish=None):
    candidate = {"content": {"parts": [{"text": text}], "role": "model"}}
    if finish:
        candidate["finishReason"] = finish
    return {"candidates": [candidate]}


BODY = json.dumps([chunk("Hel"), chunk("lo {world}"), chunk('say "hi"\\n', finish="STOP")])


def texts(objects):
    return [o["candidates"][0]["content"]["parts"][0]["text"] for o in objects]


def test_whole_body_in_one_read():
    parser = IncrementalJSONParser()
    assert texts(parser.feed(BODY)) == ["Hel", "lo {world}", 'say "hi"\\n']
    assert not parser.has_partial


def test_every_split_point_yields_same_objects():
    expected = texts(IncrementalJSONParser().feed(BODY))
    for cut in range(1, len(BODY)):
        parser = IncrementalJSONParser()
        objects = parser.feed(BODY[:cut]) + parser.feed(BODY[cut:])
        assert texts(objects) == expected, f"split at {cut}"


def test_one_character_at_a_time():
    parser = IncrementalJSONParser()
    objects = []
    for ch in BODY:
        objects.extend(parser.feed(ch))
    assert texts(objects) == ["Hel", "lo {world}", 'say "hi"\\n']


def test_partial_object_is_held_back():
    parser = IncrementalJSONParser()
    assert parser.feed('[{"candidates": [{"content": {"parts": [{"text": "ab') == []
    assert parser.has_partial
    objects = parser.feed('c"}]}}]}]')
    assert texts(objects) == ["abc"]
    assert not parser.has_partial


def test_escaped_quote_and_backslash_at_read_boundary():
    parser = IncrementalJSONParser()
    assert parser.feed('[{"text": "a\\') == []
    assert parser.feed('""}') == [{"text": 'a"'}]
    assert parser.feed(', {"text": "b\\\\') == []
    assert parser.feed('"}]') == [{"text": "b\\"}]


def test_braces_inside_strings_do_not_close_objects():
    parser = IncrementalJSONParser()
    assert parser.feed('[{"text": "}}}{{"}') == [{"text": "}}}{{"}]


def test_multibyte_character_split_across_reads():
    body = json.dumps([{"text": "héllo 日本"}], ensure_ascii=False).encode("utf-8")
    split = body.index("日".encode("utf-8")) + 1
    parser = IncrementalJSONParser()
    assert parser.feed(body[:split]) == []
    assert parser.feed(body[split:]) == [{"text": "héllo 日本"}]


def test_undecodable_object_is_skipped():
    parser = IncrementalJSONParser()
    objects = parser.feed('[{"text": oops}, {"text": "ok"}]')
    assert objects == [{"text": "ok"}]


def test_separators_between_objects_are_ignored():
    parser = IncrementalJSONParser()
    assert parser.feed("[\n") == []
    assert parser.feed('{"a": 1}\n,\r\n') == [{"a": 1}]
    assert parser.feed('{"b": 2}]') == [{"b": 2}]
    assert not parser.has_partial
