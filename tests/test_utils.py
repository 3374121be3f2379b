from cms_i18n.translation.utils import match_json_object, safe_parse_json_object, strip_code_fences


def test_strip_code_fences():
    assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'
    assert strip_code_fences('{"a": 1}') == '{"a": 1}'


def test_match_json_object_ignores_braces_in_strings():
    text = 'Here you go: {"title": "Use {braces}", "n": {"x": 1}} thanks'
    assert match_json_object(text) == '{"title": "Use {braces}", "n": {"x": 1}}'
    assert match_json_object("no json here") is None


def test_safe_parse_json_object():
    assert safe_parse_json_object('{"a": "b"}') == {"a": "b"}
    assert safe_parse_json_object('```\n{"a": "b"}\n```') == {"a": "b"}
    assert safe_parse_json_object('Sure! {"a": "b"}') == {"a": "b"}
    assert safe_parse_json_object('["a", "b"]') is None
    assert safe_parse_json_object("") is None
    assert safe_parse_json_object("{broken") is None
