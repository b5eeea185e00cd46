import re

import pytest

from pagewright.errors import ConfigurationError
from pagewright.selectors.query import compile_query


def test_attributes_are_appended_to_every_kind_alternative():
    q = compile_query("button", {"name": "commit"})
    alternatives = q.selector.split(", ")
    assert alternatives[0] == 'button[name="commit"]'
    assert all(alt.endswith('[name="commit"]') for alt in alternatives)
    assert q.filters == ()


def test_class_matches_each_token():
    q = compile_query("link", {"class": "btn  primary"})
    assert q.selector == 'a[class~="btn"][class~="primary"]'


def test_unknown_kind_is_a_tag_name():
    assert compile_query("form", {"id": "search_form"}).selector == 'form[id="search_form"]'


def test_quotes_are_escaped():
    assert compile_query("element", {"title": 'say "hi"'}).selector == '*[title="say \\"hi\\""]'


def test_regex_and_text_become_filters():
    q = compile_query("link", {"href": re.compile(r"/issues/\d+$"), "text": "Open"})
    assert q.selector == "a"
    attrs = {"href": "https://github.com/x/y/issues/12", "text": "  Open \n"}
    assert q.accepts(attrs.get)
    assert not q.accepts({"href": "/issues/new", "text": "Open"}.get)
    assert not q.accepts({"href": "/issues/3", "text": "Opened"}.get)
    assert not q.accepts({"text": "Open"}.get)


def test_css_and_xpath_are_verbatim():
    assert compile_query("button", {"css": "div.toolbar > button"}).selector == "div.toolbar > button"
    assert compile_query("button", {"xpath": "//button[1]"}).selector == "xpath=//button[1]"


def test_invalid_selectors():
    with pytest.raises(ConfigurationError):
        compile_query("button", {})
    with pytest.raises(ConfigurationError):
        compile_query("button", {"xpath": "//button", "name": "x"})


def test_text_area_is_a_textarea():
    assert compile_query("text_area", {"name": "body"}).selector == 'textarea[name="body"]'
    assert compile_query("textarea", {"name": "body"}).selector == 'textarea[name="body"]'
