import re

from depviz.ids import CHARSET, make_id


def test_default_length_and_charset():
    rid = make_id()
    assert len(rid) == 12
    assert re.fullmatch(r"[a-zA-Z0-9]+", rid)
    assert len(CHARSET) == 62


def test_explicit_length():
    assert len(make_id(5)) == 5
    assert make_id(0) == ""


def test_non_int_length_uses_default():
    assert len(make_id("8")) == 12
    assert len(make_id(None, default_length=3)) == 3
    assert len(make_id(True)) == 12


def test_ids_differ():
    assert len({make_id() for _ in range(50)}) == 50
