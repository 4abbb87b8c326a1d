import pytest

from kubepipe.encoder import encode


@pytest.mark.parametrize(
    "data,text",
    [
        ("foo", "foo"),
        (True, "true"),
        (42, "42"),
        (42.424242, "42.424242"),
        (["foo", "bar", "baz"], "foo,bar,baz"),
        ([1, 1, 2, 3, 5, 8], "1,1,2,3,5,8"),
        (b"foo", "Zm9v"),
        ([{"name": "john"}], '[{"name":"john"}]'),
        ({"foo": "bar"}, '{"foo":"bar"}'),
    ],
)
def test_encode(data, text):
    assert encode(data) == text


def test_encode_false():
    assert encode(False) == "false"