from xpg.tsquery import TsQuery


def test_raw_returns_input():
    q = TsQuery("cat & dog")
    assert q.raw() == "cat & dog"
    assert str(q) == "cat & dog"


def test_escaped_without_backslash_is_unchanged():
    q = TsQuery("fat | rat")
    assert q.escaped() == q.raw()


def test_escaped_doubles_backslashes():
    q = TsQuery("a\\b")
    assert q.escaped() == "a\\\\b"


def test_escaped_length_grows_by_backslash_count():
    text = "\\x\\\\y\\"
    q = TsQuery(text)
    assert len(q.escaped()) == len(text) + text.count("\\")
    assert q.escaped().replace("\\\\", "\\") == text