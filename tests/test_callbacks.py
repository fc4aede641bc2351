from zinx.callbacks import Callbacks


def test_callback_add_invoke_remove():
    cb = Callbacks()
    count = 0

    def inc():
        nonlocal count
        count += 1

    cb.add("handler", "a", inc)
    cb.add("handler", "b", inc)
    assert len(cb) == 2
    cb.invoke()
    assert count == 2

    count = 0
    cb.remove("handler", "b")
    assert len(cb) == 1
    cb.invoke()
    assert count == 1


def test_none_callback_ignored():
    cb = Callbacks()
    cb.add("handler", "a", None)
    assert len(cb) == 0


def test_invoke_order_and_remove_first():
    cb = Callbacks()
    calls = []
    cb.add("h", "a", lambda: calls.append("a"))
    cb.add("h", "b", lambda: calls.append("b"))
    cb.add("h", "c", lambda: calls.append("c"))
    cb.remove("h", "a")
    cb.add("h", "d", lambda: calls.append("d"))
    cb.invoke()
    assert calls == ["b", "c", "d"]
    assert len(cb) == 3


def test_remove_last_then_add():
    cb = Callbacks()
    calls = []
    cb.add("h", "a", lambda: calls.append("a"))
    cb.add("h", "b", lambda: calls.append("b"))
    cb.remove("h", "b")
    cb.add("h", "c", lambda: calls.append("c"))
    cb.invoke()
    assert calls == ["a", "c"]


def test_remove_unknown_is_noop():
    cb = Callbacks()
    cb.add("h", "a", lambda: None)
    cb.remove("other", "a")
    cb.remove("h", "z")
    assert len(cb) == 1


def test_remove_only_matching_handler():
    cb = Callbacks()
    calls = []
    cb.add("h1", "k", lambda: calls.append(1))
    cb.add("h2", "k", lambda: calls.append(2))
    cb.remove("h2", "k")
    cb.invoke()
    assert calls == [1]