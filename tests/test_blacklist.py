from blacklist import Blacklist


def test_ban_is_idempotent():
    bl = Blacklist()
    assert bl.ban("h1") is True
    assert bl.ban("h1") is False
    assert bl.list_banned() == ["h1"]


def test_unban_unknown_host_is_noop():
    bl = Blacklist()
    assert bl.unban("never-banned") is False
    assert bl.list_banned() == []


def test_ban_then_unban_clears_membership():
    bl = Blacklist()
    bl.ban("h1")
    bl.unban("h1")
    assert not bl.is_banned("h1")


def test_list_banned_keeps_insertion_order():
    bl = Blacklist()
    for host in ("h3", "h1", "h2"):
        bl.ban(host)
    bl.unban("h1")
    bl.ban("h1")
    assert bl.list_banned() == ["h3", "h2", "h1"]


def test_list_banned_returns_a_copy():
    bl = Blacklist()
    bl.ban("h1")
    banned = bl.list_banned()
    banned.append("h2")
    assert bl.list_banned() == ["h1"]
