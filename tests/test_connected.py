from dataclasses import dataclass

import pytest

from legacyconnect.connected import Alpn, Connected, Connection, Extensions, PoisonPill


@dataclass(frozen=True)
class Ex1:
    value: int


@dataclass(frozen=True)
class Ex2:
    value: str


@dataclass(frozen=True)
class Ex3:
    value: str


def test_connected_extra():
    c1 = Connected().extra(Ex1(41))
    ex = Extensions()
    assert ex.get(Ex1) is None
    c1.get_extras(ex)
    assert ex.get(Ex1) == Ex1(41)


def test_connected_extra_chain():
    c1 = Connected().extra(Ex1(45)).extra(Ex2("zoom")).extra(Ex3("pew pew"))
    ex1 = Extensions()
    assert ex1.get(Ex1) is None
    assert ex1.get(Ex2) is None
    assert ex1.get(Ex3) is None

    c1.get_extras(ex1)
    assert ex1.get(Ex1) == Ex1(45)
    assert ex1.get(Ex2) == Ex2("zoom")
    assert ex1.get(Ex3) == Ex3("pew pew")

    c2 = Connected().extra(Ex1(33)).extra(Ex2("hiccup")).extra(Ex1(99))
    ex2 = Extensions()
    c2.get_extras(ex2)
    assert ex2.get(Ex1) == Ex1(99)
    assert ex2.get(Ex2) == Ex2("hiccup")


def test_defaults():
    c = Connected()
    assert c.is_proxied() is False
    assert c.is_negotiated_h2() is False
    assert c.alpn is Alpn.NONE
    assert c.is_poisoned() is False
    assert c.has_extra is False


def test_proxy_and_h2():
    c = Connected().proxy(True).negotiated_h2()
    assert c.is_proxied() is True
    assert c.is_negotiated_h2() is True
    assert c.proxy(False).is_proxied() is False


def test_copy_shares_poison_and_keeps_fields():
    c = Connected().proxy(True).extra(Ex1(7))
    d = c.copy()
    assert d.is_proxied() is True
    assert d.is_poisoned() is False
    c.poison()
    assert d.is_poisoned() is True
    ex = Extensions()
    d.get_extras(ex)
    assert ex.get(Ex1) == Ex1(7)


def test_copy_extras_independent():
    c = Connected().extra(Ex1(1))
    d = c.copy().extra(Ex2("x"))
    ex = Extensions()
    c.get_extras(ex)
    assert ex.get(Ex2) is None
    assert ex.get(Ex1) == Ex1(1)


def test_extensions_insert_returns_previous():
    ex = Extensions()
    assert ex.insert(Ex1(1)) is None
    assert ex.insert(Ex1(2)) == Ex1(1)
    assert ex.get(Ex1) == Ex1(2)
    assert len(ex) == 1
    assert Ex1 in ex


def test_poison_pill():
    pill = PoisonPill()
    assert pill.is_poisoned() is False
    pill.poison()
    assert pill.is_poisoned() is True
    assert "poisoned: true" in repr(pill)


def test_connection_is_abstract():
    with pytest.raises(TypeError):
        Connection()

    class Fake(Connection):
        def connected(self):
            return Connected().proxy(True)

    assert Fake().connected().is_proxied() is True