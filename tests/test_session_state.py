"""
BridgeSession 測試
"""

from browser_bridge.bridge.models import TabRecord
from browser_bridge.bridge.session_state import BridgeSession


def test_listing_replaces_known_ids_and_moves_current_target():
    session = BridgeSession()
    session.remember_listing([TabRecord(1, "https://old.test", "Old")])

    session.remember_listing(
        [
            TabRecord(501, "https://a.test", "A"),
            TabRecord(502, "https://b.test", "B", active=True),
        ]
    )

    assert session.url_for(1) is None
    assert session.url_for(501) == "https://a.test"
    assert (session.current.tab_id, session.current.url) == (502, "https://b.test")


def test_set_current_without_url_keeps_previous_url():
    session = BridgeSession()
    session.set_current(3, "https://a.test")

    session.set_current(4)

    assert (session.current.tab_id, session.current.url) == (4, "https://a.test")


def test_custom_names_are_keyed_by_url():
    session = BridgeSession()

    session.rename("https://a.test", "Inbox")

    assert session.custom_name_for("https://a.test") == "Inbox"
    session.rename("https://a.test", "   ")
    assert session.custom_name_for("https://a.test") is None


def test_sessions_are_isolated():
    first, second = BridgeSession(), BridgeSession()

    first.rename("https://a.test", "Mine")
    first.set_current(9)

    assert second.custom_name_for("https://a.test") is None
    assert second.current.tab_id == 1
