import pytest

from assets_availability.sources.providers.session import OrderSession, SessionState


def test_new_session_needs_an_order():
    session = OrderSession(batch_size=3)
    assert session.state is SessionState.NO_SESSION
    assert session.needs_order


def test_activate_then_expire_after_batch():
    session = OrderSession(batch_size=2)
    session.activate("order-1")
    assert session.state is SessionState.ACTIVE
    assert not session.needs_order

    session.pair_processed()
    assert session.state is SessionState.ACTIVE
    session.pair_processed()
    assert session.state is SessionState.EXPIRED
    assert session.needs_order


def test_expiry_signal_and_reactivation():
    session = OrderSession(batch_size=50)
    session.activate("order-1")
    session.pair_processed()
    session.expire()
    assert session.state is SessionState.EXPIRED

    session.activate("order-2")
    assert session.order_id == "order-2"
    assert session.pairs_processed == 0
    assert session.orders_created == 2


def test_pairs_without_active_order_are_not_counted():
    session = OrderSession(batch_size=1)
    session.pair_processed()
    assert session.state is SessionState.NO_SESSION
    assert session.pairs_processed == 0


def test_expire_is_a_noop_without_an_order():
    session = OrderSession()
    session.expire()
    assert session.state is SessionState.NO_SESSION


def test_invalid_inputs():
    with pytest.raises(ValueError):
        OrderSession(batch_size=0)
    with pytest.raises(ValueError):
        OrderSession().activate("")
