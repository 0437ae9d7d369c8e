import random

import pytest

from app.services import transition_engine as engine
from app.services.errors import InsufficientPasswords
from app.services.session_store import LocalSessionStore, set_store
from app.services.ws_manager import WS


@pytest.fixture(autouse=True)
def local_store():
    """Fresh in-process store for every test."""
    store = LocalSessionStore()
    set_store(store)
    WS.close_all()
    try:
        yield store
    finally:
        WS.close_all()
        set_store(None)


@pytest.fixture
def lobby():
    session = engine.create_session("Ann", "ABC123", now=0.0)
    session = engine.join_session(session, "Bob")
    return engine.join_session(session, "Cid")


@pytest.fixture
def submitting(lobby):
    session = engine.advance_to_password_submission(lobby)
    session = engine.submit_passwords(session, "Ann", ["red car"])
    session = engine.submit_passwords(session, "Bob", ["blue sky"])
    return engine.submit_passwords(session, "Cid", ["green tree"])


@pytest.fixture
def playing(submitting):
    """Three players, passwords dealt with a fixed seed (retrying dead-end draws)."""
    rng = random.Random(7)
    for _ in range(50):
        try:
            return engine.start_playing(submitting, rng=rng)
        except InsufficientPasswords:
            continue
    raise AssertionError("could not deal passwords")
