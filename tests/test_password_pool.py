import random

import pytest

from app.models.player import Player
from app.services.errors import InsufficientPasswords
from app.utils.password_pool import assign_passwords, build_pool, clean_submission


def _players(**words):
    return [Player(name=name, joined_at=i, submitted_passwords=ws, setup_complete=True)
            for i, (name, ws) in enumerate(words.items())]


def test_clean_submission_trims_and_deduplicates():
    assert clean_submission(["  tree ", "", "Tree", "red   car", "   "]) == ["tree", "red car"]


def test_build_pool_keeps_submitter():
    pool = build_pool(_players(Ann=["tree"], Bob=["car", "sun"]))
    assert pool == [("tree", "Ann"), ("car", "Bob"), ("sun", "Bob")]


def test_two_players_swap_passwords():
    assigned = assign_passwords(_players(Ann=["tree"], Bob=["car"]), seed=1)
    assert assigned == {"Ann": "car", "Bob": "tree"}


@pytest.mark.parametrize("seed", range(30))
def test_nobody_gets_their_own_password(seed):
    players = _players(Ann=["tree", "lamp"], Bob=["car"], Cid=["sun", "moon"], Dee=["fish"])
    rng = random.Random(seed)
    try:
        assigned = assign_passwords(players, rng=rng)
    except InsufficientPasswords:
        return
    owners = {word: p.name for p in players for word in p.submitted_passwords}
    assert set(assigned) == {"Ann", "Bob", "Cid", "Dee"}
    for name, word in assigned.items():
        assert owners[word] != name
    assert len(set(assigned.values())) == 4


def test_same_word_submitted_by_two_players_is_not_dealt_back():
    players = _players(Ann=["car"], Bob=["car", "tree"], Cid=["sun"])
    for seed in range(20):
        try:
            assigned = assign_passwords(players, seed=seed)
        except InsufficientPasswords:
            continue
        assert assigned["Ann"] != "car"
        assert assigned["Bob"] not in ("car", "tree")


def test_single_submitter_cannot_be_served():
    players = _players(Ann=["tree", "car"], Bob=[])
    with pytest.raises(InsufficientPasswords):
        assign_passwords(players, seed=0)
