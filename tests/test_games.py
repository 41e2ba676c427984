from __future__ import annotations

import pytest

from cabinet.cogs.games import GAME_RESPONSES, UNKNOWN_GAME, game_response


@pytest.mark.parametrize("game", ["chuni", "mai2", "mu3"])
def test_every_option_has_a_reply(game):
    for option in ("oldest", "newest", "faq"):
        assert game_response(game, option) == GAME_RESPONSES[game][option]


def test_known_replies():
    assert game_response("chuni", "newest") == "Chunithm newest supported version: Chunithm VERSE (2.30)"
    assert game_response("mu3", "oldest") == "Ongeki oldest supported version: O.N.G.E.K.I. (1.00)"


def test_unknown_option_falls_back_to_game_default():
    assert game_response("mai2", "changelog") == "Unknown option selected for maimai."
    assert game_response("mai2", None) == "Unknown option selected for maimai."


def test_unknown_game():
    assert game_response("diva", "faq") == UNKNOWN_GAME
