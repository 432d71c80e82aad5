"""
Tests for chance and community chest card resolution.
"""

import random

import pytest

from tycoon.core.game.cards import (
    CHANCE_CARDS,
    COMMUNITY_CHEST_CARDS,
    Card,
    CardRule,
    CardType,
    Deck,
    card_target,
    draw_card,
    resolve_card,
)


def test_deck_sizes():
    assert len(CHANCE_CARDS) == 15
    assert len(COMMUNITY_CHEST_CARDS) == 16


def test_card_target():
    assert card_target(None, 7) == 7
    assert card_target(0, 7) == 0
    assert card_target(24, 7) == 24
    assert card_target(-3, 7) == 4
    assert card_target(-3, 2) == 39


def test_per_player_debit_pays_every_other_seat():
    """Per-player card for 10 with three opponents: drawer -30, each other seat +10."""
    card = Card("Pay each player $10", CardType.DEBIT, amount=10, rule=CardRule.PER_PLAYER)
    effect = resolve_card(card, Deck.CHANCE, old_position=4, new_position=7, other_seats=3)
    assert effect.balance_delta == -30
    assert effect.others_delta == 10
    assert effect.position == 7


def test_per_player_ignores_base_type():
    card = Card("Odd card", CardType.CREDIT, amount=25, rule=CardRule.PER_PLAYER)
    effect = resolve_card(card, Deck.COMMUNITY_CHEST, 0, 2, other_seats=2)
    assert effect.balance_delta == -50
    assert effect.others_delta == 25


def test_credit_and_debit():
    credit = Card("Dividend", CardType.CREDIT, amount=50)
    debit = Card("Fine", CardType.DEBIT, amount=15)
    assert resolve_card(credit, Deck.CHANCE, 3, 7, 1).balance_delta == 50
    assert resolve_card(debit, Deck.CHANCE, 3, 7, 1).balance_delta == -15


def test_absolute_and_relative_moves():
    advance = Card("Advance to Boardwalk", CardType.MOVE, position=39)
    back = Card("Go back 3", CardType.MOVE, position=-3)
    assert resolve_card(advance, Deck.CHANCE, 3, 7, 1).position == 39
    assert resolve_card(back, Deck.CHANCE, 3, 7, 1).position == 4


def test_debit_and_move():
    card = Card("Fine and back 2", CardType.DEBIT_AND_MOVE, amount=15, position=-2)
    effect = resolve_card(card, Deck.CHANCE, 30, 36, 1)
    assert effect.balance_delta == -15
    assert effect.position == 34


def test_nearest_rules():
    utility = Card("Nearest utility", CardType.MOVE, rule=CardRule.NEAREST_UTILITY)
    railroad = Card("Nearest railroad", CardType.MOVE, rule=CardRule.NEAREST_RAILROAD)
    assert resolve_card(utility, Deck.CHANCE, 0, 7, 1).position == 12
    assert resolve_card(utility, Deck.CHANCE, 30, 36, 1).position == 12
    assert resolve_card(railroad, Deck.CHANCE, 18, 22, 1).position == 25
    assert resolve_card(railroad, Deck.CHANCE, 30, 36, 1).position == 5


@pytest.mark.parametrize("deck", [Deck.CHANCE, Deck.COMMUNITY_CHEST])
def test_get_out_of_jail_free(deck):
    card = Card("Get Out of Jail Free", CardType.CREDIT, rule=CardRule.GET_OUT_OF_JAIL_FREE)
    effect = resolve_card(card, deck, 0, 7, 1)
    assert effect.balance_delta == 0
    assert effect.jail_card is deck
    assert effect.position == 7


def test_go_to_jail_penalty_only_when_wrapped():
    card = Card("Go to Jail", CardType.MOVE, position=10, rule=CardRule.GO_TO_JAIL)
    wrapped = resolve_card(card, Deck.CHANCE, old_position=36, new_position=2, other_seats=1)
    straight = resolve_card(card, Deck.CHANCE, old_position=2, new_position=7, other_seats=1)
    assert wrapped.balance_delta == -200
    assert straight.balance_delta == 0
    assert wrapped.in_jail and straight.in_jail
    assert wrapped.position == straight.position == 10


def test_draw_card_is_deterministic_with_seed():
    first = draw_card(CHANCE_CARDS, random.Random(7))
    second = draw_card(CHANCE_CARDS, random.Random(7))
    assert first == second


def test_draw_from_empty_deck():
    with pytest.raises(ValueError):
        draw_card(())
