"""Game domain services: settlement variants per game type.

Each variant validates selections and outcomes and classifies a wager
against a declared outcome. Placement and settlement services own the
transaction; these classes never touch balances.
"""
from arena.errors import ValidationError
from .base import Classification, Game
from .bingo import BingoSession
from .horse_race import HorseRace
from .lucky2 import Lucky2Draw
from .rps import RpsDuel
from .versus import VersusMarket

GAMES = {
    game.game_type: game
    for game in (VersusMarket(), Lucky2Draw(), BingoSession(), HorseRace(), RpsDuel())
}


def get_game(game_type: str) -> Game:
    try:
        return GAMES[game_type]
    except KeyError:
        raise ValidationError(f"Unknown game type '{game_type}'")


__all__ = ['Classification', 'Game', 'GAMES', 'get_game']
