"""Model exports."""
from cluehunt.models.user import User
from cluehunt.models.game import Game, Participant
from cluehunt.models.clue_set import ClueSet, Hunt, Clue

__all__ = [
    "User",
    "Game",
    "Participant",
    "ClueSet",
    "Hunt",
    "Clue",
]
