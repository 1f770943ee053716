# Self-contained module for shared types and functionality.
from dataclasses import dataclass
from abc import ABC, abstractmethod

# Cards are the integers LOW_CARD..HIGH_CARD. Internally we address them by
# index (card - LOW_CARD). DISCARDED_CARDS of them are never dealt, which we
# model by ending the game early rather than by tracking which ones are gone.
LOW_CARD = 3
HIGH_CARD = 35
DISCARDED_CARDS = 9
NUM_CARDS = HIGH_CARD - LOW_CARD + 1

# Tokens each player starts with, by number of players.
STARTING_TOKENS = {3: 11, 4: 11, 5: 11, 6: 9, 7: 7}


def card_index(face_value: int) -> int:
    if face_value < LOW_CARD or face_value > HIGH_CARD:
        raise ValueError(
            f"Card {face_value} is outside of {LOW_CARD}-{HIGH_CARD}")
    return face_value - LOW_CARD


def face_value(index: int) -> int:
    return index + LOW_CARD


# Classes that represent moves. RevealCard is played by chance (or typed in
# by whoever watches a real game), the other two by the active player.


@dataclass(frozen=True)
class RevealCard:
    card: int  # card index, not face value


@dataclass(frozen=True)
class PassTurn:
    pass


@dataclass(frozen=True)
class TakeCard:
    pass


Move = RevealCard | PassTurn | TakeCard

# Who has to decide in a given state.


@dataclass(frozen=True)
class Chance:
    pass


@dataclass(frozen=True)
class PlayerTurn:
    index: int


Role = Chance | PlayerTurn


class InvalidConfigurationError(ValueError):
    # Raised when a game is set up with an unsupported number of players.
    pass


class InconsistentObservationError(ValueError):
    # Raised when a reported observation can't be explained by legal moves.
    pass


class NoMovesError(RuntimeError):
    # Raised when asking for a best move in a state without legal moves.
    pass


class Player(ABC):
    # Abstract base class. The game loop hands a player the state it has to
    # decide on, and the player picks one of state.possible_moves(). Players
    # must not modify the state they are given.
    @abstractmethod
    def select_move(self, state) -> Move:
        pass
