# A No Thanks (card game) simulator.
from typing import Self
from .common import (
    RevealCard, PassTurn, TakeCard, Move, Chance, PlayerTurn, Role,
    InvalidConfigurationError, NUM_CARDS, DISCARDED_CARDS, STARTING_TOKENS,
    face_value)


class GameState:
    # The whole game in a handful of plain fields, so copying it for every
    # search branch is cheap.
    num_players: int
    active_tokens: int  # tokens sitting on the revealed card
    active_card: int | None  # index of the revealed card; None -> chance to move
    active_player: int  # who has to pass or take the revealed card
    cards_taken: int
    player_tokens: list[int]
    card_owners: list[int | None]  # card index -> player who took it

    def __init__(self, num_players: int):
        if num_players not in STARTING_TOKENS:
            raise InvalidConfigurationError(
                f"No Thanks is played by 3-7 players, not {num_players}")
        self.num_players = num_players
        self.active_tokens = 0
        self.active_card = None
        self.active_player = 0
        self.cards_taken = 0
        self.player_tokens = [STARTING_TOKENS[num_players]] * num_players
        self.card_owners = [None] * NUM_CARDS

    def copy(self) -> Self:
        game_state = GameState.__new__(GameState)
        game_state.num_players = self.num_players
        game_state.active_tokens = self.active_tokens
        game_state.active_card = self.active_card
        game_state.active_player = self.active_player
        game_state.cards_taken = self.cards_taken
        game_state.player_tokens = self.player_tokens[:]
        game_state.card_owners = self.card_owners[:]
        return game_state

    def role(self) -> Role:
        if self.active_card is None:
            return Chance()
        return PlayerTurn(self.active_player)

    def is_finished(self) -> bool:
        return self.cards_taken >= NUM_CARDS - DISCARDED_CARDS

    def possible_moves(self) -> list[Move]:
        if self.is_finished():
            return []
        if self.active_card is None:
            return [RevealCard(i) for i, owner in enumerate(self.card_owners)
                    if owner is None]
        if self.player_tokens[self.active_player] > 0:
            return [PassTurn(), TakeCard()]
        # Broke players have to take.
        return [TakeCard()]

    def move(self, m: Move):
        assert m in self.possible_moves(), f"Illegal move {m}"
        if isinstance(m, RevealCard):
            self.active_card = m.card
        elif isinstance(m, PassTurn):
            self.active_tokens += 1
            self.player_tokens[self.active_player] -= 1
            self.active_player = (self.active_player + 1) % self.num_players
        else:
            self.player_tokens[self.active_player] += self.active_tokens
            self.active_tokens = 0
            self.card_owners[self.active_card] = self.active_player
            self.active_card = None
            self.cards_taken += 1
            self.active_player = (self.active_player + 1) % self.num_players

    def scores(self) -> list[int]:
        # Net standing per player; lower is better. Tokens count against
        # the card points, and a run of consecutive cards only counts its
        # lowest card.
        scores = [-t for t in self.player_tokens]
        last_owner = None
        for i, owner in enumerate(self.card_owners):
            if owner == last_owner:
                continue
            last_owner = owner
            if owner is not None:
                scores[owner] += face_value(i)
        return scores

    def _key(self) -> tuple:
        return (self.active_tokens, self.active_card, self.active_player,
                self.cards_taken, tuple(self.player_tokens),
                tuple(self.card_owners))

    def fingerprint(self) -> int:
        # Equal states always get the same fingerprint, so states reached
        # through different move orders can share a search node.
        return hash(self._key())

    def __eq__(self, other) -> bool:
        if not isinstance(other, GameState):
            return NotImplemented
        return self._key() == other._key()

    # Mutable; use fingerprint() for lookups.
    __hash__ = None

    def __str__(self) -> str:
        lines = []
        if self.active_card is not None:
            line = str(face_value(self.active_card))
            if self.active_tokens > 0:
                line += f" ({self.active_tokens} tokens)"
            lines.append(line)
        for i, tokens in enumerate(self.player_tokens):
            marker = "*" if self.active_player == i else ""
            cards = "".join(f"{face_value(c)}, " for c, owner in
                            enumerate(self.card_owners) if owner == i)
            lines.append(f"{marker}Player {i} ({tokens} tokens): {cards}")
        return "\n".join(lines) + "\n"
