# Glue between GameState and the generic search in mcts.py.
# The search only ever talks to a game through the functions below, so it
# knows nothing about cards or tokens.
from .common import Move, Role, Chance
from .game_state import GameState

# Scores as returned by GameState.scores(): one entry per player, lower is
# better.
Evaluation = list[int]


def current_player(state: GameState) -> Role:
    return state.role()


def available_moves(state: GameState) -> list[Move]:
    return state.possible_moves()


def state_hash(state: GameState) -> int:
    return state.fingerprint()


def make_move(state: GameState, m: Move):
    state.move(m)


def clone(state: GameState) -> GameState:
    # Every search branch works on its own copy.
    return state.copy()


class NoThanksEvaluator:
    # Stateless, so a single instance can be shared by all search threads.

    def evaluate_new_state(
            self, state: GameState,
            moves: list[Move]) -> tuple[list[None], Evaluation]:
        # No move is preferred over another; the value of a state is just
        # its current score.
        return [None] * len(moves), state.scores()

    def evaluate_existing_state(
            self, state: GameState, evaluation: Evaluation) -> Evaluation:
        # Reached again through a transposition; trust what we stored.
        return evaluation

    def interpret_evaluation_for_player(
            self, evaluation: Evaluation, player: Role) -> int:
        # The search maximizes utility for whoever is to move, while a
        # score is a penalty, hence the sign flip. Chance doesn't care.
        if isinstance(player, Chance):
            return 0
        return -evaluation[player.index]
