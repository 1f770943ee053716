# No Thanks players.
import logging
import random
from .common import Player, Move, Chance, NoMovesError
from .game_state import GameState
from .mcts import MctsManager
from .search_adapter import NoThanksEvaluator

logger = logging.getLogger(__name__)


class RandomPlayer(Player):
    # A baseline player that randomly selects from the possible moves. Also
    # serves as the dealer: on chance states it reveals a random card.
    _rng: random.Random

    def __init__(self, rng: random.Random | None = None):
        self._rng = rng if rng is not None else random.Random()

    def select_move(self, state: GameState) -> Move:
        return self._rng.choice(state.possible_moves())


class MctsPlayer(Player):
    # Picks the most visited move after running a tree search from the
    # current state.
    # On reasonable values: the search only adds one node per playout, and
    # a fresh reveal has up to 33 children, so a few thousand playouts are
    # the minimum for anything sensible.
    # On timing: a playout takes about 1ms and 2KB of tree, so the default
    # 10k is ~10s per decision. More threads don't help; the tree lock and
    # the GIL serialize them. Use move_time_limit_seconds to cap long
    # searches.
    _num_playouts: int
    _num_threads: int
    _exploration: float
    # If >0, select_move will finish after exceeding this many seconds.
    _move_time_limit_seconds: float
    _seed: int | None

    def __init__(
            self,
            num_playouts: int = 10_000,
            num_threads: int = 1,
            exploration: float = 0.5,
            move_time_limit_seconds: float = 0,
            seed: int | None = None):
        self._num_playouts = num_playouts
        self._num_threads = num_threads
        self._exploration = exploration
        self._move_time_limit_seconds = move_time_limit_seconds
        self._seed = seed

    def select_move(self, state: GameState) -> Move:
        if state.is_finished():
            raise NoMovesError("The game is over, there is nothing to decide")
        assert not isinstance(state.role(), Chance), \
            "Chance moves come from the dealer, not from a player"
        mcts = MctsManager(state, NoThanksEvaluator(),
                           exploration=self._exploration, seed=self._seed)
        mcts.playout_n_parallel(self._num_playouts, self._num_threads,
                                self._move_time_limit_seconds)
        move = mcts.best_move()
        logger.info("Player %d: %s after %d playouts (%s)",
                    state.active_player, type(move).__name__,
                    mcts.num_playouts(),
                    ", ".join(f"{type(m).__name__} n={n} u={u:.2f}"
                              for m, n, u in mcts.root_statistics()))
        return move
