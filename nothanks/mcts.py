# Monte Carlo tree search with transpositions and chance nodes.
#
# The search is generic: it only talks to the game through a `game` object
# providing current_player / available_moves / state_hash / make_move / clone
# (see search_adapter.py) and an evaluator providing evaluate_new_state,
# evaluate_existing_state and interpret_evaluation_for_player.
#
# There are no random roll-outs. Every playout descends the tree via UCT
# until it steps off it, evaluates the state it arrives at, adds it as a new
# node and backs the evaluation up the path. Evaluations are vectors (one
# entry per player), summed per move; each node reads the sums from the
# point of view of whoever is to move there. Chance reads everything as 0,
# so at chance nodes UCT degenerates into visiting moves evenly.
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Self

import numpy as np

from . import search_adapter
from .common import NoMovesError

logger = logging.getLogger(__name__)


@dataclass
class Node:
    moves: tuple[Any, ...]
    player: Any  # role to move, as returned by game.current_player()
    evaluation: Any  # as returned by the evaluator when the node was created
    priors: list[Any]  # per move; unused by UCT but kept for other policies
    N: np.ndarray  # move index -> visit count
    W: np.ndarray  # move index -> sum of evaluation vectors
    children: list[Self | None]  # move index -> child, once expanded


class MctsManager:
    _root_state: Any
    _game: Any
    _evaluator: Any
    _exploration: float
    # fingerprint -> Node. Different move orders leading to the same state
    # end up in the same node. Fingerprint collisions make two states share a
    # node (and its evaluation); we accept that approximation.
    _table: dict[int, Node]
    # If set, no new entries are added to the table once it holds this many.
    _table_capacity: int | None
    _root: Node
    _lock: threading.Lock
    _rng: np.random.Generator
    _num_playouts: int

    def __init__(self, state, evaluator, game=search_adapter,
                 exploration: float = 0.5, table_capacity: int | None = None,
                 seed: int | None = None):
        self._root_state = game.clone(state)
        self._game = game
        self._evaluator = evaluator
        self._exploration = exploration
        self._table = {}
        self._table_capacity = table_capacity
        self._lock = threading.Lock()
        self._rng = np.random.default_rng(seed)
        self._num_playouts = 0
        self._root = self._new_node(self._root_state)
        self._store(game.state_hash(self._root_state), self._root)

    def _new_node(self, state) -> Node:
        moves = tuple(self._game.available_moves(state))
        priors, evaluation = self._evaluator.evaluate_new_state(
            state, list(moves))
        return Node(moves, self._game.current_player(state), evaluation,
                    priors, np.zeros(len(moves), dtype=np.int64),
                    np.zeros((len(moves),) + np.shape(evaluation)),
                    [None] * len(moves))

    def _store(self, key: int, node: Node):
        if self._table_capacity is None or len(
                self._table) < self._table_capacity:
            self._table[key] = node

    def _select(self, node: Node) -> int:
        # UCT, trying every move once before trusting the averages.
        unvisited = np.flatnonzero(node.N == 0)
        if len(unvisited):
            return int(self._rng.choice(unvisited))
        utilities = np.array([
            self._evaluator.interpret_evaluation_for_player(w, node.player)
            for w in node.W], dtype=float)
        exploration = np.sqrt(np.log(node.N.sum()) / node.N)
        return int(np.argmax(utilities / node.N +
                             self._exploration * exploration))

    def _playout(self):
        state = self._game.clone(self._root_state)
        path: list[tuple[Node, int]] = []
        # 1. Selection. Visits are counted on the way down so that parallel
        # playouts spread over different branches.
        with self._lock:
            node = self._root
            while True:
                if not node.moves:
                    value = node.evaluation
                    self._backprop(path, value)
                    return
                i = self._select(node)
                node.N[i] += 1
                path.append((node, i))
                self._game.make_move(state, node.moves[i])
                if node.children[i] is None:
                    break
                node = node.children[i]
            key = self._game.state_hash(state)
            existing = self._table.get(key)
            if existing is not None:
                node.children[i] = existing
        # 2. Expansion and evaluation, outside the lock.
        if existing is not None:
            value = self._evaluator.evaluate_existing_state(
                state, existing.evaluation)
            with self._lock:
                self._backprop(path, value)
            return
        new_node = self._new_node(state)
        # 3. Backprop.
        with self._lock:
            # Another thread may have added the same state in the meantime.
            existing = self._table.get(key)
            if existing is None:
                self._store(key, new_node)
                existing = new_node
            if node.children[i] is None:
                node.children[i] = existing
            self._backprop(path, new_node.evaluation)

    def _backprop(self, path: list[tuple[Node, int]], value):
        for (node, i) in path:
            node.W[i] += value
        self._num_playouts += 1

    def _run(self, n: int, deadline: float | None):
        for _ in range(n):
            if deadline is not None and time.time() > deadline:
                break
            self._playout()

    def playout_n(self, n: int, time_limit_seconds: float = 0):
        start_time = time.time()
        before = self._num_playouts
        deadline = start_time + time_limit_seconds if time_limit_seconds > 0 else None
        self._run(n, deadline)
        logger.debug("%d playouts in %.2fs, %d nodes",
                     self._num_playouts - before,
                     time.time() - start_time, self.tree_size())

    def playout_n_parallel(self, n: int, num_threads: int,
                           time_limit_seconds: float = 0):
        if num_threads <= 1:
            self.playout_n(n, time_limit_seconds)
            return
        start_time = time.time()
        before = self._num_playouts
        deadline = start_time + time_limit_seconds if time_limit_seconds > 0 else None
        shares = [n // num_threads + (1 if t < n % num_threads else 0)
                  for t in range(num_threads)]
        with ThreadPoolExecutor(max_workers=num_threads) as executor:
            futures = [executor.submit(self._run, share, deadline)
                       for share in shares]
            for f in futures:
                # Re-raises whatever went wrong inside a worker.
                f.result()
        logger.debug("%d playouts on %d threads in %.2fs, %d nodes",
                     self._num_playouts - before,
                     num_threads, time.time() - start_time, self.tree_size())

    def best_move(self):
        # The most visited move at the root.
        if not self._root.moves:
            raise NoMovesError("No moves available in this state")
        return self._root.moves[int(np.argmax(self._root.N))]

    def root_statistics(self) -> list[tuple[Any, int, float]]:
        # (move, visits, average utility for the player to move) per root move.
        stats = []
        for move, n, w in zip(self._root.moves, self._root.N, self._root.W):
            utility = self._evaluator.interpret_evaluation_for_player(
                w, self._root.player)
            stats.append((move, int(n), float(utility) / n if n else 0.0))
        return stats

    def num_playouts(self) -> int:
        return self._num_playouts

    def tree_size(self) -> int:
        return len(self._table)
