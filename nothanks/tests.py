# Tests for No Thanks
import logging
import random
import pytest
from nothanks.common import (
    RevealCard, PassTurn, TakeCard, Chance, PlayerTurn, Player, NUM_CARDS,
    DISCARDED_CARDS, InvalidConfigurationError, InconsistentObservationError,
    NoMovesError, card_index, face_value)
from nothanks.game_state import GameState
from nothanks.mcts import MctsManager
from nothanks.players import RandomPlayer, MctsPlayer
from nothanks.reconstruction import replay_take
from nothanks.search_adapter import NoThanksEvaluator
from nothanks.main import (
    play_self, play_with_humans, read_number, build_parser, make_player)
from nothanks import search_adapter


def _finished_game(num_players: int = 3) -> GameState:
    # Every player took cards in turn until the game ended.
    game_state = GameState(num_players)
    for i in range(NUM_CARDS - DISCARDED_CARDS):
        game_state.move(RevealCard(i))
        game_state.move(TakeCard())
    return game_state


def test_setup():
    for num_players, tokens in [(3, 11), (4, 11), (5, 11), (6, 9), (7, 7)]:
        game_state = GameState(num_players)
        assert game_state.player_tokens == [tokens] * num_players
        assert game_state.card_owners == [None] * NUM_CARDS
        assert game_state.active_card is None
        assert game_state.active_tokens == 0
        assert game_state.cards_taken == 0
        assert game_state.role() == Chance()
    for num_players in [0, 2, 8]:
        with pytest.raises(InvalidConfigurationError):
            GameState(num_players)
    # It's a ValueError too.
    with pytest.raises(ValueError):
        GameState(8)


def test_card_index():
    assert card_index(3) == 0
    assert card_index(35) == 32
    assert face_value(3) == 6
    with pytest.raises(ValueError):
        card_index(2)
    with pytest.raises(ValueError):
        card_index(36)


def test_possible_moves():
    game_state = GameState(3)
    moves = game_state.possible_moves()
    assert moves == [RevealCard(i) for i in range(NUM_CARDS)]
    game_state.move(RevealCard(5))
    assert game_state.role() == PlayerTurn(0)
    assert game_state.possible_moves() == [PassTurn(), TakeCard()]
    game_state.move(TakeCard())
    assert RevealCard(5) not in game_state.possible_moves()
    assert len(game_state.possible_moves()) == NUM_CARDS - 1

    # Broke players have to take.
    game_state.move(RevealCard(6))
    game_state.player_tokens[game_state.active_player] = 0
    assert game_state.possible_moves() == [TakeCard()]


def test_illegal_moves():
    game_state = GameState(3)
    with pytest.raises(AssertionError):
        game_state.move(PassTurn())
    with pytest.raises(AssertionError):
        game_state.move(TakeCard())
    game_state.move(RevealCard(0))
    with pytest.raises(AssertionError):
        game_state.move(RevealCard(1))
    game_state.move(TakeCard())
    with pytest.raises(AssertionError):
        game_state.move(RevealCard(0))
    game_state.move(RevealCard(1))
    game_state.player_tokens[game_state.active_player] = 0
    with pytest.raises(AssertionError):
        game_state.move(PassTurn())


def test_scenario():
    game_state = GameState(3)
    game_state.move(RevealCard(3))
    assert game_state.active_card == 3
    assert game_state.active_tokens == 0
    game_state.move(PassTurn())
    assert game_state.player_tokens == [10, 11, 11]
    assert game_state.active_tokens == 1
    assert game_state.active_player == 1
    game_state.move(PassTurn())
    assert game_state.player_tokens == [10, 10, 11]
    assert game_state.active_tokens == 2
    game_state.move(TakeCard())
    assert game_state.player_tokens == [10, 10, 13]
    assert game_state.active_card is None
    assert game_state.active_tokens == 0
    assert game_state.cards_taken == 1
    assert game_state.card_owners[3] == 2
    # The player after the taker decides on the next card.
    assert game_state.active_player == 0
    # Card 6 minus 13 tokens.
    assert game_state.scores() == [-10, -10, -7]


def test_reveal_and_take():
    game_state = GameState(4)
    game_state.move(RevealCard(10))
    game_state.move(TakeCard())
    assert game_state.player_tokens == [11] * 4
    assert game_state.cards_taken == 1
    assert game_state.scores() == [13 - 11, -11, -11, -11]


def test_scores():
    game_state = GameState(3)
    # Solitary card.
    game_state.card_owners[10] = 1
    assert game_state.scores() == [-11, 13 - 11, -11]
    # A run of three only counts its lowest card.
    game_state.card_owners[5] = 0
    game_state.card_owners[6] = 0
    game_state.card_owners[7] = 0
    assert game_state.scores() == [8 - 11, 13 - 11, -11]
    # Somebody else's card in between breaks a run...
    game_state.card_owners[6] = 2
    assert game_state.scores() == [8 + 10 - 11, 13 - 11, 9 - 11]
    # ...and so does a gap.
    game_state.card_owners[6] = None
    assert game_state.scores() == [8 + 10 - 11, 13 - 11, -11]
    game_state.player_tokens = [0, 3, 20]
    assert game_state.scores() == [18, 10, -20]


def test_random_games():
    # Play random games and check the invariants after every move.
    for seed in range(20):
        rng = random.Random(seed)
        num_players = 3 + seed % 5
        game_state = GameState(num_players)
        total_tokens = sum(game_state.player_tokens)
        dealer = RandomPlayer(rng)
        while not game_state.is_finished():
            moves = game_state.possible_moves()
            assert moves
            game_state.move(dealer.select_move(game_state))
            assert sum(game_state.player_tokens) + \
                game_state.active_tokens == total_tokens
            assert min(game_state.player_tokens) >= 0
            assert 0 <= game_state.active_player < num_players
            assert game_state.cards_taken == len(
                [o for o in game_state.card_owners if o is not None])
            if game_state.active_card is None:
                assert game_state.active_tokens == 0
        assert game_state.possible_moves() == []
        assert game_state.cards_taken == NUM_CARDS - DISCARDED_CARDS
        assert game_state.card_owners.count(None) == DISCARDED_CARDS


def test_terminal():
    game_state = _finished_game()
    assert game_state.is_finished()
    assert game_state.possible_moves() == []
    assert game_state.role() == Chance()
    with pytest.raises(AssertionError):
        game_state.move(RevealCard(NUM_CARDS - 1))


def test_copy_and_fingerprint():
    game_state = GameState(5)
    game_state.move(RevealCard(7))
    game_state.move(PassTurn())
    copy = game_state.copy()
    assert copy == game_state
    assert copy.fingerprint() == game_state.fingerprint()
    # Copies are independent.
    copy.move(TakeCard())
    assert copy != game_state
    assert copy.fingerprint() != game_state.fingerprint()
    assert game_state.active_card == 7
    assert game_state.card_owners[7] is None

    # The same state reached by different moves shares the fingerprint:
    # player 0 takes cards 3 and 4, in either order.
    a = GameState(3)
    b = GameState(3)
    for game_state, cards in [(a, [0, 1]), (b, [1, 0])]:
        game_state.move(RevealCard(cards[0]))
        game_state.move(TakeCard())
        game_state.move(RevealCard(cards[1]))
        game_state.move(PassTurn())
        game_state.move(PassTurn())
        game_state.move(TakeCard())
    assert a.player_tokens == b.player_tokens == [13, 10, 10]
    assert a.card_owners == b.card_owners
    assert a == b
    assert a.fingerprint() == b.fingerprint()
    # Mutable, so not usable as a dict key.
    with pytest.raises(TypeError):
        hash(a)


def test_str():
    game_state = GameState(3)
    game_state.move(RevealCard(0))
    game_state.move(TakeCard())
    game_state.move(RevealCard(9))
    game_state.move(PassTurn())
    assert str(game_state) == (
        "12 (1 tokens)\n"
        "Player 0 (11 tokens): 3, \n"
        "Player 1 (10 tokens): \n"
        "*Player 2 (11 tokens): \n")


def test_search_adapter():
    game_state = GameState(3)
    assert search_adapter.current_player(game_state) == Chance()
    assert len(search_adapter.available_moves(game_state)) == NUM_CARDS
    game_state.move(RevealCard(3))
    game_state.move(PassTurn())
    game_state.move(PassTurn())
    game_state.move(TakeCard())

    evaluator = NoThanksEvaluator()
    moves = search_adapter.available_moves(game_state)
    priors, evaluation = evaluator.evaluate_new_state(game_state, moves)
    assert priors == [None] * len(moves)
    assert evaluation == [-10, -10, -7]
    assert evaluator.evaluate_existing_state(
        game_state, evaluation) is evaluation
    assert evaluator.interpret_evaluation_for_player(
        evaluation, Chance()) == 0
    assert evaluator.interpret_evaluation_for_player(
        evaluation, PlayerTurn(0)) == 10
    assert evaluator.interpret_evaluation_for_player(
        evaluation, PlayerTurn(2)) == 7

    clone = search_adapter.clone(game_state)
    search_adapter.make_move(clone, RevealCard(0))
    assert search_adapter.state_hash(clone) != search_adapter.state_hash(
        game_state)
    assert game_state.active_card is None


def test_mcts():
    # No moves, no best move.
    mcts = MctsManager(_finished_game(), NoThanksEvaluator())
    mcts.playout_n(10)
    with pytest.raises(NoMovesError):
        mcts.best_move()

    # Forced take.
    game_state = GameState(3)
    game_state.move(RevealCard(4))
    game_state.player_tokens[0] = 0
    mcts = MctsManager(game_state, NoThanksEvaluator(), seed=0)
    mcts.playout_n(20)
    assert mcts.best_move() == TakeCard()

    # A 3 with 20 tokens on it is too good to pass on.
    game_state = GameState(3)
    game_state.move(RevealCard(0))
    game_state.player_tokens = [1, 6, 6]
    game_state.active_tokens = 20
    mcts = MctsManager(game_state, NoThanksEvaluator(), seed=0)
    mcts.playout_n(500)
    assert mcts.best_move() == TakeCard()
    assert mcts.num_playouts() == 500
    stats = {type(m): (n, u) for m, n, u in mcts.root_statistics()}
    assert stats[TakeCard][0] > stats[PassTurn][0]
    # The search works on its own copy.
    assert game_state.active_tokens == 20
    assert game_state.card_owners[0] is None


def test_mcts_chance_nodes():
    # Chance doesn't care about the outcome, so all reveals get visited
    # equally often.
    mcts = MctsManager(GameState(3), NoThanksEvaluator(), seed=1)
    mcts.playout_n(3 * NUM_CARDS)
    assert [n for _, n, _ in mcts.root_statistics()] == [3] * NUM_CARDS
    assert all(u == 0 for _, _, u in mcts.root_statistics())


def test_mcts_parallel():
    game_state = GameState(4)
    game_state.move(RevealCard(20))
    mcts = MctsManager(game_state, NoThanksEvaluator(), seed=2)
    mcts.playout_n_parallel(400, 4)
    assert mcts.num_playouts() == 400
    assert sum(n for _, n, _ in mcts.root_statistics()) == 400
    assert 1 < mcts.tree_size() <= 401
    assert mcts.best_move() in game_state.possible_moves()


def test_mcts_table_capacity():
    game_state = GameState(3)
    game_state.move(RevealCard(20))
    mcts = MctsManager(game_state, NoThanksEvaluator(), table_capacity=10,
                       seed=3)
    mcts.playout_n(200)
    assert mcts.tree_size() == 10
    assert mcts.num_playouts() == 200


class OwnerBlindGame:
    # Like search_adapter, but the hash ignores who owns which card. States
    # that only differ in that collide and share a node; their legal moves
    # are the same, so the search can't go wrong by mixing them up.
    current_player = staticmethod(search_adapter.current_player)
    available_moves = staticmethod(search_adapter.available_moves)
    make_move = staticmethod(search_adapter.make_move)
    clone = staticmethod(search_adapter.clone)

    @staticmethod
    def state_hash(state):
        return hash((tuple(o is None for o in state.card_owners),
                     state.active_card, state.active_tokens,
                     state.active_player, tuple(state.player_tokens)))


class CountingEvaluator(NoThanksEvaluator):
    def __init__(self):
        self.new_states = 0
        self.existing_states = 0

    def evaluate_new_state(self, state, moves):
        self.new_states += 1
        return super().evaluate_new_state(state, moves)

    def evaluate_existing_state(self, state, evaluation):
        self.existing_states += 1
        return super().evaluate_existing_state(state, evaluation)


def test_mcts_transpositions():
    # Two cards from the end, nobody has tokens left, so every revealed card
    # is taken right away. Revealing 25 then 26 or 26 then 25 ends the game
    # with the same cards gone, which the owner-blind hash can't tell apart.
    game_state = GameState(3)
    for i in range(22):
        game_state.card_owners[i] = i % 3
    game_state.cards_taken = 22
    game_state.player_tokens = [0, 0, 0]
    evaluator = CountingEvaluator()
    mcts = MctsManager(game_state, evaluator, game=OwnerBlindGame, seed=4)
    mcts.playout_n(1000)

    # 11 reveals, 11 takes, 110 second reveals, but only 55 distinct ends.
    assert evaluator.new_states == 1 + 11 + 11 + 110 + 55
    assert evaluator.existing_states == 55
    assert mcts.tree_size() == evaluator.new_states

    def end_node(first, second):
        node = mcts._root.children[mcts._root.moves.index(RevealCard(first))]
        node = node.children[0]
        node = node.children[node.moves.index(RevealCard(second))]
        return node, node.children[0]

    parent_a, end_a = end_node(22, 23)
    parent_b, end_b = end_node(23, 22)
    assert parent_a is not parent_b
    assert end_a is end_b
    assert end_a.moves == ()
    assert mcts.best_move() in game_state.possible_moves()


def test_mcts_time_limit(caplog):
    caplog.set_level(logging.DEBUG, logger="nothanks.mcts")
    game_state = GameState(3)
    game_state.move(RevealCard(20))
    mcts = MctsManager(game_state, NoThanksEvaluator(), seed=5)
    mcts.playout_n(1_000_000, time_limit_seconds=0.05)
    assert 0 < mcts.num_playouts() < 1_000_000
    # The log reports what actually ran, not what was asked for.
    assert f"{mcts.num_playouts()} playouts in" in caplog.text

    mcts = MctsManager(game_state, NoThanksEvaluator(), seed=5)
    mcts.playout_n_parallel(1_000_000, 2, time_limit_seconds=0.05)
    assert mcts.num_playouts() < 1_000_000
    assert f"{mcts.num_playouts()} playouts on 2 threads" in caplog.text


def test_mcts_player():
    player = MctsPlayer(num_playouts=20, seed=0)
    with pytest.raises(NoMovesError):
        player.select_move(_finished_game())
    with pytest.raises(AssertionError):
        player.select_move(GameState(3))
    game_state = GameState(3)
    game_state.move(RevealCard(4))
    game_state.player_tokens[0] = 0
    assert player.select_move(game_state) == TakeCard()


def test_replay_take():
    checkpoint = GameState(3)
    checkpoint.move(RevealCard(3))
    before = checkpoint.copy()

    # Same as test_scenario, but we're only told the card went at 2 tokens.
    expected = checkpoint.copy()
    expected.move(PassTurn())
    expected.move(PassTurn())
    expected.move(TakeCard())
    game_state = replay_take(checkpoint, 2)
    assert game_state == expected
    assert game_state.scores() == [-10, -10, -7]
    assert checkpoint == before
    # Replaying again gives the same result.
    assert replay_take(checkpoint, 2) == game_state

    # Taken right away.
    game_state = replay_take(checkpoint, 0)
    assert game_state.card_owners[3] == 0
    assert game_state.player_tokens == [11, 11, 11]

    # Passes go around the table.
    game_state = replay_take(checkpoint, 4)
    assert game_state.card_owners[3] == 1
    assert game_state.player_tokens == [9, 10 + 4, 10]
    assert game_state.cards_taken == 1
    assert game_state.active_player == 2


def test_replay_take_inconsistent():
    # Nothing revealed.
    with pytest.raises(InconsistentObservationError):
        replay_take(GameState(3), 0)

    checkpoint = GameState(3)
    checkpoint.move(RevealCard(3))
    checkpoint.player_tokens[1] = 0
    # Player 1 can't pass, so the card can't have gone for more than 1.
    assert replay_take(checkpoint, 1).card_owners[3] == 1
    with pytest.raises(InconsistentObservationError):
        replay_take(checkpoint, 2)

    checkpoint = GameState(3)
    checkpoint.move(RevealCard(3))
    checkpoint.move(PassTurn())
    with pytest.raises(InconsistentObservationError):
        replay_take(checkpoint, 0)
    with pytest.raises(InconsistentObservationError):
        replay_take(checkpoint, 100)


def test_read_number():
    inputs = iter(["x", "-1", " 7 "])
    output = []
    assert read_number("Enter next card:", lambda _: next(inputs),
                       output.append) == 7
    assert output == ["Enter next card:", "Enter a number:", "Enter a number:"]


def test_play_self():
    output = []
    scores = play_self(3, RandomPlayer(random.Random(0)), random.Random(1),
                       output.append)
    assert len(scores) == 3
    assert output[-1] == str(scores)
    assert len([o for o in output if "takes at" in o]) == \
        NUM_CARDS - DISCARDED_CARDS


def test_play_self_mcts():
    scores = play_self(4, MctsPlayer(num_playouts=30, seed=0),
                       random.Random(0), lambda _: None)
    assert len(scores) == 4


class AlwaysTakePlayer(Player):
    def select_move(self, state):
        return TakeCard()


def test_play_with_humans():
    # Cards come in order 3, 4, 5, ... and every card goes to whoever is up
    # when it's revealed. Bad input along the way gets asked again.
    cards = iter([50, 3, 3] + list(range(4, 27)))
    reports = iter([100, 0] + [0] * 23)

    def read(prompt):
        if prompt.startswith("Enter next card"):
            return next(cards)
        assert prompt == "When was card taken:"
        return next(reports)

    output = []
    scores = play_with_humans(3, 0, AlwaysTakePlayer(), read, output.append)
    # Cards go to players 0, 1, 2, 0, 1, ... so there are no runs.
    assert scores == [sum(range(3, 27, 3)) - 11,
                      sum(range(4, 27, 3)) - 11,
                      sum(range(5, 27, 3)) - 11]
    assert "Card 50 is outside of 3-35" in output
    assert "Card 3 is already taken" in output
    assert output[-1] == str(scores)
    # The computer wants every card.
    assert len([o for o in output if o.startswith("Take at")]) == 24


def test_play_with_humans_seat():
    with pytest.raises(ValueError):
        play_with_humans(3, 3, AlwaysTakePlayer(), lambda _: 0)


def test_command_line():
    args = build_parser().parse_args(["self-play", "-p", "4"])
    assert args.players == 4
    assert args.playouts == 10_000
    assert args.threads == 1
    assert args.time_limit == 0
    player = make_player(args)
    assert player._num_playouts == 10_000
    assert player._num_threads == 1
    # Same defaults as MctsPlayer itself.
    assert MctsPlayer()._num_playouts == args.playouts

    args = build_parser().parse_args(
        ["with-humans", "-p", "5", "-w", "2", "--playouts", "500",
         "--threads", "2", "--time-limit", "2.5", "--seed", "7"])
    assert args.which_player == 2
    player = make_player(args)
    assert player._num_playouts == 500
    assert player._num_threads == 2
    assert player._move_time_limit_seconds == 2.5
    assert player._seed == 7


def test_mcts_player_time_limit():
    # A million playouts would take far too long; the time limit cuts the
    # search short and still gives a legal move.
    player = MctsPlayer(num_playouts=1_000_000, move_time_limit_seconds=0.05,
                        seed=0)
    game_state = GameState(3)
    game_state.move(RevealCard(20))
    assert player.select_move(game_state) in game_state.possible_moves()
