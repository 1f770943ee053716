# Play No Thanks, either computer against computer or one computer seat in a
# real game with humans.
import argparse
import logging
import random
from typing import Callable
from .common import (
    Player, RevealCard, PassTurn, TakeCard, Chance, card_index, face_value,
    InconsistentObservationError)
from .game_state import GameState
from .players import MctsPlayer
from .reconstruction import replay_take

logger = logging.getLogger(__name__)


def read_number(prompt: str, input_fn: Callable[[str], str] = input,
                out: Callable[[str], None] = print) -> int:
    # Keep asking until we get a non-negative number.
    out(prompt)
    while True:
        try:
            n = int(input_fn("").strip())
        except ValueError:
            out("Enter a number:")
            continue
        if n >= 0:
            return n
        out("Enter a number:")


# Play a whole game with `player` making every decision and the dealer
# revealing cards at random. Returns the final scores.
def play_self(num_players: int, player: Player, rng: random.Random,
              out: Callable[[str], None] = print) -> list[int]:
    game_state = GameState(num_players)
    line = ""
    while not game_state.is_finished():
        if isinstance(game_state.role(), Chance):
            game_state.move(rng.choice(game_state.possible_moves()))
            out(str(game_state))
            continue
        i = game_state.active_player
        move = player.select_move(game_state)
        if isinstance(move, PassTurn):
            line += f"{i} passes, "
        else:
            out(f"{line}{i} takes at {game_state.active_tokens} tokens\n")
            line = ""
        game_state.move(move)

    out(str(game_state))
    scores = game_state.scores()
    out(str(scores))
    return scores


def _read_card(game_state: GameState, read: Callable[[str], int],
               out: Callable[[str], None]) -> RevealCard:
    while True:
        try:
            move = RevealCard(card_index(read("Enter next card:")))
        except ValueError as e:
            out(str(e))
            continue
        if move in game_state.possible_moves():
            return move
        out(f"Card {face_value(move.card)} is already taken")


# Play one seat (which_player) of a real game. The humans only tell us which
# card got revealed and, once it's gone, at how many tokens it was taken;
# everything else is rebuilt from that. Returns the final scores.
def play_with_humans(num_players: int, which_player: int, player: Player,
                     read: Callable[[str], int] = read_number,
                     out: Callable[[str], None] = print) -> list[int]:
    if which_player < 0 or which_player >= num_players:
        raise ValueError(
            f"Seat {which_player} doesn't exist in a {num_players} player game")
    game_state = GameState(num_players)
    game_at_last_card = game_state.copy()
    while not game_state.is_finished():
        if isinstance(game_state.role(), Chance):
            game_state.move(_read_card(game_state, read, out))
            game_at_last_card = game_state.copy()
            out(str(game_state))
            continue

        # Until told otherwise, we assume the humans keep passing.
        card_gone = False
        if game_state.active_player == which_player:
            move = player.select_move(game_state)
            if isinstance(move, TakeCard):
                out(f"Take at {game_state.active_tokens} tokens\n")
                card_gone = True
            else:
                game_state.move(move)
        elif game_state.player_tokens[game_state.active_player] == 0:
            game_state.move(TakeCard())
            out("Never take\n")
            card_gone = True
        else:
            game_state.move(PassTurn())

        if card_gone:
            prompt = "When was card taken:"
            while True:
                try:
                    game_state = replay_take(game_at_last_card, read(prompt))
                    break
                except InconsistentObservationError as e:
                    out(str(e))
            logger.info("Card taken, now at %d cards", game_state.cards_taken)

    out(str(game_state))
    scores = game_state.scores()
    out(str(scores))
    return scores


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="No Thanks player based on Monte Carlo tree search")
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Log search statistics"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)
    self_play = subparsers.add_parser(
        "self-play", help="Let the computer play every seat")
    with_humans = subparsers.add_parser(
        "with-humans", help="Play one seat in a game with humans")
    for p in (self_play, with_humans):
        p.add_argument(
            "-p", "--players",
            type=int,
            required=True,
            help="Number of players (3-7)"
        )
        p.add_argument(
            "--playouts",
            type=int,
            help="Number of search playouts per decision",
            default=10_000
        )
        p.add_argument(
            "--threads",
            type=int,
            help="Number of search threads",
            default=1
        )
        p.add_argument(
            "--time-limit",
            type=float,
            help="Seconds to think per decision, 0 for no limit",
            default=0
        )
        p.add_argument(
            "--seed",
            type=int,
            help="Random seed",
            default=None
        )
    with_humans.add_argument(
        "-w", "--which-player",
        type=int,
        required=True,
        help="Seat of the computer player, starting at 0"
    )
    return parser


def make_player(args: argparse.Namespace) -> MctsPlayer:
    return MctsPlayer(num_playouts=args.playouts, num_threads=args.threads,
                      move_time_limit_seconds=args.time_limit, seed=args.seed)


def main():
    args = build_parser().parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(name)s %(levelname)s: %(message)s")
    player = make_player(args)
    if args.command == "self-play":
        play_self(args.players, player, random.Random(args.seed))
    else:
        play_with_humans(args.players, args.which_player, player)


if __name__ == "__main__":
    main()
