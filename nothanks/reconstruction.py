# Recovering what happened to a card from what a human could see.
#
# When playing against humans we don't type in every single pass; we only
# report how many tokens were on a card when somebody finally took it. Since
# players pass strictly in turn order and every pass adds exactly one token,
# that number tells us exactly who passed how often: replaying that many
# passes from the moment the card was revealed, followed by a take, gives the
# real state.
from .common import PassTurn, TakeCard, InconsistentObservationError
from .game_state import GameState


def replay_take(checkpoint: GameState, reported_tokens: int) -> GameState:
    # checkpoint is the state right after the card was revealed. It is left
    # untouched, so the same report always yields the same state.
    if checkpoint.active_card is None:
        raise InconsistentObservationError(
            "Checkpoint has no revealed card")
    if reported_tokens < checkpoint.active_tokens:
        raise InconsistentObservationError(
            f"Card already had {checkpoint.active_tokens} tokens, "
            f"can't have been taken at {reported_tokens}")
    game_state = checkpoint.copy()
    while game_state.active_tokens < reported_tokens:
        if PassTurn() not in game_state.possible_moves():
            raise InconsistentObservationError(
                f"Player {game_state.active_player} has no tokens left and "
                f"must have taken the card at {game_state.active_tokens} tokens")
        game_state.move(PassTurn())
    game_state.move(TakeCard())
    return game_state
