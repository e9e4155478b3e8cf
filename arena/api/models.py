from __future__ import annotations

from enum import StrEnum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from arena.errors import ErrorKind


class GameType(StrEnum):
    degens_against_decency = "degens-against-decency"
    two_truths_and_a_lie = "2-truths-and-a-lie"
    poker = "poker"


class GameStatus(StrEnum):
    waiting = "waiting"
    playing = "playing"
    finished = "finished"


# ---- actions ----


class StartGameAction(BaseModel):
    type: Literal["start_game"] = "start_game"


class SubmitCardAction(BaseModel):
    type: Literal["submit_card"] = "submit_card"
    card_id: str


class JudgeSubmissionAction(BaseModel):
    type: Literal["judge_submission"] = "judge_submission"
    submission_id: str


class NextRoundAction(BaseModel):
    type: Literal["next_round"] = "next_round"


class SubmitStatementsAction(BaseModel):
    type: Literal["submit_statements"] = "submit_statements"
    # Count is checked by the game so a wrong count is a rejected move, not a schema error.
    statements: list[str]
    lie_index: int


class SubmitVoteAction(BaseModel):
    type: Literal["submit_vote"] = "submit_vote"
    statement_index: int


class RevealAction(BaseModel):
    type: Literal["reveal"] = "reveal"


class NextTurnAction(BaseModel):
    type: Literal["next_turn"] = "next_turn"


class FoldAction(BaseModel):
    type: Literal["fold"] = "fold"


class CallAction(BaseModel):
    type: Literal["call"] = "call"


class CheckAction(BaseModel):
    type: Literal["check"] = "check"


class RaiseAction(BaseModel):
    type: Literal["raise"] = "raise"
    amount: int


class TimeoutAction(BaseModel):
    """Fired by the registry when a deadline expires; never accepted from clients."""

    type: Literal["timeout"] = "timeout"
    token: int
    round: int
    phase: str


GameAction = Annotated[
    Union[
        StartGameAction,
        SubmitCardAction,
        JudgeSubmissionAction,
        NextRoundAction,
        SubmitStatementsAction,
        SubmitVoteAction,
        RevealAction,
        NextTurnAction,
        FoldAction,
        CallAction,
        CheckAction,
        RaiseAction,
        TimeoutAction,
    ],
    Field(discriminator="type"),
]


# ---- requests ----


class PlayerIn(BaseModel):
    player_id: str = Field(..., min_length=1, max_length=200)
    display_name: str | None = Field(default=None, max_length=100)
    is_bot: bool = False


class GameCreateRequest(BaseModel):
    # Checked by the registry so an unknown type is a rejected creation rather than a schema error.
    game_type: str
    creator: PlayerIn
    is_private: bool = False
    # Clamped into [3, 7] by the registry rather than rejected.
    max_players: int = 7


class BotFillRequest(BaseModel):
    count: int | None = Field(default=None, ge=1, le=6)


# ---- snapshots ----


class PlayerSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    player_id: str
    display_name: str
    is_bot: bool = False


class CardView(BaseModel):
    model_config = ConfigDict(frozen=True)

    card_id: str
    text: str
    category: str = "general"


class SubmissionView(BaseModel):
    model_config = ConfigDict(frozen=True)

    submission_id: str
    card: CardView
    # Withheld until the round is revealed.
    player_id: str | None = None


class CardMatchRoundResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    round: int
    judge_id: str | None
    prompt: CardView | None
    winner_id: str | None = None
    winning_submission_id: str | None = None
    submissions: list[SubmissionView] = Field(default_factory=list)


class CardMatchDetails(BaseModel):
    model_config = ConfigDict(frozen=True)

    game_type: Literal["degens-against-decency"] = "degens-against-decency"
    phase: str | None = None
    judge: PlayerSummary | None = None
    prompt: CardView | None = None
    submitted_player_ids: list[str] = Field(default_factory=list)
    awaiting_player_ids: list[str] = Field(default_factory=list)
    submission_count: int = 0
    max_rounds: int
    cards_remaining: int = 0
    last_result: CardMatchRoundResult | None = None
    winners: list[str] = Field(default_factory=list)


class StatementView(BaseModel):
    model_config = ConfigDict(frozen=True)

    index: int
    text: str
    # Hidden (None) until the turn is revealed.
    is_lie: bool | None = None


class VoteResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    voter_id: str
    statement_index: int
    correct: bool


class TwoTruthsTurnResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    turn: int
    actor_id: str
    lie_index: int | None
    votes: list[VoteResult] = Field(default_factory=list)
    points_awarded: dict[str, int] = Field(default_factory=dict)
    skipped: bool = False


class TwoTruthsDetails(BaseModel):
    model_config = ConfigDict(frozen=True)

    game_type: Literal["2-truths-and-a-lie"] = "2-truths-and-a-lie"
    phase: str | None = None
    actor: PlayerSummary | None = None
    prompt: str | None = None
    statements: list[StatementView] = Field(default_factory=list)
    voter_ids: list[str] = Field(default_factory=list)
    all_voted: bool = False
    turn: int = 0
    total_turns: int = 0
    last_result: TwoTruthsTurnResult | None = None
    winners: list[str] = Field(default_factory=list)


class PlayingCardView(BaseModel):
    model_config = ConfigDict(frozen=True)

    card_id: str
    rank: str
    suit: str


class SeatView(BaseModel):
    model_config = ConfigDict(frozen=True)

    player_id: str
    stack: int
    bet: int = 0
    folded: bool = False
    up_cards: list[PlayingCardView] = Field(default_factory=list)


class ShowdownEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    player_id: str
    cards: list[PlayingCardView]
    category: str
    description: str
    strength: int
    amount_won: int = 0


class PokerDetails(BaseModel):
    model_config = ConfigDict(frozen=True)

    game_type: Literal["poker"] = "poker"
    variant: str = "5-card-stud"
    phase: str | None = None
    pot: int = 0
    current_bet: int = 0
    min_raise: int = 0
    betting_round: int = 0
    max_betting_rounds: int = 4
    dealer_id: str | None = None
    to_act: str | None = None
    seats: list[SeatView] = Field(default_factory=list)
    showdown: list[ShowdownEntry] = Field(default_factory=list)
    winner_ids: list[str] = Field(default_factory=list)


GameDetails = Annotated[
    Union[CardMatchDetails, TwoTruthsDetails, PokerDetails],
    Field(discriminator="game_type"),
]


class GameSnapshot(BaseModel):
    """Read-only projection of a game handed to collaborators."""

    model_config = ConfigDict(frozen=True)

    game_id: str
    game_type: GameType
    creator: PlayerSummary
    host_id: str
    is_private: bool
    max_players: int
    players: list[PlayerSummary]
    status: GameStatus
    current_round: int
    scores: dict[str, int]
    details: GameDetails


class CardMatchView(BaseModel):
    model_config = ConfigDict(frozen=True)

    game_type: Literal["degens-against-decency"] = "degens-against-decency"
    hand: list[CardView] = Field(default_factory=list)
    is_judge: bool = False
    has_submitted: bool = False
    # Only filled for the judge while judging.
    submissions: list[SubmissionView] = Field(default_factory=list)


class TwoTruthsView(BaseModel):
    model_config = ConfigDict(frozen=True)

    game_type: Literal["2-truths-and-a-lie"] = "2-truths-and-a-lie"
    is_actor: bool = False
    my_vote: int | None = None
    # The actor sees their own lie flag before the reveal.
    lie_index: int | None = None


class PokerView(BaseModel):
    model_config = ConfigDict(frozen=True)

    game_type: Literal["poker"] = "poker"
    hole_cards: list[PlayingCardView] = Field(default_factory=list)
    up_cards: list[PlayingCardView] = Field(default_factory=list)
    stack: int = 0
    to_call: int = 0
    can_check: bool = False
    is_turn: bool = False


PlayerViewDetails = Annotated[
    Union[CardMatchView, TwoTruthsView, PokerView],
    Field(discriminator="game_type"),
]


class PlayerView(BaseModel):
    model_config = ConfigDict(frozen=True)

    game_id: str
    player_id: str
    details: PlayerViewDetails


class CreatedGame(BaseModel):
    game_id: str
    game_type: GameType
    creator: str
    is_private: bool
    max_players: int
    current_players: int
    status: GameStatus


class LobbyGame(BaseModel):
    game_id: str
    game_type: GameType
    creator: str
    current_players: int
    max_players: int
    status: GameStatus


class LobbyListResponse(BaseModel):
    games: list[LobbyGame]


class ActionResult(BaseModel):
    success: bool
    game: GameSnapshot | None = None
    error: str | None = None
    error_kind: ErrorKind | None = None
