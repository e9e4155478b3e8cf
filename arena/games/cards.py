"""Standard 52-card deck and five-card poker hand evaluation."""

from __future__ import annotations

import random
from collections import Counter
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from enum import Enum, IntEnum
from itertools import combinations

from arena.errors import PayloadError, StructuralError


class Suit(Enum):
    spades = ("s", "♠")
    hearts = ("h", "♥")
    diamonds = ("d", "♦")
    clubs = ("c", "♣")

    @property
    def letter(self) -> str:
        return self.value[0]

    @property
    def symbol(self) -> str:
        return self.value[1]


class Rank(IntEnum):
    two = 2
    three = 3
    four = 4
    five = 5
    six = 6
    seven = 7
    eight = 8
    nine = 9
    ten = 10
    jack = 11
    queen = 12
    king = 13
    ace = 14

    @property
    def label(self) -> str:
        return _RANK_LABELS.get(self, str(int(self)))

    @property
    def display_name(self) -> str:
        return self.name.capitalize()


_RANK_LABELS = {Rank.jack: "J", Rank.queen: "Q", Rank.king: "K", Rank.ace: "A"}
_LABEL_TO_RANK = {r.label: r for r in Rank} | {"T": Rank.ten}
_LETTER_TO_SUIT = {s.letter: s for s in Suit} | {s.symbol: s for s in Suit}


@dataclass(frozen=True, slots=True)
class Card:
    rank: Rank
    suit: Suit

    @property
    def card_id(self) -> str:
        return f"{self.rank.label}{self.suit.letter}"

    def __str__(self) -> str:
        return f"{self.rank.label}{self.suit.symbol}"


def parse_card(code: str) -> Card:
    """Parse a short card code such as `Ah`, `10d`, `Td` or `Q♠`."""

    code = code.strip()
    if len(code) < 2:
        raise PayloadError(f"Invalid card code: {code!r}")
    rank = _LABEL_TO_RANK.get(code[:-1].upper())
    suit = _LETTER_TO_SUIT.get(code[-1].lower()) or _LETTER_TO_SUIT.get(code[-1])
    if rank is None or suit is None:
        raise PayloadError(f"Invalid card code: {code!r}")
    return Card(rank=rank, suit=suit)


def parse_cards(codes: str | Iterable[str]) -> list[Card]:
    if isinstance(codes, str):
        codes = codes.split()
    return [parse_card(c) for c in codes]


def standard_cards() -> list[Card]:
    return [Card(rank=rank, suit=suit) for suit in Suit for rank in Rank]


class Deck:
    """An ordered pile of cards dealt from the top.

    Built fresh for every hand and never reused once cards are drawn.
    """

    def __init__(self, cards: Sequence[Card]) -> None:
        self._cards = list(cards)

    @classmethod
    def standard(cls) -> "Deck":
        return cls(standard_cards())

    @classmethod
    def shuffled(cls, rng: random.Random) -> "Deck":
        cards = standard_cards()
        rng.shuffle(cards)
        return cls(cards)

    @classmethod
    def stacked(cls, top: Sequence[Card]) -> "Deck":
        """Full deck with `top` dealt first, in order; the rest keep standard order."""

        if len(set(top)) != len(top):
            raise StructuralError("Stacked cards must be unique")
        chosen = set(top)
        return cls([*top, *(c for c in standard_cards() if c not in chosen)])

    def __len__(self) -> int:
        return len(self._cards)

    @property
    def cards(self) -> tuple[Card, ...]:
        return tuple(self._cards)

    def draw(self) -> Card:
        if not self._cards:
            raise StructuralError("Deck is empty")
        return self._cards.pop(0)


class HandCategory(IntEnum):
    high_card = 0
    pair = 1
    two_pair = 2
    three_of_a_kind = 3
    straight = 4
    flush = 5
    full_house = 6
    four_of_a_kind = 7
    straight_flush = 8

    @property
    def label(self) -> str:
        return self.name.replace("_", " ").title()


@dataclass(frozen=True, slots=True)
class HandEvaluation:
    category: HandCategory
    # Ordered tie-break ranks, most significant first.
    tiebreak: tuple[int, ...]
    cards: tuple[Card, ...]
    description: str

    @property
    def strength(self) -> int:
        """Single integer giving a total order over hands.

        Category occupies the top bits; five 4-bit rank slots follow, so any hand of a
        higher category beats every hand of a lower one regardless of kickers.
        """

        value = int(self.category)
        slots = list(self.tiebreak) + [0] * (5 - len(self.tiebreak))
        for rank in slots:
            value = (value << 4) | rank
        return value

    def __lt__(self, other: "HandEvaluation") -> bool:
        return self.strength < other.strength

    def __le__(self, other: "HandEvaluation") -> bool:
        return self.strength <= other.strength

    def __gt__(self, other: "HandEvaluation") -> bool:
        return self.strength > other.strength

    def __ge__(self, other: "HandEvaluation") -> bool:
        return self.strength >= other.strength


_WHEEL = [14, 5, 4, 3, 2]


def _straight_high(ranks_desc: list[int]) -> int | None:
    if len(set(ranks_desc)) != 5:
        return None
    if ranks_desc == _WHEEL:
        # A-2-3-4-5 plays the ace low: the lowest straight.
        return 5
    if ranks_desc[0] - ranks_desc[4] == 4:
        return ranks_desc[0]
    return None


def _name(rank: int) -> str:
    return Rank(rank).display_name


def evaluate_hand(cards: Sequence[Card]) -> HandEvaluation:
    """Classify exactly five cards."""

    if len(cards) != 5:
        raise PayloadError(f"A poker hand has exactly 5 cards (got {len(cards)})")
    if len(set(cards)) != 5:
        raise PayloadError("A poker hand cannot contain duplicate cards")

    ranks_desc = sorted((int(c.rank) for c in cards), reverse=True)
    is_flush = len({c.suit for c in cards}) == 1
    straight_high = _straight_high(ranks_desc)

    # Ranks grouped by multiplicity, then by rank: e.g. full house -> [(trip, 3), (pair, 2)].
    groups = sorted(Counter(ranks_desc).items(), key=lambda kv: (kv[1], kv[0]), reverse=True)
    counts = [n for _, n in groups]
    grouped_ranks = tuple(r for r, _ in groups)
    hand = tuple(sorted(cards, key=lambda c: (int(c.rank), c.suit.letter), reverse=True))

    if is_flush and straight_high is not None:
        category = HandCategory.straight_flush
        tiebreak: tuple[int, ...] = (straight_high,)
        description = f"Straight flush, {_name(straight_high)} high"
    elif counts[0] == 4:
        category = HandCategory.four_of_a_kind
        tiebreak = grouped_ranks
        description = f"Four {_name(grouped_ranks[0])}s"
    elif counts[:2] == [3, 2]:
        category = HandCategory.full_house
        tiebreak = grouped_ranks
        description = f"Full house, {_name(grouped_ranks[0])}s over {_name(grouped_ranks[1])}s"
    elif is_flush:
        category = HandCategory.flush
        tiebreak = tuple(ranks_desc)
        description = f"Flush, {_name(ranks_desc[0])} high"
    elif straight_high is not None:
        category = HandCategory.straight
        tiebreak = (straight_high,)
        description = f"Straight, {_name(straight_high)} high"
    elif counts[0] == 3:
        category = HandCategory.three_of_a_kind
        tiebreak = grouped_ranks
        description = f"Three {_name(grouped_ranks[0])}s"
    elif counts[:2] == [2, 2]:
        category = HandCategory.two_pair
        tiebreak = grouped_ranks
        description = f"Two pair, {_name(grouped_ranks[0])}s and {_name(grouped_ranks[1])}s"
    elif counts[0] == 2:
        category = HandCategory.pair
        tiebreak = grouped_ranks
        description = f"Pair of {_name(grouped_ranks[0])}s"
    else:
        category = HandCategory.high_card
        tiebreak = tuple(ranks_desc)
        description = f"High card {_name(ranks_desc[0])}"

    return HandEvaluation(category=category, tiebreak=tiebreak, cards=hand, description=description)


def best_hand(cards: Sequence[Card]) -> HandEvaluation:
    """Best five-card hand out of five or more cards."""

    if len(cards) < 5:
        raise PayloadError(f"Need at least 5 cards to evaluate a hand (got {len(cards)})")
    return max((evaluate_hand(combo) for combo in combinations(cards, 5)), key=lambda h: h.strength)
