from __future__ import annotations

import csv
import os
import random
import re
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path


def _norm_key(s: str) -> str:
    return re.sub(r"\s+", " ", s).strip().casefold()


def _slug_id(s: str) -> str:
    s = s.strip().casefold()
    s = re.sub(r"[^a-z0-9]+", "-", s)
    return s.strip("-")


class CardKind(StrEnum):
    question = "question"
    answer = "answer"


@dataclass(frozen=True, slots=True)
class PromptCard:
    """A degens-against-decency card: a question (prompt) or an answer (response)."""

    card_id: str
    kind: CardKind
    text: str
    category: str = "general"


@dataclass(frozen=True, slots=True)
class CardDeck:
    """Deck-like list of cards of one kind.

    IDs are canonical (for persistence/network). Text is for display.
    """

    kind: CardKind
    cards: tuple[PromptCard, ...]
    _id_to_card: dict[str, PromptCard]

    @staticmethod
    def from_rows(kind: CardKind, rows: list[PromptCard]) -> "CardDeck":
        id_to_card: dict[str, PromptCard] = {}
        for c in rows:
            if c.kind != kind:
                raise AssetLoadError(f"Card {c.card_id} is a {c.kind}, expected {kind}")
            if c.card_id in id_to_card:
                raise AssetLoadError(f"Duplicate card id: {c.card_id}")
            id_to_card[c.card_id] = c
        return CardDeck(kind=kind, cards=tuple(rows), _id_to_card=id_to_card)

    def get(self, card_id: str) -> PromptCard | None:
        return self._id_to_card.get(card_id)

    def __len__(self) -> int:
        return len(self.cards)

    def __contains__(self, item: object) -> bool:
        return isinstance(item, str) and item in self._id_to_card

    def shuffled(self, *, rng: random.Random) -> list[PromptCard]:
        out = list(self.cards)
        rng.shuffle(out)
        return out


@dataclass(frozen=True, slots=True)
class TwoTruthsPrompt:
    prompt_id: str
    prompt: str
    difficulty: str = "medium"
    example: str = ""


@dataclass(frozen=True, slots=True)
class GameAssets:
    question_cards: CardDeck
    answer_cards: CardDeck
    two_truths_prompts: tuple[TwoTruthsPrompt, ...]

    def shuffled_prompts(self, *, rng: random.Random) -> list[TwoTruthsPrompt]:
        out = list(self.two_truths_prompts)
        rng.shuffle(out)
        return out


class AssetLoadError(RuntimeError):
    pass


def _read_csv_rows(path: Path) -> list[list[str]]:
    try:
        raw = path.read_text(encoding="utf-8-sig")
    except FileNotFoundError as e:
        raise AssetLoadError(f"Asset file not found: {path}") from e

    reader = csv.reader(raw.splitlines())
    rows = [[c.strip() for c in row if c is not None] for row in reader]
    return [row for row in rows if any(cell.strip() for cell in row)]


def load_prompt_cards_csv(path: Path) -> tuple[CardDeck, CardDeck]:
    """Load `id,type,text,category` rows into question and answer decks."""

    rows = _read_csv_rows(path)
    if not rows:
        raise AssetLoadError(f"Empty card CSV: {path}")

    header = [c.casefold() for c in rows[0]]
    if header[:3] != ["id", "type", "text"]:
        raise AssetLoadError(f"Unexpected header in {path}: {rows[0]}")

    questions: list[PromptCard] = []
    answers: list[PromptCard] = []
    for row in rows[1:]:
        if len(row) < 3:
            continue
        rid, kind_raw, text = row[0].strip(), _norm_key(row[1]), row[2].strip()
        category = row[3].strip() if len(row) > 3 and row[3].strip() else "general"
        if not text:
            continue
        try:
            kind = CardKind(kind_raw)
        except ValueError as e:
            raise AssetLoadError(f"Unknown card type {row[1]!r} in {path}") from e
        if not rid:
            rid = f"{kind.value}-{_slug_id(text)}"
        card = PromptCard(card_id=rid, kind=kind, text=text, category=category)
        (questions if kind == CardKind.question else answers).append(card)

    return CardDeck.from_rows(CardKind.question, questions), CardDeck.from_rows(CardKind.answer, answers)


def load_two_truths_csv(path: Path) -> tuple[TwoTruthsPrompt, ...]:
    rows = _read_csv_rows(path)
    if not rows:
        raise AssetLoadError(f"Empty prompt CSV: {path}")

    header = [c.casefold() for c in rows[0]]
    if header[:2] != ["id", "prompt"]:
        raise AssetLoadError(f"Unexpected header in {path}: {rows[0]}")

    out: list[TwoTruthsPrompt] = []
    seen: set[str] = set()
    for row in rows[1:]:
        if len(row) < 2 or not row[1].strip():
            continue
        rid = row[0].strip() or _slug_id(row[1])
        if rid in seen:
            raise AssetLoadError(f"Duplicate prompt id: {rid}")
        seen.add(rid)
        out.append(
            TwoTruthsPrompt(
                prompt_id=rid,
                prompt=row[1].strip(),
                difficulty=row[2].strip() if len(row) > 2 and row[2].strip() else "medium",
                example=row[3].strip() if len(row) > 3 else "",
            )
        )
    return tuple(out)


def _fallback_game_assets() -> GameAssets:
    """Small static dataset used when the content CSVs are missing.

    Mirrors the built-in cards shipped for when no content provider is reachable, padded
    with numbered answers so seven full hands plus refills can always be dealt.
    """

    questions = [
        PromptCard("q-breakfast", CardKind.question, "What did I eat for breakfast that made everyone leave the room?", "food"),
        PromptCard("q-fired", CardKind.question, "The real reason I got fired was ___.", "work"),
        PromptCard("q-dating", CardKind.question, "My dating profile would be complete with ___.", "dating"),
    ]
    questions.extend(
        PromptCard(f"q-{i}", CardKind.question, f"Fill in the blank #{i}: ___.", "general") for i in range(4, 13)
    )

    answers = [
        PromptCard("a-dignity", CardKind.answer, "My dignity"),
        PromptCard("a-pajamas", CardKind.answer, "Showing up in pajamas"),
        PromptCard("a-warning-label", CardKind.answer, "A warning label"),
    ]
    answers.extend(PromptCard(f"a-{i}", CardKind.answer, f"Answer {i}") for i in range(4, 121))

    prompts = (
        TwoTruthsPrompt("tt-food", "Tell us about an unusual food you've eaten", "easy", "I once ate chocolate-covered insects"),
        TwoTruthsPrompt("tt-talent", "Share a weird talent or skill you have", "medium", "I can juggle while riding a unicycle"),
        TwoTruthsPrompt("tt-celebrity", "Describe an awkward encounter with a celebrity", "hard", "I accidentally spilled coffee on a famous actor"),
        TwoTruthsPrompt("tt-place", "Tell us about a strange place you've been", "medium", "I once got lost in a corn maze for 3 hours"),
        TwoTruthsPrompt("tt-childhood", "Share a funny childhood misconception", "easy", "I thought clouds were made of cotton candy until I was 8"),
    )

    return GameAssets(
        question_cards=CardDeck.from_rows(CardKind.question, questions),
        answer_cards=CardDeck.from_rows(CardKind.answer, answers),
        two_truths_prompts=prompts,
    )


def load_game_assets(*, root: Path, strict: bool | None = None) -> GameAssets:
    assets_dir = root / "assets"

    # Default behavior: fall back to the static dataset when files are missing.
    # You can force strict behavior by setting ARENA_STRICT_ASSETS=1.
    if strict is None:
        strict = os.getenv("ARENA_STRICT_ASSETS", "").strip().lower() in {"1", "true", "yes"}

    try:
        questions, answers = load_prompt_cards_csv(assets_dir / "degens_cards.csv")
        prompts = load_two_truths_csv(assets_dir / "two_truths_prompts.csv")
    except AssetLoadError:
        if strict:
            raise
        return _fallback_game_assets()

    if not len(questions) or not len(answers) or not prompts:
        if strict:
            raise AssetLoadError(f"Incomplete content in {assets_dir}")
        return _fallback_game_assets()

    return GameAssets(question_cards=questions, answer_cards=answers, two_truths_prompts=prompts)
