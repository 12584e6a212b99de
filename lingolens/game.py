"""
Practice games drawn from the bundled bilingual dictionaries.

Two modes share one lifecycle (GameState):
- Word match: pair each source word with its translation from a shuffled
  column. Five rounds of ten words, each round freshly sampled.
- Sentence translation: translate five sampled sentences; each typed word is
  marked correct, partial or incorrect against the reference.

The dictionaries are lists of {language_code: text} objects; the position of
an object in the list is the concept id shared by all of its translations.
Sampling is deliberately unseeded.
"""

import json
import os
import random
import unicodedata
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Mapping, Optional, Sequence, Set, Tuple

from .logger import logger
from .models import LanguagePair

DATA_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "data")
WORDS_FILE = os.path.join(DATA_DIR, "words.json")
SENTENCES_FILE = os.path.join(DATA_DIR, "sentences.json")

WORD_SUBSET_SIZE = 10
WORD_ROUNDS = 5
SENTENCE_SUBSET_SIZE = 5


@dataclass(frozen=True)
class TranslationPair:
    index: int          # Position in the dictionary file
    source: str
    target: str


def _load_entries(path: str) -> Tuple[Mapping[str, str], ...]:
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, list):
        raise ValueError(f"{path} must contain a JSON array")
    return tuple(dict(entry) if isinstance(entry, dict) else {} for entry in data)


def _sample(pairs: Sequence[TranslationPair], size: int, rng: Optional[random.Random]) -> List[TranslationPair]:
    shuffled = list(pairs)
    (rng or random).shuffle(shuffled)
    return shuffled[:max(0, size)]


class PracticeDictionary:
    """Read-only word and sentence lists, loaded once per session."""

    def __init__(
        self,
        words: Sequence[Mapping[str, str]],
        sentences: Sequence[Mapping[str, str]],
    ) -> None:
        self._words = tuple(dict(w) for w in words)
        self._sentences = tuple(dict(s) for s in sentences)

    @classmethod
    def load(cls, words_path: str = WORDS_FILE, sentences_path: str = SENTENCES_FILE) -> "PracticeDictionary":
        words = _load_entries(words_path)
        sentences = _load_entries(sentences_path)
        logger.io(f"Loaded practice dictionaries: {len(words)} words, {len(sentences)} sentences")
        return cls(words, sentences)

    @property
    def word_count(self) -> int:
        return len(self._words)

    @property
    def sentence_count(self) -> int:
        return len(self._sentences)

    @staticmethod
    def _pairs(entries: Sequence[Mapping[str, str]], languages: LanguagePair) -> List[TranslationPair]:
        pairs = []
        for index, entry in enumerate(entries):
            source = (entry.get(languages.source) or "").strip()
            target = (entry.get(languages.target) or "").strip()
            if source and target:
                pairs.append(TranslationPair(index=index, source=source, target=target))
        return pairs

    def word_pairs(self, languages: LanguagePair) -> List[TranslationPair]:
        """All words that have text in both languages, in dictionary order."""
        return self._pairs(self._words, languages)

    def sentence_pairs(self, languages: LanguagePair) -> List[TranslationPair]:
        return self._pairs(self._sentences, languages)

    def get_random_word_subset(
        self,
        languages: LanguagePair,
        size: int = WORD_SUBSET_SIZE,
        rng: Optional[random.Random] = None,
    ) -> List[TranslationPair]:
        """min(size, N) distinct words, uniformly sampled."""
        return _sample(self.word_pairs(languages), size, rng)

    def get_random_sentence_subset(
        self,
        languages: LanguagePair,
        size: int = SENTENCE_SUBSET_SIZE,
        rng: Optional[random.Random] = None,
    ) -> List[TranslationPair]:
        return _sample(self.sentence_pairs(languages), size, rng)


# ---------------------------------------------------------------------------
# Word match
# ---------------------------------------------------------------------------

class WordMatchRound:
    """One board: source words in dictionary order, targets shuffled."""

    def __init__(self, pairs: Sequence[TranslationPair], rng: Optional[random.Random] = None) -> None:
        ordered = sorted(pairs, key=lambda p: p.index)
        self.source_items: List[Tuple[int, str]] = [(p.index, p.source) for p in ordered]
        self.target_items: List[Tuple[int, str]] = [(p.index, p.target) for p in ordered]
        (rng or random).shuffle(self.target_items)
        self._ids: Set[int] = {p.index for p in ordered}
        self.matched: Set[int] = set()
        self.mistakes = 0

    @property
    def total(self) -> int:
        return len(self.source_items)

    @property
    def progress(self) -> Tuple[int, int]:
        return len(self.matched), self.total

    @property
    def is_complete(self) -> bool:
        return self.total > 0 and len(self.matched) == self.total

    def match(self, source_id: int, target_id: int) -> bool:
        """Correct only when both items come from the same dictionary entry."""
        correct = source_id == target_id and source_id in self._ids
        if correct:
            self.matched.add(source_id)
        else:
            self.mistakes += 1
        return correct


class WordMatchGame:
    def __init__(
        self,
        dictionary: PracticeDictionary,
        languages: LanguagePair,
        subset_size: int = WORD_SUBSET_SIZE,
        rounds: int = WORD_ROUNDS,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.dictionary = dictionary
        self.languages = languages
        self.subset_size = subset_size
        self.rounds = rounds
        self._rng = rng
        self.round_number = 1
        self.current = self._new_round()

    def _new_round(self) -> WordMatchRound:
        pairs = self.dictionary.get_random_word_subset(self.languages, self.subset_size, self._rng)
        logger.game(f"Word match round {self.round_number}/{self.rounds}: {len(pairs)} words")
        return WordMatchRound(pairs, self._rng)

    @property
    def has_next_round(self) -> bool:
        return self.round_number < self.rounds

    def next_round(self) -> WordMatchRound:
        if not self.has_next_round:
            raise ValueError("This was the last round")
        self.round_number += 1
        self.current = self._new_round()
        return self.current


# ---------------------------------------------------------------------------
# Sentence translation
# ---------------------------------------------------------------------------

class TokenStatus(str, Enum):
    CORRECT = "correct"
    PARTIAL = "partial"
    INCORRECT = "incorrect"


@dataclass(frozen=True)
class TokenMatch:
    token: str          # As typed by the learner
    status: TokenStatus


def _normalize_token(token: str) -> str:
    stripped = "".join(ch for ch in token if not unicodedata.category(ch).startswith("P"))
    return stripped.casefold()


def _tokens(text: str) -> List[Tuple[str, str]]:
    pairs = []
    for raw in (text or "").split():
        normalized = _normalize_token(raw)
        if normalized:
            pairs.append((raw, normalized))
    return pairs


def compare_translation(user_text: str, reference: str) -> List[TokenMatch]:
    """
    Classify each word of the learner's answer against the reference.

    Punctuation is ignored and comparison is case-insensitive. A word is
    correct when it equals some reference word, partial when one contains
    the other, and incorrect otherwise.
    """
    reference_tokens = {normalized for _, normalized in _tokens(reference)}
    matches = []
    for raw, normalized in _tokens(user_text):
        if normalized in reference_tokens:
            status = TokenStatus.CORRECT
        elif any(normalized in ref or ref in normalized for ref in reference_tokens):
            status = TokenStatus.PARTIAL
        else:
            status = TokenStatus.INCORRECT
        matches.append(TokenMatch(token=raw, status=status))
    return matches


class SentencePractice:
    """Walks through a fixed sample of sentences in order."""

    def __init__(
        self,
        dictionary: PracticeDictionary,
        languages: LanguagePair,
        subset_size: int = SENTENCE_SUBSET_SIZE,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.pairs = dictionary.get_random_sentence_subset(languages, subset_size, rng)
        self.position = 0
        self.feedback: Optional[List[TokenMatch]] = None
        logger.game(f"Sentence practice: {len(self.pairs)} sentences")

    @property
    def current(self) -> Optional[TranslationPair]:
        if not self.pairs:
            return None
        return self.pairs[self.position]

    @property
    def has_next(self) -> bool:
        return self.position < len(self.pairs) - 1

    def submit(self, answer: str) -> List[TokenMatch]:
        if self.current is None:
            raise ValueError("No sentences available for this language pair")
        self.feedback = compare_translation(answer, self.current.target)
        return self.feedback

    def advance(self) -> TranslationPair:
        if not self.has_next:
            raise ValueError("This was the last sentence")
        self.position += 1
        self.feedback = None
        return self.pairs[self.position]


class GameState:
    """Practice state for the current input and language pair."""

    def __init__(self, dictionary: PracticeDictionary) -> None:
        self.dictionary = dictionary
        self.languages: Optional[LanguagePair] = None
        self.word_match: Optional[WordMatchGame] = None
        self.sentences: Optional[SentencePractice] = None

    @property
    def seeded(self) -> bool:
        return self.word_match is not None

    def seed(self, languages: LanguagePair) -> None:
        self.languages = languages
        self.word_match = WordMatchGame(self.dictionary, languages)
        self.sentences = SentencePractice(self.dictionary, languages)

    def reset(self) -> None:
        self.languages = None
        self.word_match = None
        self.sentences = None


def coverage(dictionary: PracticeDictionary, languages: LanguagePair) -> Dict[str, int]:
    """How many words and sentences are playable for a language pair."""
    return {
        "words": len(dictionary.word_pairs(languages)),
        "sentences": len(dictionary.sentence_pairs(languages)),
    }
