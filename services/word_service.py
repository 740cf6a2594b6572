"""
Word source: random target words and guess legality.
"""

import logging
import random
import string

from domain.services.feedback_service import WORD_LENGTH

logger = logging.getLogger("wordle_bot.services.words")

_ASCII_LETTERS = frozenset(string.ascii_lowercase)


def _clean(words) -> set[str]:
    cleaned = set()
    for word in words:
        word = word.strip().lower()
        if len(word) == WORD_LENGTH and set(word) <= _ASCII_LETTERS:
            cleaned.add(word)
    return cleaned


class WordService:
    """
    Holds the solution list and the guess dictionary.

    Solution words are always accepted as guesses, even when the guess
    dictionary omits them.
    """

    def __init__(self, solutions, guesses=()):
        self.solutions = sorted(_clean(solutions))
        if not self.solutions:
            raise ValueError("Solution word list is empty.")
        self.dictionary = _clean(guesses) | set(self.solutions)

    @classmethod
    def from_files(cls, solutions_path: str, guesses_path: str | None = None) -> "WordService":
        """Load newline-delimited word lists from disk."""
        with open(solutions_path, encoding="utf-8") as f:
            solutions = f.read().splitlines()
        guesses: list[str] = []
        if guesses_path:
            with open(guesses_path, encoding="utf-8") as f:
                guesses = f.read().splitlines()
        service = cls(solutions, guesses)
        logger.info(
            f"Loaded {len(service.solutions)} solution words and "
            f"{len(service.dictionary)} valid guesses"
        )
        return service

    def random_target(self) -> str:
        return random.choice(self.solutions)

    @staticmethod
    def normalize_guess(raw: str) -> str:
        """Strip all whitespace and lower-case, so "C R A N E" becomes "crane"."""
        return "".join(raw.split()).lower()

    def is_valid_guess(self, word: str) -> bool:
        word = word.strip().lower()
        return (
            len(word) == WORD_LENGTH
            and set(word) <= _ASCII_LETTERS
            and word in self.dictionary
        )
