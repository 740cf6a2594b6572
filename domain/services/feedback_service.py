"""
Wordle feedback domain service.

Scores a guess against the target word with standard Wordle semantics:
greens are claimed first, then yellows are handed out left to right only
while unclaimed occurrences of that letter remain in the target.
"""

from collections import Counter
from dataclasses import dataclass
from enum import Enum

WORD_LENGTH = 5


class LetterResult(str, Enum):
    GREEN = "green"
    YELLOW = "yellow"
    GRAY = "gray"


FEEDBACK_EMOJI = {
    LetterResult.GREEN: "🟩",
    LetterResult.YELLOW: "🟨",
    LetterResult.GRAY: "⬜",
}


@dataclass(frozen=True)
class Feedback:
    """Per-position classification plus its compact emoji encoding."""

    letters: tuple[LetterResult, ...]

    @property
    def emoji(self) -> str:
        return "".join(FEEDBACK_EMOJI[result] for result in self.letters)


def compute_feedback(guess: str, target: str) -> Feedback:
    """
    Compute feedback for `guess` against `target`.

    Both words are compared case-insensitively.

    Raises:
        ValueError: If either word is not exactly five characters
    """
    guess_norm = guess.strip().lower()
    target_norm = target.strip().lower()
    if len(guess_norm) != WORD_LENGTH or len(target_norm) != WORD_LENGTH:
        raise ValueError(f"Words must be exactly {WORD_LENGTH} letters")

    results = [LetterResult.GRAY] * WORD_LENGTH
    target_counts = Counter(target_norm)
    consumed: Counter = Counter()

    for i, (g, t) in enumerate(zip(guess_norm, target_norm)):
        if g == t:
            results[i] = LetterResult.GREEN
            consumed[g] += 1

    for i, g in enumerate(guess_norm):
        if results[i] == LetterResult.GREEN:
            continue
        if target_counts[g] > consumed[g]:
            results[i] = LetterResult.YELLOW
            consumed[g] += 1

    return Feedback(letters=tuple(results))


def is_correct(feedback: Feedback) -> bool:
    return all(result == LetterResult.GREEN for result in feedback.letters)


def format_feedback(guess: str, feedback: Feedback) -> str:
    """
    Render a guess for chat: bold for green, italic for yellow, plain for gray,
    followed by the emoji row.
    """
    rendered = []
    for letter, result in zip(guess.upper(), feedback.letters):
        if result == LetterResult.GREEN:
            rendered.append(f"**{letter}**")
        elif result == LetterResult.YELLOW:
            rendered.append(f"*{letter}*")
        else:
            rendered.append(letter)
    return f"{' '.join(rendered)}\n{feedback.emoji}"
