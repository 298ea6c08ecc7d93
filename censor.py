import json
import re
from typing import AbstractSet, FrozenSet

from logging_config import get_logger

logger = get_logger(__name__)

MASK_CHAR = "#"

# a run of word characters, then any punctuation/symbols glued to it
_WORD_PATTERN = re.compile(r"(\w+)([^\w\s]*)")


def normalize_words(words) -> FrozenSet[str]:
    return frozenset(
        word.strip().lower()
        for word in words
        if isinstance(word, str) and word.strip()
    )


def load_prohibited_words(path: str) -> FrozenSet[str]:
    """Load the prohibited word list from a JSON file shaped like {"words": [...]}.

    A missing file leaves the filter empty rather than refusing to start.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError:
        logger.warning(f"Offensive words file not found at {path}, censoring is disabled")
        return frozenset()

    words = data.get("words", []) if isinstance(data, dict) else data
    prohibited = normalize_words(words)
    logger.info(f"Loaded {len(prohibited)} prohibited words from {path}")
    return prohibited


def censor(text: str, prohibited: AbstractSet[str]) -> str:
    """Mask every prohibited word with '#' of the same length.

    Punctuation following a word stays where it was, and everything between
    words (whitespace included) is copied through untouched.
    """

    def _replace(match: re.Match) -> str:
        word, punctuation = match.group(1), match.group(2)
        if word.lower() in prohibited:
            return MASK_CHAR * len(word) + punctuation
        return match.group(0)

    return _WORD_PATTERN.sub(_replace, text)


def was_censored(original: str, censored: str) -> bool:
    """Whether censoring changed any whitespace-separated token.

    Tokens are compared pairwise up to the shorter sequence; censor() never
    changes the token count, so the two sides normally line up exactly.
    """
    original_tokens = original.split()
    censored_tokens = censored.split()
    for before, after in zip(original_tokens, censored_tokens):
        if before.lower() != after.lower():
            return True
    return False
