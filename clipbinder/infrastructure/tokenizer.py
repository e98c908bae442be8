"""Multilingual tokenizer using uniseg and stopwordsiso.

Language-agnostic approach: no language detection needed.
- uniseg implements Unicode Annex #29 for word boundary detection
- All language stopwords are merged for filtering

Scene keywords arrive in any language (Korean scripts are common), and
local asset names are ``{keyword}_{tag}_{provider}-{id}_{W}x{H}``, so the
filename helper also drops the naming noise before scoring.

Usage:
    from clipbinder.infrastructure.tokenizer import keyword_tokens

    keyword_tokens("노을 진 바다 sunset")
    # Returns: {'노을', '바다', 'sunset'}
"""

import re

import stopwordsiso
from uniseg.wordbreak import words

# Merged stopwords from all supported languages (cached)
_all_stopwords: set[str] | None = None

_RESOLUTION_RE = re.compile(r"^\d+x\d+$")
_FILENAME_SEPARATORS_RE = re.compile(r"[_\-.]+")

# Tokens produced by the asset naming scheme rather than by the subject
NOISE_TOKENS = frozenset(
    {"pexels", "pixabay", "ai", "dalle", "sd", "local", "mp4", "mov", "webm", "mkv", "jpg",
     "jpeg", "png", "webp"}
)


def _get_all_stopwords() -> set[str]:
    """Get merged stopwords from all supported languages.

    Caches the result for performance - stopwords are loaded once.

    Returns:
        Set of stopwords from all supported languages.
    """
    global _all_stopwords
    if _all_stopwords is None:
        _all_stopwords = set()
        for lang in stopwordsiso.langs():
            _all_stopwords.update(stopwordsiso.stopwords(lang))
    return _all_stopwords


def _is_word_token(token: str) -> bool:
    """Check if token is a meaningful word (not whitespace/punctuation).

    Args:
        token: Token to check.

    Returns:
        True if token contains at least one alphanumeric character.
    """
    return any(c.isalnum() for c in token)


def tokenize(text: str, min_length: int = 2) -> list[str]:
    """Tokenize text using Unicode Annex #29 word boundaries.

    Args:
        text: Text to tokenize.
        min_length: Minimum token length (default: 2).

    Returns:
        List of tokens (lowercased, filtered by min_length).
    """
    tokens = [token.lower().strip() for token in words(text) if _is_word_token(token)]
    return [t for t in tokens if len(t) >= min_length]


def tokenize_without_stopwords(text: str, min_length: int = 2) -> list[str]:
    """Tokenize and filter stopwords from all languages.

    Args:
        text: Text to tokenize.
        min_length: Minimum token length (default: 2).

    Returns:
        List of tokens with stopwords removed.
    """
    tokens = tokenize(text, min_length)
    stopwords = _get_all_stopwords()
    return [t for t in tokens if t not in stopwords]


def keyword_tokens(text: str | None, min_length: int = 2) -> set[str]:
    """Token set used for keyword scoring.

    Stopwords are removed unless that would leave nothing (a keyword made
    only of stopwords still has to match itself).

    Args:
        text: Keyword or free text.
        min_length: Minimum token length.

    Returns:
        Set of tokens, empty for blank input.
    """
    if not text or not text.strip():
        return set()
    tokens = tokenize_without_stopwords(text, min_length)
    if not tokens:
        tokens = tokenize(text, min_length)
    return set(tokens)


def filename_tokens(stem: str, min_length: int = 2) -> set[str]:
    """Token set derived from a file name stem.

    Separators are split first (``_`` joins words under UAX #29), then
    provider names, extensions, ``WxH`` resolutions and pure digits are
    dropped.

    Args:
        stem: File name without extension.
        min_length: Minimum token length.

    Returns:
        Set of subject tokens.
    """
    cleaned = _FILENAME_SEPARATORS_RE.sub(" ", stem)
    tokens = keyword_tokens(cleaned, min_length)
    return {
        t
        for t in tokens
        if t not in NOISE_TOKENS and not t.isdigit() and not _RESOLUTION_RE.match(t)
    }


__all__ = [
    "NOISE_TOKENS",
    "filename_tokens",
    "keyword_tokens",
    "tokenize",
    "tokenize_without_stopwords",
]
