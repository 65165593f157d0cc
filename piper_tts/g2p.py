"""
English Grapheme-to-Phoneme (G2P) Converter

Best-effort G2P for Piper voices: dictionary lookup first, then a small
letter/digraph rule table for everything else. This is a deliberate
approximation of English spelling-to-sound, not a full phonemizer.

Pipeline:
  1. Trim + lowercase
  2. Tokenize into word and punctuation tokens
  3. For each word: lexicon hit, else digraphs first, then single letters
  4. Join fragments with single spaces → phoneme string
  5. Encode with the model's vocabulary (see phonemes.py)

Any object with a `word_to_phonemes(word) -> str` method can stand in as the
G2P backend; `EspeakG2P` wraps espeak-ng via the `phonemizer` package.
"""

import logging
import re
import unicodedata
from typing import Callable, Dict, List, NamedTuple, Optional, Protocol, Union

from .lexicon import lookup
from .phonemes import DEFAULT_VOCAB, Vocabulary, phonemes_to_ids

logger = logging.getLogger(__name__)


# ── Tokens ─────────────────────────────────────────────────────────

class Word(NamedTuple):
    text: str
    kind: str = "word"


class Punctuation(NamedTuple):
    text: str
    kind: str = "punctuation"


Token = Union[Word, Punctuation]

# Punctuation that we keep as tokens
PUNCTUATION = ".,!?;:"

# Runs of letters/digits/apostrophes (combining marks stay attached to their
# letter), or a single kept punctuation mark. Anything else (whitespace,
# quotes, symbols) separates tokens.
_TOKEN_RE = re.compile(r"((?:[^\W_]|[\u0300-\u036f]|')+)|([.,!?;:])")


def _normalize(text: str) -> str:
    """Unicode NFC normalization + trim + lowercase."""
    return unicodedata.normalize("NFC", text).strip().lower()


def tokenize(text: str) -> List[Token]:
    """Split text into Word / Punctuation tokens in left-to-right order."""
    if not text:
        return []

    tokens: List[Token] = []
    for match in _TOKEN_RE.finditer(_normalize(text)):
        word, punct = match.groups()
        if word:
            tokens.append(Word(word))
        else:
            tokens.append(Punctuation(punct))
    return tokens


# ── Orthography → IPA Rules ────────────────────────────────────────
# Digraphs MUST be checked before single characters (longest-match-first).

DIGRAPH_MAP: Dict[str, str] = {
    "th": "θ",
    "sh": "ʃ",
    "ch": "tʃ",
    "ph": "f",
    "wh": "w",
    "ck": "k",
    "ng": "ŋ",
    "qu": "kw",
    "ee": "iː",
    "ea": "iː",
    "oo": "uː",
    "ai": "eɪ",
    "ay": "eɪ",
    "oa": "oʊ",
    "ow": "oʊ",
    "ou": "aʊ",
    "oi": "ɔɪ",
    "oy": "ɔɪ",
}

SINGLE_MAP: Dict[str, str] = {
    "a": "æ",
    "b": "b",
    "c": "k",
    "d": "d",
    "e": "ɛ",
    "f": "f",
    "g": "ɡ",
    "h": "h",
    "i": "ɪ",
    "j": "dʒ",
    "k": "k",
    "l": "l",
    "m": "m",
    "n": "n",
    "o": "ɑ",
    "p": "p",
    "q": "k",
    "r": "ɹ",
    "s": "s",
    "t": "t",
    "u": "ʌ",
    "v": "v",
    "w": "w",
    "x": "ks",
    "y": "j",
    "z": "z",
}


def _graphemes_to_phonemes(word: str) -> str:
    """
    Mechanical spelling-to-sound for a word missing from the lexicon.

    Uses longest-match-first: a digraph consumes two characters, a single
    letter one. Characters with no rule (digits, apostrophes, accented
    letters) are skipped.
    """
    phonemes: List[str] = []
    i = 0

    while i < len(word):
        # Try digraph match first (2 characters)
        digraph = word[i:i + 2]
        if len(digraph) == 2 and digraph in DIGRAPH_MAP:
            phonemes.append(DIGRAPH_MAP[digraph])
            i += 2
            continue

        # Single character match
        char = word[i]
        if char in SINGLE_MAP:
            phonemes.append(SINGLE_MAP[char])
        else:
            logger.debug(f"Unknown grapheme: {char!r} in {word!r}")

        i += 1

    return "".join(phonemes)


def word_to_phonemes(word: str) -> str:
    """Lexicon lookup, falling back to letter/digraph rules. Never raises."""
    word = word.lower()
    phonemes = lookup(word)
    if phonemes is not None:
        return phonemes

    logger.debug(f"Lexicon miss: {word!r}, using letter rules")
    return _graphemes_to_phonemes(word)


def text_to_phonemes(
    tokens: List[Token],
    convert: Callable[[str], str] = word_to_phonemes,
) -> str:
    """
    Assemble the phoneme string for a token sequence.

    Punctuation contributes its literal character, words their G2P output.
    Empty contributions are skipped, so fragments are always joined by
    exactly one space.
    """
    fragments: List[str] = []

    for token in tokens:
        if isinstance(token, Punctuation):
            fragment = token.text
        else:
            fragment = convert(token.text)

        if fragment:
            fragments.append(fragment)

    return " ".join(fragments)


# ── Backends ───────────────────────────────────────────────────────

class G2PBackend(Protocol):
    """Anything that can turn one lowercase word into a phoneme string."""

    def word_to_phonemes(self, word: str) -> str:
        ...


class RuleG2P:
    """Lexicon + letter/digraph rules."""

    name = "rules"

    def word_to_phonemes(self, word: str) -> str:
        return word_to_phonemes(word)


class EspeakG2P:
    """
    espeak-ng backed G2P through the `phonemizer` package.

    Words espeak fails on are handed to `fallback` (RuleG2P by default), so
    a broken espeak install degrades to the rule engine instead of failing
    the whole request.
    """

    name = "espeak"

    def __init__(
        self,
        language: str = "en-us",
        with_stress: bool = True,
        fallback: Optional[G2PBackend] = None,
    ):
        from phonemizer.backend import EspeakBackend

        # Silence the espeak logger to avoid per-word warnings
        espeak_logger = logging.getLogger("espeak")
        espeak_logger.setLevel(logging.ERROR)

        self.language = language
        self.fallback = fallback if fallback is not None else RuleG2P()
        self._backend = EspeakBackend(
            language=language,
            preserve_punctuation=False,
            with_stress=with_stress,
            language_switch="remove-flags",
            words_mismatch="ignore",
            logger=espeak_logger,
        )

    @classmethod
    def try_load(cls, language: str = "en-us") -> Optional["EspeakG2P"]:
        """Build the backend and phonemize a test word; None if espeak-ng is unusable."""
        try:
            backend = cls(language=language)
            if backend._phonemize("test"):
                return backend
        except (ImportError, RuntimeError) as e:
            logger.warning(f"espeak-ng unavailable, using rule-based G2P: {e}")
        return None

    def _phonemize(self, word: str) -> str:
        result = self._backend.phonemize([word], strip=True)
        return result[0] if result else ""

    def word_to_phonemes(self, word: str) -> str:
        try:
            phonemes = self._phonemize(word)
        except RuntimeError as e:
            logger.warning(f"espeak failed on {word!r}, falling back: {e}")
            return self.fallback.word_to_phonemes(word)
        return phonemes or self.fallback.word_to_phonemes(word)


def load_backend(use_espeak: bool = False, language: str = "en-us") -> G2PBackend:
    """Pick the G2P backend: espeak-ng when requested and working, else rules."""
    if use_espeak:
        backend = EspeakG2P.try_load(language)
        if backend is not None:
            logger.info(f"Using espeak-ng G2P ({language})")
            return backend
    logger.info("Using rule-based G2P")
    return RuleG2P()


class EnglishG2P:
    """
    English text → phoneme string → model IDs.

    Usage:
        g2p = EnglishG2P(vocab=Vocabulary.from_phoneme_id_map(cfg["phoneme_id_map"]))
        phonemes = g2p.text_to_phonemes("Hello, world!")
        ids      = g2p.text_to_ids("Hello, world!")
    """

    def __init__(
        self,
        backend: Optional[G2PBackend] = None,
        vocab: Optional[Vocabulary] = None,
    ):
        self.backend = backend if backend is not None else RuleG2P()
        self.vocab = vocab if vocab is not None else DEFAULT_VOCAB

    def text_to_phonemes(self, text: str) -> str:
        return text_to_phonemes(tokenize(text), self.backend.word_to_phonemes)

    def text_to_ids(self, text: str, vocab: Optional[Vocabulary] = None) -> List[int]:
        """Convert text to model input IDs (BOS/EOS included when defined)."""
        return phonemes_to_ids(self.text_to_phonemes(text), vocab if vocab is not None else self.vocab)
