"""
Phoneme Inventory, Vocabulary and Phoneme Encoder

Defines the default symbol inventory (IPA + punctuation + sentinels), the
immutable `Vocabulary` table mapping single symbols to model input IDs,
and `phonemes_to_ids()` which turns a phoneme string into the ID sequence
fed to the voice model.

Piper voices ship their own `phoneme_id_map` in the model config, so the
encoder always takes the vocabulary as an argument. `DEFAULT_VOCAB` is only
used when no model-supplied table is available.
"""

import logging
from types import MappingProxyType
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Union

from .errors import VocabularyError

logger = logging.getLogger(__name__)


# ── Special Tokens ──────────────────────────────────────────────────

PAD = "_"   # padding / blank
BOS = "^"   # beginning of sequence
EOS = "$"   # end of sequence
SPACE = " "  # word boundary

SPECIAL_TOKENS: List[str] = [PAD, BOS, EOS, SPACE]

# ── Punctuation ─────────────────────────────────────────────────────

PUNCTUATION: List[str] = ["!", "'", "(", ")", ",", "-", ".", ":", ";", "?"]

# ── Letters and IPA Symbols ─────────────────────────────────────────
# Plain ASCII letters that double as IPA symbols ("g" is omitted, IPA uses ɡ).

LETTERS: List[str] = list("abcdefhijklmnopqrstuvwxyz")

VOWELS: List[str] = [
    "æ",   # near-open front  (trap)
    "ɑ",   # open back        (father)
    "ɐ",   # near-open central
    "ɒ",   # open back rounded
    "ɔ",   # open-mid back    (thought)
    "ə",   # schwa
    "ɚ",   # r-coloured schwa (butter)
    "ɛ",   # open-mid front   (dress)
    "ɜ",   # open-mid central (nurse)
    "ɪ",   # near-close front (kit)
    "ʊ",   # near-close back  (foot)
    "ʌ",   # open-mid back unrounded (strut)
    "ɨ",   # close central
    "ᵻ",   # reduced close central
]

CONSONANTS: List[str] = [
    "ç",   # voiceless palatal fricative
    "ð",   # voiced dental fricative   (this)
    "θ",   # voiceless dental fricative (thin)
    "ŋ",   # velar nasal               (sing)
    "ɡ",   # voiced velar plosive
    "ɹ",   # alveolar approximant      (red)
    "ɾ",   # alveolar tap              (butter, en-us)
    "ʃ",   # voiceless postalveolar fricative (ship)
    "ʒ",   # voiced postalveolar fricative    (measure)
    "ʔ",   # glottal stop
    "ɬ",   # voiceless lateral fricative
    "ɫ",   # velarized l
    "ʍ",   # voiceless labio-velar
    "ɲ",   # palatal nasal
    "ɣ",   # voiced velar fricative
    "χ",   # voiceless uvular fricative
]

SUPRASEGMENTALS: List[str] = [
    "ˈ",   # primary stress
    "ˌ",   # secondary stress
    "ː",   # length
    "\u0303",  # nasalization (combining tilde)
]

IdValue = Union[int, List[int]]


class Vocabulary(Mapping):
    """
    Immutable symbol → ID table.

    Keys are single Unicode characters; the reserved `^` / `$` keys, when
    present, are the BOS / EOS sentinels. Lookups are always by single
    character, never by substring.

    Usage:
        vocab = Vocabulary.from_phoneme_id_map(model_config["phoneme_id_map"])
        ids = phonemes_to_ids("haɪ", vocab)
    """

    __slots__ = ("_table", "_id_to_symbol")

    def __init__(self, symbol_to_id: Mapping[str, int]):
        if symbol_to_id is None or not isinstance(symbol_to_id, Mapping):
            raise VocabularyError("Phoneme-ID table is missing")
        if not symbol_to_id:
            raise VocabularyError("Phoneme-ID table is empty")

        table: Dict[str, int] = {}
        for symbol, idx in symbol_to_id.items():
            if not isinstance(symbol, str) or len(symbol) != 1:
                raise VocabularyError(
                    f"Vocabulary keys must be single characters, got {symbol!r}"
                )
            if isinstance(idx, bool) or not isinstance(idx, int) or idx < 0:
                raise VocabularyError(
                    f"Invalid ID {idx!r} for symbol {symbol!r}"
                )
            table[symbol] = idx

        id_to_symbol: Dict[int, str] = {}
        for symbol, idx in table.items():
            id_to_symbol.setdefault(idx, symbol)

        self._table = MappingProxyType(table)
        self._id_to_symbol = MappingProxyType(id_to_symbol)

    @classmethod
    def from_phoneme_id_map(cls, phoneme_id_map: Mapping[str, IdValue]) -> "Vocabulary":
        """
        Build from a Piper-style `phoneme_id_map`.

        Values may be plain ints or lists of ints (`{"a": [14]}`); for lists
        the first ID is used.
        """
        if phoneme_id_map is None or not isinstance(phoneme_id_map, Mapping):
            raise VocabularyError("Phoneme-ID table is missing")

        flat: Dict[str, int] = {}
        for symbol, value in phoneme_id_map.items():
            if isinstance(value, (list, tuple)):
                if not value:
                    raise VocabularyError(f"Empty ID list for symbol {symbol!r}")
                value = value[0]
            flat[symbol] = value
        return cls(flat)

    def __getitem__(self, symbol: str) -> int:
        return self._table[symbol]

    def __iter__(self) -> Iterator[str]:
        return iter(self._table)

    def __len__(self) -> int:
        return len(self._table)

    def __repr__(self) -> str:
        return f"Vocabulary(size={len(self)}, bos={self.bos_id}, eos={self.eos_id})"

    @property
    def bos_id(self) -> Optional[int]:
        return self._table.get(BOS)

    @property
    def eos_id(self) -> Optional[int]:
        return self._table.get(EOS)

    def symbol_for(self, idx: int) -> Optional[str]:
        return self._id_to_symbol.get(idx)

    def to_phoneme_id_map(self) -> Dict[str, List[int]]:
        """Serialize back to Piper's list-valued form."""
        return {symbol: [idx] for symbol, idx in self._table.items()}


def build_vocab() -> Dict[str, int]:
    """
    Build the default symbol-to-integer table.

    Order: special tokens → punctuation → letters → vowels → consonants →
    suprasegmentals. With this order `_`=0, `^`=1, `$`=2, space=3.
    """
    vocab: Dict[str, int] = {}

    for group in (SPECIAL_TOKENS, PUNCTUATION, LETTERS, VOWELS, CONSONANTS, SUPRASEGMENTALS):
        for symbol in group:
            if symbol not in vocab:
                vocab[symbol] = len(vocab)

    return vocab


def build_default_vocab() -> Vocabulary:
    return Vocabulary(build_vocab())


# Built once at import, read-only afterwards.
DEFAULT_VOCAB: Vocabulary = build_default_vocab()


def phonemes_to_ids(phoneme_string: str, vocab: Mapping[str, int]) -> List[int]:
    """
    Encode a phoneme string as model input IDs.

    BOS first (if the vocabulary defines `^`), then one ID per code point
    found in the vocabulary, then EOS (if `$` is defined). Symbols missing
    from the vocabulary are dropped without error, so a string with no
    known symbols yields only the sentinels.
    """
    ids: List[int] = []

    if BOS in vocab:
        ids.append(vocab[BOS])

    # str iteration is per code point, so multi-byte IPA symbols stay whole
    for symbol in phoneme_string:
        if symbol in vocab:
            ids.append(vocab[symbol])
        else:
            logger.debug(f"Dropping symbol not in vocabulary: {symbol!r}")

    if EOS in vocab:
        ids.append(vocab[EOS])

    return ids


def ids_to_phonemes(ids: Iterable[int], vocab: Vocabulary) -> str:
    """Convert IDs back to a phoneme string (for debugging). Unknown IDs → '?'."""
    return "".join(vocab.symbol_for(idx) or "?" for idx in ids)
