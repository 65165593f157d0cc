"""English text → phoneme IDs → normalized audio for Piper voices."""

from .audio import normalize
from .g2p import EnglishG2P, tokenize, word_to_phonemes
from .phonemes import DEFAULT_VOCAB, Vocabulary, phonemes_to_ids

__all__ = [
    "DEFAULT_VOCAB",
    "EnglishG2P",
    "Vocabulary",
    "normalize",
    "phonemes_to_ids",
    "tokenize",
    "word_to_phonemes",
]
