"""
English pronunciation lexicon.

A small hand-curated word → IPA table (espeak-ng en-us style, no stress
marks). Words missing here go through the letter/digraph rules in g2p.py.
"""

from typing import Dict, Optional


LEXICON: Dict[str, str] = {
    "hello": "həloʊ",
    "hi": "haɪ",
    "hey": "heɪ",
    "goodbye": "ɡʊdbaɪ",
    "bye": "baɪ",
    "please": "pliːz",
    "thank": "θæŋk",
    "thanks": "θæŋks",
    "sorry": "sɑːɹi",
    "okay": "oʊkeɪ",
    "ok": "oʊkeɪ",
    "welcome": "wɛlkəm",
    "test": "tɛst",
    "the": "ðə",
    "a": "ə",
    "an": "æn",
    "is": "ɪz",
    "are": "ɑːɹ",
    "you": "juː",
    "i": "aɪ",
    "world": "wɜːɹld",
    "quick": "kwɪk",
    "brown": "bɹaʊn",
    "fox": "fɑːks",
    "jumps": "dʒʌmps",
    "over": "oʊvɚ",
    "lazy": "leɪzi",
    "dog": "dɔːɡ",
}


def lookup(word: str) -> Optional[str]:
    """Case-insensitive exact lookup. Returns None on a miss."""
    return LEXICON.get(word.lower())
