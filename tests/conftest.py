"""Shared fixtures for piper_tts tests."""

import os

import pytest

os.environ.setdefault("TESTING", "1")

from piper_tts.phonemes import Vocabulary


@pytest.fixture
def small_vocab():
    """Vocabulary with sentinels and just the symbols of "haɪ"."""
    return Vocabulary({"^": 1, "$": 2, "h": 21, "a": 14, "ɪ": 55})


@pytest.fixture
def no_sentinel_vocab():
    return Vocabulary({"h": 21, "a": 14, "ɪ": 55})


@pytest.fixture
def piper_config_dict():
    """Trimmed-down Piper `.onnx.json` document."""
    return {
        "audio": {"sample_rate": 16000},
        "espeak": {"voice": "en-us"},
        "inference": {"noise_scale": 0.5, "length_scale": 1.2, "noise_w": 0.7},
        "phoneme_id_map": {
            "_": [0],
            "^": [1],
            "$": [2],
            " ": [3],
            "!": [4],
            "a": [14],
            "h": [20],
            "ɪ": [74],
        },
    }
