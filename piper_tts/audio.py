"""
Audio post-processing for model output.

Piper models return raw float32 samples with an arbitrary peak level;
`normalize()` rescales them so the loudest sample sits at a fixed ceiling.
"""

import logging
from pathlib import Path
from typing import Sequence, Union

import numpy as np
import soundfile as sf

logger = logging.getLogger(__name__)

DEFAULT_CEILING = 0.95


def normalize(samples: Union[Sequence[float], np.ndarray], ceiling: float = DEFAULT_CEILING) -> np.ndarray:
    """
    Peak-normalize a sample buffer to `ceiling`.

    Returns a new float32 array of the same length. Empty and all-zero
    buffers come back unchanged (scale 1.0). NaN/Inf samples are replaced
    with zeros before scaling.
    """
    audio = np.asarray(samples, dtype=np.float32).reshape(-1)
    if audio.size == 0:
        return audio.copy()

    if not np.isfinite(audio).all():
        bad_count = int(np.count_nonzero(~np.isfinite(audio)))
        logger.warning(f"Audio has {bad_count} NaN/Inf samples, replacing with zeros")
        audio = np.nan_to_num(audio, nan=0.0, posinf=0.0, neginf=0.0)

    max_abs = float(np.max(np.abs(audio)))
    scale = ceiling / max_abs if max_abs > 0 else 1.0
    return (audio * np.float32(scale)).astype(np.float32)


def duration_seconds(samples: Sequence[float], sample_rate: int) -> float:
    return len(samples) / float(sample_rate)


def save_audio(samples: Union[Sequence[float], np.ndarray], path: Union[str, Path], sample_rate: int):
    """Write samples as a mono WAV file."""
    path = Path(path)
    if path.parent and not path.parent.exists():
        path.parent.mkdir(parents=True, exist_ok=True)
    sf.write(str(path), np.asarray(samples, dtype=np.float32), sample_rate)
    logger.info(f"Saved: {path}")
