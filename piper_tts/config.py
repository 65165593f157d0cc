"""
Voice Model Configuration

Piper voices ship a `<voice>.onnx.json` next to the model with the audio
sample rate, inference scales and the phoneme-ID map. `ModelConfig` holds
the parts the pipeline needs and builds the `Vocabulary` from it.
"""

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Union

from .audio import DEFAULT_CEILING
from .errors import ConfigError
from .phonemes import DEFAULT_VOCAB, Vocabulary

logger = logging.getLogger(__name__)


@dataclass
class ModelConfig:
    """Inference configuration for a Piper voice."""

    # Audio
    sample_rate: int = 22050
    ceiling: float = DEFAULT_CEILING

    # Inference scales (order matters, see `scales`)
    noise_scale: float = 0.667
    length_scale: float = 1.0
    noise_w: float = 0.8

    # Phonemizer
    language: str = "en-us"

    # Symbol → [id] table from the model config; None → DEFAULT_VOCAB
    phoneme_id_map: Optional[Dict[str, List[int]]] = field(default=None, repr=False)

    def __post_init__(self):
        if not isinstance(self.sample_rate, int) or self.sample_rate <= 0:
            raise ConfigError(f"sample_rate must be a positive integer, got {self.sample_rate!r}")
        if not 0.0 < self.ceiling <= 1.0:
            raise ConfigError(f"ceiling must be in (0, 1], got {self.ceiling!r}")
        if self.length_scale <= 0:
            raise ConfigError(f"length_scale must be positive, got {self.length_scale!r}")

        if not os.environ.get("TESTING"):
            self._log_config()

    def _log_config(self):
        vocab = "model" if self.phoneme_id_map else "default"
        logger.info(
            f"Config: {self.sample_rate} Hz, scales={self.scales}, "
            f"ceiling={self.ceiling}, language={self.language}, vocab={vocab}"
        )

    @property
    def scales(self) -> List[float]:
        """[noise_scale, length_scale, noise_w], as the model's `scales` input expects."""
        return [self.noise_scale, self.length_scale, self.noise_w]

    def vocabulary(self) -> Vocabulary:
        if self.phoneme_id_map is None:
            return DEFAULT_VOCAB
        return Vocabulary.from_phoneme_id_map(self.phoneme_id_map)

    def to_dict(self) -> dict:
        return {k: v for k, v in self.__dict__.items() if not k.startswith("_")}

    @classmethod
    def from_dict(cls, d: dict) -> "ModelConfig":
        return cls(**d)

    @classmethod
    def from_piper_json(cls, cfg: dict) -> "ModelConfig":
        """Read the fields we use from a Piper `.onnx.json` document."""
        audio = cfg.get("audio") or {}
        inference = cfg.get("inference") or {}
        espeak = cfg.get("espeak") or {}
        try:
            return cls(
                sample_rate=int(audio.get("sample_rate", 22050)),
                noise_scale=float(inference.get("noise_scale", 0.667)),
                length_scale=float(inference.get("length_scale", 1.0)),
                noise_w=float(inference.get("noise_w", 0.8)),
                language=espeak.get("voice", "en-us"),
                phoneme_id_map=cfg.get("phoneme_id_map"),
            )
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Malformed model config: {e}") from e


def load_model_config(config_path: Union[str, Path]) -> ModelConfig:
    """Load a Piper model config JSON; fall back to defaults if it is missing."""
    config_path = Path(config_path)
    if not config_path.exists():
        logger.warning(f"{config_path} not found, using defaults")
        return ModelConfig()

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            cfg = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in {config_path}: {e}") from e

    config = ModelConfig.from_piper_json(cfg)
    logger.info(f"Loaded config from {config_path}")
    return config


def get_default_config() -> ModelConfig:
    return ModelConfig()
