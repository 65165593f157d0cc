#!/usr/bin/env python3
"""
Piper TTS Inference: convert English text to speech audio.

End-to-end: text → G2P → phoneme IDs → voice model → normalized WAV.
The voice model is any callable `infer(ids, scales) -> samples`; ONNX
(onnxruntime) and TorchScript (torch) adapters are provided.

Usage:
    python -m piper_tts.inference \
        --model voices/en_US-lessac-medium.onnx \
        --text "Hello, world!"

    python -m piper_tts.inference --ids-only --text "Hello, world!"
"""

import argparse
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Union

import numpy as np
from tqdm import tqdm

from .audio import duration_seconds, normalize, save_audio
from .config import ModelConfig, load_model_config
from .errors import InferenceError, ModelLoadError
from .g2p import EnglishG2P, load_backend
from .phonemes import phonemes_to_ids

logger = logging.getLogger(__name__)

InferFn = Callable[[List[int], Sequence[float]], np.ndarray]


# ── Model adapters ──────────────────────────────────────────────────

class OnnxInfer:
    """Run a Piper `.onnx` voice with onnxruntime."""

    def __init__(self, model_path: Union[str, Path], providers: Optional[List[str]] = None):
        import onnxruntime as ort

        self.model_path = Path(model_path)
        self.session = ort.InferenceSession(
            str(self.model_path),
            providers=providers or ["CPUExecutionProvider"],
        )

    def __call__(self, ids: List[int], scales: Sequence[float]) -> np.ndarray:
        feeds = {
            "input": np.array([ids], dtype=np.int64),
            "input_lengths": np.array([len(ids)], dtype=np.int64),
            "scales": np.array(scales, dtype=np.float32),
        }
        output = self.session.run(None, feeds)[0]
        return np.asarray(output, dtype=np.float32).reshape(-1)


class TorchScriptInfer:
    """Run a TorchScript export of a VITS voice (`forward(x, x_lengths, scales)`)."""

    def __init__(self, model_path: Union[str, Path], device: Optional[str] = None):
        import torch

        self._torch = torch
        if device:
            self.device = torch.device(device)
        elif torch.cuda.is_available():
            self.device = torch.device("cuda")
        else:
            self.device = torch.device("cpu")

        self.model_path = Path(model_path)
        self.model = torch.jit.load(str(self.model_path), map_location=self.device)
        self.model.eval()

    def __call__(self, ids: List[int], scales: Sequence[float]) -> np.ndarray:
        torch = self._torch
        x = torch.LongTensor(ids).unsqueeze(0).to(self.device)
        x_lengths = torch.LongTensor([len(ids)]).to(self.device)
        scales_tensor = torch.FloatTensor(list(scales)).to(self.device)

        with torch.no_grad():
            audio = self.model(x, x_lengths, scales_tensor)

        if isinstance(audio, (tuple, list)):
            audio = audio[0]
        return audio.float().cpu().numpy().reshape(-1)


def load_infer(model_path: Union[str, Path], device: Optional[str] = None) -> InferFn:
    """Load a voice model, picking the adapter from the file suffix."""
    model_path = Path(model_path)
    if not model_path.exists():
        raise ModelLoadError(f"No model found at {model_path}")

    suffix = model_path.suffix.lower()
    logger.info(f"Loading model from {model_path}")
    try:
        if suffix == ".onnx":
            return OnnxInfer(model_path)
        if suffix in (".pt", ".pth"):
            return TorchScriptInfer(model_path, device=device)
    except ImportError as e:
        raise ModelLoadError(f"Backend for {suffix} models is not installed: {e}") from e
    except Exception as e:
        raise ModelLoadError(f"Failed to load {model_path}: {e}") from e

    raise ModelLoadError(f"Unsupported model format: {model_path.suffix!r}")


# ── Synthesis ───────────────────────────────────────────────────────

@dataclass
class Synthesis:
    audio: np.ndarray
    sample_rate: int

    @property
    def duration(self) -> float:
        return duration_seconds(self.audio, self.sample_rate)


class PiperTTS:
    """English text-to-speech wrapper around a Piper voice."""

    def __init__(
        self,
        config: Optional[ModelConfig] = None,
        infer: Optional[InferFn] = None,
        g2p: Optional[EnglishG2P] = None,
    ):
        self.config = config if config is not None else ModelConfig()
        self.vocab = self.config.vocabulary()
        self.g2p = g2p if g2p is not None else EnglishG2P(vocab=self.vocab)
        self.infer = infer

    @classmethod
    def from_model_path(
        cls,
        model_path: Union[str, Path],
        config_path: Optional[Union[str, Path]] = None,
        use_espeak: bool = False,
        device: Optional[str] = None,
    ) -> "PiperTTS":
        """Load `<voice>.onnx` together with its `<voice>.onnx.json` config."""
        model_path = Path(model_path)
        if config_path is None:
            config_path = model_path.with_name(model_path.name + ".json")

        config = load_model_config(config_path)
        vocab = config.vocabulary()
        g2p = EnglishG2P(load_backend(use_espeak, config.language), vocab=vocab)
        return cls(config, load_infer(model_path, device=device), g2p)

    def text_to_ids(self, text: str) -> List[int]:
        phonemes = self.g2p.text_to_phonemes(text)
        ids = phonemes_to_ids(phonemes, self.vocab)
        logger.info(f"Input: {text}")
        logger.info(f"Phonemes: {phonemes}")
        logger.info(f"Phoneme IDs ({len(ids)}): {ids}")
        return ids

    def _has_content(self, ids: List[int]) -> bool:
        sentinels = (self.vocab.bos_id is not None) + (self.vocab.eos_id is not None)
        return len(ids) > sentinels

    def synthesize(self, text: str, output_path: Optional[Union[str, Path]] = None) -> Synthesis:
        """
        Convert text to speech.

        Args:
            text: English text
            output_path: optional WAV output path

        Returns:
            Synthesis with normalized float32 samples and the model sample rate.
            Text with no pronounceable symbols yields an empty buffer and the
            model is not called.
        """
        sample_rate = self.config.sample_rate
        ids = self.text_to_ids(text)

        if not self._has_content(ids):
            logger.warning(f"Nothing to synthesize for {text!r}")
            return Synthesis(np.zeros(0, dtype=np.float32), sample_rate)

        if self.infer is None:
            raise InferenceError("No voice model loaded")

        try:
            raw = self.infer(ids, self.config.scales)
        except Exception as e:
            raise InferenceError(f"Generation failed: {e}") from e

        audio = normalize(raw, self.config.ceiling)
        result = Synthesis(audio, sample_rate)
        logger.info(f"Audio: {result.duration:.2f}s")

        if output_path:
            save_audio(audio, output_path, sample_rate)

        return result

    def batch_synthesize(self, texts: List[str], output_dir: Union[str, Path]) -> List[Path]:
        """
        Convert multiple texts, saving each to output_dir/utt_NNN.wav.

        Returns the paths actually written; lines with nothing to synthesize
        are skipped and keep their index gap.
        """
        out = Path(output_dir)
        out.mkdir(parents=True, exist_ok=True)
        paths = []
        for i, text in enumerate(tqdm(texts, desc="Synthesizing")):
            path = out / f"utt_{i:03d}.wav"
            result = self.synthesize(text, path)
            if result.audio.size == 0:
                logger.warning(f"Skipped line {i}: no audio written")
                continue
            paths.append(path)
        return paths


# ── CLI ─────────────────────────────────────────────────────────────

def main(argv: Optional[List[str]] = None):
    parser = argparse.ArgumentParser(description="Piper TTS Inference")
    parser.add_argument("--model", "-m", help="Voice model (.onnx or TorchScript .pt)")
    parser.add_argument("--config", "-c", help="Model config JSON (default: <model>.json)")
    parser.add_argument("--text", "-t", help="Text to synthesize")
    parser.add_argument("--text-file", "-f", help="File with texts (one per line)")
    parser.add_argument("--output", "-o", default="output.wav", help="Output WAV path")
    parser.add_argument("--device", choices=["cpu", "cuda", "mps"])
    parser.add_argument("--espeak", action="store_true", help="Use espeak-ng G2P when available")
    parser.add_argument("--ids-only", action="store_true", help="Print phonemes and IDs, skip synthesis")
    parser.add_argument("--interactive", "-i", action="store_true")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")

    if args.ids_only:
        if not args.text:
            parser.error("--ids-only requires --text")
        if args.config:
            config = load_model_config(args.config)
        elif args.model:
            config = load_model_config(args.model + ".json")
        else:
            config = ModelConfig()
        vocab = config.vocabulary()
        g2p = EnglishG2P(load_backend(args.espeak, config.language), vocab=vocab)
        print(g2p.text_to_phonemes(args.text))
        print(" ".join(str(i) for i in g2p.text_to_ids(args.text)))
        return

    if not args.model:
        parser.error("--model is required unless --ids-only is given")

    tts = PiperTTS.from_model_path(
        args.model,
        config_path=args.config,
        use_espeak=args.espeak,
        device=args.device,
    )

    if args.interactive:
        print("Interactive Piper TTS (type 'quit' to exit)")
        while True:
            text = input("\nText: ").strip()
            if text.lower() in ("quit", "exit", "q"):
                break
            if text:
                out = f"interactive_{abs(hash(text)) % 10000}.wav"
                if tts.synthesize(text, out).audio.size:
                    print(f"Saved: {out}")
                else:
                    print("Nothing to synthesize")

    elif args.text:
        tts.synthesize(args.text, args.output)

    elif args.text_file:
        with open(args.text_file, "r", encoding="utf-8") as f:
            texts = [l.strip() for l in f if l.strip()]
        out_dir = Path(args.output).parent if Path(args.output).suffix else args.output
        tts.batch_synthesize(texts, out_dir)

    else:
        parser.print_help()


if __name__ == "__main__":
    main()
