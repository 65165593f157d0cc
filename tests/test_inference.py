"""
Tests for the PiperTTS wrapper, model adapters and CLI.
"""

import json
import sys
from unittest.mock import MagicMock, patch

import numpy as np
import pytest
import soundfile as sf

from piper_tts.config import ModelConfig
from piper_tts.errors import InferenceError, ModelLoadError
from piper_tts.inference import OnnxInfer, PiperTTS, TorchScriptInfer, load_infer, main


@pytest.fixture
def fake_infer():
    """Stand-in voice model that returns a fixed buffer."""
    return MagicMock(return_value=np.array([0.2, -0.4, 0.1], dtype=np.float32))


@pytest.fixture
def tts(piper_config_dict, fake_infer):
    return PiperTTS(ModelConfig.from_piper_json(piper_config_dict), fake_infer)


def test_text_to_ids_uses_model_vocabulary(tts):
    # "hi" → "haɪ" → ^ h a ɪ $ with the model's ids
    assert tts.text_to_ids("hi") == [1, 20, 14, 74, 2]


def test_synthesize_normalizes_model_output(tts, fake_infer):
    result = tts.synthesize("hi")

    fake_infer.assert_called_once_with([1, 20, 14, 74, 2], [0.5, 1.2, 0.7])
    np.testing.assert_allclose(result.audio, [0.475, -0.95, 0.2375], rtol=1e-6)
    assert result.sample_rate == 16000
    assert len(result.audio) == 3


def test_synthesize_empty_text_skips_model(tts, fake_infer):
    result = tts.synthesize("")
    assert result.audio.size == 0
    assert result.sample_rate == 16000
    fake_infer.assert_not_called()


def test_synthesize_unpronounceable_text_skips_model(tts, fake_infer):
    # digits have no letter rule and are not in the vocabulary
    result = tts.synthesize("123")
    assert result.audio.size == 0
    fake_infer.assert_not_called()


def test_silent_model_output(tts, fake_infer):
    fake_infer.return_value = np.zeros(4, dtype=np.float32)
    result = tts.synthesize("hi")
    np.testing.assert_array_equal(result.audio, np.zeros(4))


def test_inference_failure_is_wrapped(tts, fake_infer):
    fake_infer.side_effect = RuntimeError("out of memory")
    with pytest.raises(InferenceError) as excinfo:
        tts.synthesize("hi")
    assert isinstance(excinfo.value.__cause__, RuntimeError)


def test_synthesize_without_model():
    with pytest.raises(InferenceError):
        PiperTTS().synthesize("hi")


def test_synthesize_writes_wav(tts, tmp_path):
    path = tmp_path / "hi.wav"
    tts.synthesize("hi", path)
    data, sample_rate = sf.read(str(path))
    assert sample_rate == 16000
    assert len(data) == 3


def test_batch_synthesize(tts, tmp_path, fake_infer):
    paths = tts.batch_synthesize(["hi", "hi!"], tmp_path / "batch")
    assert [p.name for p in paths] == ["utt_000.wav", "utt_001.wav"]
    assert all(p.exists() for p in paths)
    assert fake_infer.call_count == 2


def test_batch_skips_unpronounceable_lines(tts, tmp_path, fake_infer):
    paths = tts.batch_synthesize(["hi", "123", "hi!"], tmp_path)
    assert [p.name for p in paths] == ["utt_000.wav", "utt_002.wav"]
    assert all(p.exists() for p in paths)
    assert not (tmp_path / "utt_001.wav").exists()
    assert fake_infer.call_count == 2


def test_synthesis_duration(tts):
    assert tts.synthesize("hi").duration == pytest.approx(3 / 16000)


# ── Model loading ──────────────────────────────────────────────────

def test_load_infer_missing_model(tmp_path):
    with pytest.raises(ModelLoadError):
        load_infer(tmp_path / "voice.onnx")


def test_load_infer_unsupported_format(tmp_path):
    path = tmp_path / "voice.bin"
    path.write_bytes(b"\x00")
    with pytest.raises(ModelLoadError):
        load_infer(path)


def test_load_infer_backend_failure(tmp_path):
    path = tmp_path / "voice.onnx"
    path.write_bytes(b"\x00")
    fake_ort = MagicMock()
    fake_ort.InferenceSession.side_effect = RuntimeError("invalid protobuf")
    with patch.dict(sys.modules, {"onnxruntime": fake_ort}):
        with pytest.raises(ModelLoadError):
            load_infer(path)


def test_onnx_infer_feeds(tmp_path):
    fake_ort = MagicMock()
    session = fake_ort.InferenceSession.return_value
    session.run.return_value = [np.full((1, 1, 6), 0.25, dtype=np.float32)]

    with patch.dict(sys.modules, {"onnxruntime": fake_ort}):
        infer = OnnxInfer(tmp_path / "voice.onnx")

    audio = infer([1, 20, 14, 2], [0.667, 1.0, 0.8])
    assert audio.shape == (6,)

    _, feeds = session.run.call_args[0]
    assert feeds["input"].dtype == np.int64
    assert feeds["input"].shape == (1, 4)
    assert feeds["input_lengths"].tolist() == [4]
    assert feeds["scales"].dtype == np.float32
    np.testing.assert_allclose(feeds["scales"], [0.667, 1.0, 0.8], rtol=1e-6)


# ── CLI ────────────────────────────────────────────────────────────

def test_cli_ids_only(capsys):
    main(["--ids-only", "--text", "hi"])
    phonemes, ids = capsys.readouterr().out.strip().splitlines()
    assert phonemes == "haɪ"
    assert ids == "1 20 14 48 2"


def test_cli_requires_model():
    with pytest.raises(SystemExit):
        main(["--text", "hi"])


# ── TorchScript adapter ────────────────────────────────────────────

@pytest.fixture
def fake_torch():
    """Stand-in `torch` module whose TorchScript model returns (audio, attn)."""
    torch = MagicMock()
    torch.cuda.is_available.return_value = False
    audio = MagicMock()
    audio.float.return_value.cpu.return_value.numpy.return_value = np.full((1, 1, 5), 0.5, dtype=np.float32)
    torch.jit.load.return_value.return_value = (audio, MagicMock())
    with patch.dict(sys.modules, {"torch": torch}):
        yield torch


def test_torchscript_infer_unwraps_tuple_output(tmp_path, fake_torch):
    infer = TorchScriptInfer(tmp_path / "voice.pt")
    out = infer([1, 20, 14, 2], [0.667, 1.0, 0.8])

    assert out.shape == (5,)
    np.testing.assert_allclose(out, 0.5)
    fake_torch.no_grad.assert_called_once()
    fake_torch.jit.load.return_value.eval.assert_called_once()
    fake_torch.LongTensor.assert_any_call([1, 20, 14, 2])
    fake_torch.LongTensor.assert_any_call([4])
    fake_torch.FloatTensor.assert_called_once_with([0.667, 1.0, 0.8])


def test_torchscript_infer_plain_tensor_output(tmp_path, fake_torch):
    audio = MagicMock()
    audio.float.return_value.cpu.return_value.numpy.return_value = np.zeros((1, 3), dtype=np.float32)
    fake_torch.jit.load.return_value.return_value = audio
    assert TorchScriptInfer(tmp_path / "voice.pt")([1, 2], [0.667, 1.0, 0.8]).shape == (3,)


def test_torchscript_device_selection(tmp_path, fake_torch):
    TorchScriptInfer(tmp_path / "voice.pt")
    fake_torch.device.assert_called_with("cpu")

    fake_torch.cuda.is_available.return_value = True
    TorchScriptInfer(tmp_path / "voice.pt")
    fake_torch.device.assert_called_with("cuda")

    TorchScriptInfer(tmp_path / "voice.pt", device="mps")
    fake_torch.device.assert_called_with("mps")


@pytest.mark.parametrize("name", ["voice.pt", "voice.PTH"])
def test_load_infer_torchscript(tmp_path, fake_torch, name):
    path = tmp_path / name
    path.write_bytes(b"\x00")
    assert isinstance(load_infer(path, device="cpu"), TorchScriptInfer)


def test_load_infer_torch_not_installed(tmp_path):
    path = tmp_path / "voice.pt"
    path.write_bytes(b"\x00")
    with patch.dict(sys.modules, {"torch": None}):
        with pytest.raises(ModelLoadError, match="not installed"):
            load_infer(path)


# ── Loading from a voice directory ─────────────────────────────────

def _write_voice(tmp_path, piper_config_dict):
    model = tmp_path / "en_US-test-medium.onnx"
    model.write_bytes(b"\x00")
    config = tmp_path / "en_US-test-medium.onnx.json"
    config.write_text(json.dumps(piper_config_dict, ensure_ascii=False), encoding="utf-8")
    return model


def test_from_model_path_reads_sibling_config(tmp_path, piper_config_dict):
    model = _write_voice(tmp_path, piper_config_dict)
    fake_ort = MagicMock()
    with patch.dict(sys.modules, {"onnxruntime": fake_ort}):
        tts = PiperTTS.from_model_path(model)

    assert tts.config.sample_rate == 16000
    assert tts.vocab["ɪ"] == 74
    assert isinstance(tts.infer, OnnxInfer)
    fake_ort.InferenceSession.assert_called_once()
    assert fake_ort.InferenceSession.call_args[0][0] == str(model)


def test_from_model_path_explicit_config(tmp_path, piper_config_dict):
    model = tmp_path / "voice.onnx"
    model.write_bytes(b"\x00")
    other = tmp_path / "custom.json"
    other.write_text(json.dumps({"audio": {"sample_rate": 44100}}), encoding="utf-8")
    with patch.dict(sys.modules, {"onnxruntime": MagicMock()}):
        tts = PiperTTS.from_model_path(model, config_path=other)
    assert tts.config.sample_rate == 44100


# ── CLI synthesis modes ────────────────────────────────────────────

def test_cli_text_file(tmp_path, piper_config_dict, fake_infer):
    model = _write_voice(tmp_path, piper_config_dict)
    texts = tmp_path / "lines.txt"
    texts.write_text("hi\n\n123\nhello!\n", encoding="utf-8")
    out_dir = tmp_path / "out"

    with patch("piper_tts.inference.load_infer", return_value=fake_infer):
        main(["--model", str(model), "--text-file", str(texts), "--output", str(out_dir / "x.wav")])

    assert sorted(p.name for p in out_dir.iterdir()) == ["utt_000.wav", "utt_002.wav"]
    assert fake_infer.call_count == 2


def test_cli_single_text(tmp_path, piper_config_dict, fake_infer):
    model = _write_voice(tmp_path, piper_config_dict)
    output = tmp_path / "hi.wav"
    with patch("piper_tts.inference.load_infer", return_value=fake_infer):
        main(["-m", str(model), "-t", "hi", "-o", str(output)])
    data, sample_rate = sf.read(str(output))
    assert sample_rate == 16000
    assert len(data) == 3


def test_cli_interactive(tmp_path, monkeypatch, capsys, piper_config_dict, fake_infer):
    model = _write_voice(tmp_path, piper_config_dict)
    monkeypatch.chdir(tmp_path)

    with patch("piper_tts.inference.load_infer", return_value=fake_infer), \
            patch("builtins.input", side_effect=["hi", "", "123", "quit"]):
        main(["--model", str(model), "--interactive"])

    out = capsys.readouterr().out
    assert "Saved: interactive_" in out
    assert "Nothing to synthesize" in out
    assert len(list(tmp_path.glob("interactive_*.wav"))) == 1
    assert fake_infer.call_count == 1
