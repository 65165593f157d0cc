"""Named failure conditions raised by the collaborators around the G2P core."""


class TTSError(Exception):
    """Base class for piper_tts errors"""
    pass


class VocabularyError(TTSError):
    """Phoneme-ID table is absent or malformed"""
    pass


class ConfigError(TTSError):
    """Invalid model configuration"""
    pass


class ModelLoadError(TTSError):
    """Error loading the voice model"""
    pass


class InferenceError(TTSError):
    """The inference backend failed to produce audio"""
    pass
