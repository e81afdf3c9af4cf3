"""Top-level package for VoiceFrame."""

from . import config, exports, generation, pdf, social, storage, transcriber

__all__ = ["config", "exports", "generation", "pdf", "social", "storage", "transcriber"]
