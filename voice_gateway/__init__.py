"""HTTP gateway for transcription, chat and speech synthesis."""

__version__ = "1.0.0"
