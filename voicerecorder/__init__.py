"""VoiceRecorder - fixed-length microphone recordings uploaded to an HTTP endpoint."""

__version__ = "0.1.0"
