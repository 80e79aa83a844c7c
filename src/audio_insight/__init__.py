"""audio-insight: transcribe an audio clip and analyse it with a language model."""

__version__ = "0.1.0"
