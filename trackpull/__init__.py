"""
trackpull - Audio track extraction for speech transcription.

Takes a video file and produces a small audio file through a six-stage
pipeline: capability check → engine load → codec probe → stream-copy or
re-encode plan → extraction → artifact assembly.
"""

__version__ = "0.1.0"
