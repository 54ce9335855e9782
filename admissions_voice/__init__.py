"""
Admissions Voice Assistant
==========================

Voice-driven lead-qualification assistant for iiTuitions admissions.

This package provides:
- A turn pipeline (speech-to-text, reply generation, text-to-speech)
- Resilient upstream calls with retry and error classification
- Ephemeral realtime session issuance with ICE server fallback
- Archiving of recorded audio and transcripts
- A FastAPI front door exposing the above over HTTP
"""

__version__ = "1.0.0"
