"""Voice input for the smart entry field.

Recordings are transcribed by the AI text service; the resulting text goes
through the same parsing path as typed input.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..ai import TextService


@dataclass
class TranscriptionResult:
    """Represents the result of speech-to-text transcription."""

    text: str
    confidence: float | None = None


class SpeechToText:
    """Abstract STT interface."""

    async def transcribe(self, audio_bytes: bytes, mime_type: str = "audio/webm") -> TranscriptionResult:
        raise NotImplementedError


class ServiceSpeechToText(SpeechToText):
    """STT backed by `TextService.transcribe`."""

    def __init__(self, service: TextService) -> None:
        self.service = service

    async def transcribe(self, audio_bytes: bytes, mime_type: str = "audio/webm") -> TranscriptionResult:
        if not audio_bytes:
            return TranscriptionResult(text="")
        text = await self.service.transcribe(audio_bytes, mime_type)
        return TranscriptionResult(text=text)


def append_transcript(current: str, transcript: str) -> str:
    """Append dictated text to what is already in the input field."""
    transcript = transcript.strip()
    if not transcript:
        return current
    return f"{current} {transcript}" if current else transcript
