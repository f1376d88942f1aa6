"""Client for the external AI text service.

Three calls, all coroutines so a caller can cancel them:
    parse_entries  - natural language -> candidate entry dicts
    transcribe     - audio bytes -> text
    analyze_month  - entries -> short summary for a manager

Output of `parse_entries` is weakly typed; feed it through
`forms.from_parsed` before it reaches the store.
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Iterable, Sequence
from typing import Any

from openai import AsyncOpenAI, OpenAIError

from .config import Job
from .errors import AIServiceError
from .forms import TimeEntry, WorkType

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4o-mini"
DEFAULT_TRANSCRIBE_MODEL = "gpt-4o-mini-transcribe"
DEFAULT_TIMEOUT = 30.0

ENTRY_SCHEMA: dict[str, Any] = {
    "type": "object",
    "additionalProperties": False,
    "required": ["entries"],
    "properties": {
        "entries": {
            "type": "array",
            "items": {
                "type": "object",
                "additionalProperties": False,
                "required": ["date", "project", "description", "hours", "type"],
                "properties": {
                    "date": {
                        "type": "string",
                        "description": "Date in YYYY-MM-DD. Resolve relative dates against the reference date.",
                    },
                    "project": {
                        "type": ["string", "null"],
                        "description": "Exact job name from the list. Null unless type is Regular work or Overtime.",
                    },
                    "description": {"type": "string", "description": "Short task description."},
                    "hours": {"type": "number", "description": "Hours worked."},
                    "type": {"type": "string", "enum": [t.value for t in WorkType]},
                },
            },
        }
    },
}


def _timeout_from_env() -> float:
    try:
        return float(os.environ.get("SMARTWORK_AI_TIMEOUT", DEFAULT_TIMEOUT))
    except ValueError:
        return DEFAULT_TIMEOUT


class TextService:
    """Thin wrapper over `AsyncOpenAI` with timeouts and error translation."""

    def __init__(
        self,
        client: Any | None = None,
        *,
        model: str | None = None,
        transcribe_model: str | None = None,
        timeout: float | None = None,
    ) -> None:
        self.timeout = timeout if timeout is not None else _timeout_from_env()
        self.client = client or AsyncOpenAI(timeout=self.timeout, max_retries=1)
        self.model = model or os.environ.get("OPENAI_MODEL", DEFAULT_MODEL)
        self.transcribe_model = transcribe_model or DEFAULT_TRANSCRIBE_MODEL

    async def parse_entries(
        self, text: str, reference_date: str, jobs: Iterable[Job] = ()
    ) -> list[dict[str, Any]]:
        """Turn a freeform description of work into candidate entry dicts."""
        job_list = ", ".join(f"{j.name} ({j.code})" for j in jobs)
        prompt = (
            "You are a payroll assistant. Convert the following description of work "
            "into structured timesheet entries.\n"
            f"Reference date (today): {reference_date}. If no year is given, use the reference year.\n"
            "If no type of work is given, assume 'Regular work'.\n"
            f"Available jobs: [{job_list}]\n"
            "Project rules:\n"
            "1. For 'Regular work' or 'Overtime' pick a job from the list (or 'General' if none matches).\n"
            "2. For every other type (vacation, doctor, holiday, sick day, ...) the project must be null.\n"
            f'Input: "{text}"'
        )
        try:
            response = await self.client.responses.create(
                model=self.model,
                input=prompt,
                text={
                    "format": {
                        "type": "json_schema",
                        "name": "time_entries",
                        "schema": ENTRY_SCHEMA,
                        "strict": True,
                    }
                },
            )
        except OpenAIError as exc:
            logger.error("Entry parsing failed: %s", exc)
            raise AIServiceError("Could not parse the text. Try again or enter the data manually.") from exc

        raw = (response.output_text or "").strip()
        if not raw:
            return []
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise AIServiceError("The AI service returned malformed JSON.") from exc
        items = data.get("entries") if isinstance(data, dict) else data
        if not isinstance(items, list):
            raise AIServiceError("The AI service returned an unexpected shape.")
        return [item for item in items if isinstance(item, dict)]

    async def transcribe(self, audio: bytes, mime_type: str = "audio/webm") -> str:
        """Transcribe a voice recording to plain text."""
        extension = mime_type.split("/")[-1].split(";")[0] or "webm"
        try:
            result = await self.client.audio.transcriptions.create(
                model=self.transcribe_model,
                file=(f"recording.{extension}", audio, mime_type),
            )
        except OpenAIError as exc:
            logger.error("Transcription failed: %s", exc)
            raise AIServiceError("Could not transcribe the audio.") from exc
        return (getattr(result, "text", "") or "").strip()

    async def analyze_month(self, entries: Sequence[TimeEntry]) -> str:
        """Write a short e-mail style summary of a month for a manager."""
        simple = [
            {"date": e.date, "project": e.project, "hours": e.hours, "type": e.type.value}
            for e in entries
        ]
        prompt = (
            "Analyze this monthly timesheet for a payroll accountant and a manager.\n"
            f"Data: {json.dumps(simple)}\n"
            "Write a short summary (max 3 paragraphs) covering:\n"
            "1. Overall workload and anomalies (too much overtime, unbalanced projects).\n"
            "2. Missing days or suspicious entries, if any.\n"
            "3. A positive or neutral assessment of the month.\n"
            "Format it as a professional e-mail to a supervisor."
        )
        try:
            response = await self.client.responses.create(model=self.model, input=prompt)
        except OpenAIError as exc:
            logger.error("Month analysis failed: %s", exc)
            raise AIServiceError("Could not generate the analysis.") from exc
        return (response.output_text or "").strip()
