"""Best-effort advisory calls to a hosted language model.

The raw calls raise :class:`AdvisoryError`. Callers on the save path use the
``*_or_default`` variants, which log the failure and fall back to the static
reference lists or to no alert.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
from collections.abc import Iterable, Sequence
from typing import Any

import httpx

from .config import Settings
from .domain import AsaGrade, CaseLog
from .exceptions import AdvisoryError
from .models import COMMON_SURGERIES_BY_SPECIALTY, MAX_SUGGESTIONS

logger = logging.getLogger(__name__)

SUGGEST_SURGERIES_PROMPT = """\
You are an assistant that suggests surgery types for an anesthesia case log.

Surgical specialty: {specialty}
Previously logged surgery types: {history}

Suggest up to {limit} surgery types that are the most relevant and frequent for
this specialty, favouring those that appear often in the history. Never repeat
a surgery. If the history is empty or no specialty is given, suggest common
surgeries for the specialty.

Respond with a JSON array of strings and nothing else."""

CLINICAL_ALERT_PROMPT = """\
You are an expert medical advisor giving clinical decision support to
anesthesiologists. Review the ASA grade and anesthesia technique below and,
only if the combination is unusual, write a brief, soft, non-judgmental alert.

Examples of combinations that deserve an alert:
- ASA grade V with MAC/Sedation.
- ASA grade I with Spinal.

ASA Grade: {asa_grade}
Anesthesia Technique: {technique}

Respond with a JSON object {{"alert": <string or null>}} and nothing else."""

MONTHLY_SUMMARY_PROMPT = """\
You are an expert anesthesiologist writing a descriptive monthly summary of a
case log. Describe case volume, common ASA grades and the anesthesia
techniques used. Focus on practice patterns; do not make diagnostic or
therapeutic recommendations.

Month: {month}
Year: {year}
Case logs: {cases}

Respond with a JSON object {{"summary": <string>}} and nothing else."""

_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


def _parse_json(text: str) -> Any:
    """Parse a model reply, tolerating a markdown code fence around it."""
    try:
        return json.loads(_FENCE.sub("", text.strip()))
    except json.JSONDecodeError as e:
        raise AdvisoryError(f"Advisory reply is not valid JSON: {text[:80]!r}") from e


def dedupe(items: Iterable[str], limit: int | None = None) -> list[str]:
    """Drop blanks and repeats, keeping first-seen order."""
    result: list[str] = []
    for item in items:
        value = item.strip()
        if value and value not in result:
            result.append(value)
    return result[:limit] if limit is not None else result


def static_suggestions(specialty: str) -> list[str]:
    """Reference surgeries for a specialty, empty for unknown specialties."""
    return list(COMMON_SURGERIES_BY_SPECIALTY.get(specialty, ()))


def _summary_payload(cases: Sequence[CaseLog]) -> str:
    # Patient identifiers and free-text notes never leave the machine
    rows = [
        {
            "date": case.date.isoformat(),
            "age": case.age,
            "asaGrade": case.asa_grade.value,
            "specialty": case.specialty,
            "surgeryType": case.surgery_type,
            "anesthesiaTechnique": case.anesthesia_technique,
            "duration": case.duration,
            "isEmergency": case.is_emergency,
            "complications": case.complications,
        }
        for case in cases
    ]
    return json.dumps(rows, ensure_ascii=False)


class AdvisoryClient:
    """Client for an OpenAI-compatible chat completion endpoint."""

    def __init__(
        self,
        settings: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
        retry_delay: float = 1.0,
    ):
        """
        Initialize the client.

        Args:
            settings: Application settings holding the endpoint and key
            transport: Optional httpx transport (tests use httpx.MockTransport)
            retry_delay: Base delay in seconds for rate-limit backoff
        """
        self.settings = settings
        self.transport = transport
        self.retry_delay = retry_delay

    @property
    def enabled(self) -> bool:
        return self.settings.advisory_enabled

    async def _complete(self, prompt: str, temperature: float = 0.2) -> str:
        """Send a single-turn prompt and return the reply text."""
        if not self.enabled:
            raise AdvisoryError("Advisory service is not configured")

        url = f"{self.settings.llm_base_url}/chat/completions"
        headers = {
            "Authorization": f"Bearer {self.settings.llm_api_key}",
            "Content-Type": "application/json",
        }
        payload = {
            "model": self.settings.llm_model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": temperature,
            "max_tokens": 500,
        }

        attempts = self.settings.llm_max_retries + 1
        for attempt in range(attempts):
            try:
                async with httpx.AsyncClient(
                    timeout=self.settings.llm_timeout, transport=self.transport
                ) as client:
                    response = await client.post(url, headers=headers, json=payload)
                    response.raise_for_status()
                    data = response.json()
                content = data["choices"][0]["message"]["content"]
                if not isinstance(content, str):
                    raise AdvisoryError("Malformed advisory response")
                return content
            except httpx.HTTPStatusError as e:
                if e.response.status_code == 429 and attempt + 1 < attempts:
                    wait_time = self.retry_delay * 2**attempt
                    logger.warning(
                        "Advisory rate limited, retrying in %.1f seconds", wait_time
                    )
                    await asyncio.sleep(wait_time)
                    continue
                raise AdvisoryError(
                    f"Advisory request failed with status {e.response.status_code}"
                ) from e
            except httpx.HTTPError as e:
                raise AdvisoryError(f"Advisory request failed: {e}") from e
            except (KeyError, IndexError, TypeError, ValueError) as e:
                raise AdvisoryError("Malformed advisory response") from e

        raise AdvisoryError("Advisory retries exhausted")

    async def suggest_surgeries(
        self, specialty: str, case_history: Sequence[str]
    ) -> list[str]:
        """
        Ask for up to five surgery types relevant to a specialty.

        Raises:
            AdvisoryError: If the call fails or the reply is not a list of strings
        """
        prompt = SUGGEST_SURGERIES_PROMPT.format(
            specialty=specialty or "(not specified)",
            history=", ".join(case_history) or "(none)",
            limit=MAX_SUGGESTIONS,
        )
        reply = _parse_json(await self._complete(prompt))
        if not isinstance(reply, list) or not all(isinstance(s, str) for s in reply):
            raise AdvisoryError("Surgery suggestions must be a JSON array of strings")
        return dedupe(reply, limit=MAX_SUGGESTIONS)

    async def get_clinical_alert(
        self, asa_grade: AsaGrade | str, technique: str
    ) -> str | None:
        """
        Ask whether an ASA grade / technique combination deserves an alert.

        Returns:
            The alert text, or None when the combination is unremarkable

        Raises:
            AdvisoryError: If the call fails or the reply is malformed
        """
        try:
            grade = AsaGrade(asa_grade)
        except ValueError as e:
            raise AdvisoryError(f"Unknown ASA grade: {asa_grade!r}") from e
        prompt = CLINICAL_ALERT_PROMPT.format(
            asa_grade=grade.value, technique=technique
        )
        reply = _parse_json(await self._complete(prompt))
        if not isinstance(reply, dict) or "alert" not in reply:
            raise AdvisoryError("Clinical alert reply must be an object with 'alert'")
        alert = reply["alert"]
        if alert is None:
            return None
        if not isinstance(alert, str):
            raise AdvisoryError("Clinical alert must be a string or null")
        return alert.strip() or None

    async def summarize_month(
        self, cases: Sequence[CaseLog], month: str, year: int
    ) -> str:
        """
        Ask for a narrative summary of one month of cases.

        Raises:
            AdvisoryError: If the call fails or the reply is malformed
        """
        prompt = MONTHLY_SUMMARY_PROMPT.format(
            month=month, year=year, cases=_summary_payload(cases)
        )
        reply = _parse_json(await self._complete(prompt, temperature=0.5))
        if not isinstance(reply, dict) or not isinstance(reply.get("summary"), str):
            raise AdvisoryError(
                "Monthly summary reply must be an object with 'summary'"
            )
        return reply["summary"].strip()

    async def suggestions_or_default(
        self, specialty: str, case_history: Sequence[str]
    ) -> list[str]:
        """Static reference surgeries followed by model suggestions, deduplicated.

        Never raises; a failed call leaves only the static list.
        """
        base = static_suggestions(specialty)
        if not self.enabled:
            return base
        try:
            suggested = await self.suggest_surgeries(specialty, case_history)
        except AdvisoryError as e:
            logger.warning("Could not fetch surgery suggestions: %s", e)
            return base
        return dedupe([*base, *suggested])

    async def alert_or_none(
        self, asa_grade: AsaGrade | str, technique: str
    ) -> str | None:
        """Clinical alert, or None if there is none or the call failed."""
        if not self.enabled or not technique:
            return None
        try:
            return await self.get_clinical_alert(asa_grade, technique)
        except AdvisoryError as e:
            logger.warning("Could not fetch clinical alert: %s", e)
            return None

    async def summary_or_none(
        self, cases: Sequence[CaseLog], month: str, year: int
    ) -> str | None:
        """Monthly narrative, or None if the service is unavailable."""
        if not self.enabled or not cases:
            return None
        try:
            return await self.summarize_month(cases, month, year)
        except AdvisoryError as e:
            logger.warning("Could not generate monthly summary: %s", e)
            return None
