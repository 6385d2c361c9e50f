# Copyright 2026 Justin Cook
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Client for the external AI gateway.
Polishes CV text, scores a CV against a job description, drafts cover
letters and turns pasted CV text into structured data.
"""

import json
import logging
from typing import Any, Dict, Optional

import requests

from cv_builder.config import Settings, get_ca_bundle
from cv_builder.models import ATSResult, CVData, hydrate_cv_data

# Logger is configured in main.py
logger = logging.getLogger(__name__)

ACTION_POLISH = "polish"
ACTION_ATS_SCORE = "ats-score"
ACTION_COVER_LETTER = "generate-cover-letter"
ACTION_PARSE_RAW_TEXT = "parse-raw-text"
ACTIONS = (ACTION_POLISH, ACTION_ATS_SCORE, ACTION_COVER_LETTER, ACTION_PARSE_RAW_TEXT)


class AIError(Exception):
    """Base class for AI gateway failures. The message is shown to the user."""


class AIConfigurationError(AIError):
    pass


class RateLimited(AIError):
    pass


class QuotaExhausted(AIError):
    pass


class ServiceUnavailable(AIError):
    pass


class MalformedResponse(AIError):
    pass


class RequestInFlight(AIError):
    pass


def _clean_json(text: str) -> str:
    """Helper to strip code fences from LLM output"""
    if "```json" in text:
        text = text.split("```json")[1].split("```")[0]
    elif "```" in text:
        text = text.split("```")[1].split("```")[0]
    return text.strip()


def _string_list(value) -> list:
    if not isinstance(value, list):
        return []
    return [str(v) for v in value if v is not None and str(v).strip()]


class AIClient:
    """
    Thin wrapper over the gateway endpoint. Failures are raised as categorised
    AIError subclasses and never retried here.

    Only one request per action may be in flight; a repeated "Generate" while
    the first is pending raises RequestInFlight instead of sending a duplicate.
    """

    def __init__(self, url: str, api_key: str = "", timeout: float = 60.0, session: Optional[requests.Session] = None):
        self.url = url
        self.api_key = api_key
        self.timeout = timeout
        self.session = session or requests.Session()
        self._in_flight = set()

    @classmethod
    def from_settings(cls, settings: Settings) -> "AIClient":
        return cls(settings.ai_url, settings.ai_key, timeout=settings.ai_timeout)

    def is_busy(self, action: str) -> bool:
        return action in self._in_flight

    def _call(self, action: str, payload: Dict[str, Any]) -> str:
        """Posts one action to the gateway and returns the raw response text."""
        if action not in ACTIONS:
            raise ValueError(f"Unknown AI action: {action}")
        if not self.url:
            raise AIConfigurationError("AI service is not configured. Set CV_BUILDER_AI_URL.")
        if action in self._in_flight:
            raise RequestInFlight(f"A '{action}' request is already in progress.")

        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        self._in_flight.add(action)
        try:
            logger.info(f"Calling AI gateway: {action}")
            try:
                response = self.session.post(
                    self.url,
                    json={"action": action, **payload},
                    headers=headers,
                    timeout=self.timeout,
                    verify=get_ca_bundle(),
                )
            except requests.exceptions.Timeout as e:
                raise ServiceUnavailable("AI service timed out. Please try again.") from e
            except requests.exceptions.RequestException as e:
                raise ServiceUnavailable(f"AI service unreachable: {e}") from e
        finally:
            self._in_flight.discard(action)

        if response.status_code >= 400:
            message = self._error_message(response)
            if response.status_code == 429:
                raise RateLimited(message or "Rate limit exceeded. Please try again shortly.")
            if response.status_code == 402:
                raise QuotaExhausted(message or "AI credits exhausted. Please top up in Settings.")
            logger.error(f"AI gateway error {response.status_code}: {response.text[:500]}")
            raise ServiceUnavailable(message or "AI service error")
        return response.text

    @staticmethod
    def _error_message(response) -> str:
        try:
            body = response.json()
        except ValueError:
            return ""
        if isinstance(body, dict) and isinstance(body.get("error"), str):
            return body["error"]
        return ""

    def _call_json(self, action: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        text = self._call(action, payload)
        try:
            data = json.loads(_clean_json(text))
        except ValueError as e:
            logger.debug(f"Raw response: {text[:500]}")
            raise MalformedResponse("Failed to parse AI response") from e
        if not isinstance(data, dict):
            raise MalformedResponse("AI response was not a JSON object")
        if isinstance(data.get("error"), str):
            raise MalformedResponse(data["error"])
        return data

    def polish(self, cv: CVData) -> CVData:
        """Refines CV wording. The result keeps the input's structure."""
        data = self._call_json(ACTION_POLISH, {"cvData": cv.to_dict()})
        polished = hydrate_cv_data(data.get("cvData", data))
        # Keep entry ids stable so the editor keeps its selection
        for entry, original in zip(polished.experiences, cv.experiences):
            entry.id = original.id
        for entry, original in zip(polished.education, cv.education):
            entry.id = original.id
        return polished

    def ats_score(self, cv: CVData, job_description: str) -> ATSResult:
        data = self._call_json(ACTION_ATS_SCORE, {"cvData": cv.to_dict(), "jobDescription": job_description})
        try:
            score = int(round(float(data.get("score"))))
        except (TypeError, ValueError) as e:
            raise MalformedResponse("AI response is missing a numeric score") from e
        return ATSResult(
            score=max(0, min(100, score)),
            matched_keywords=_string_list(data.get("matchedKeywords")),
            missing_keywords=_string_list(data.get("missingKeywords")),
            suggestions=_string_list(data.get("suggestions")),
        )

    def generate_cover_letter(self, cv: CVData, job_description: str) -> str:
        """Returns the letter body as plain text."""
        text = self._call(ACTION_COVER_LETTER, {"cvData": cv.to_dict(), "jobDescription": job_description})
        body = text.strip()
        if body.startswith("{"):
            try:
                data = json.loads(body)
            except ValueError:
                data = None
            if isinstance(data, dict):
                for key in ("coverLetter", "body", "text"):
                    if isinstance(data.get(key), str):
                        body = data[key].strip()
                        break
                else:
                    raise MalformedResponse("AI response did not contain a cover letter")
        if not body:
            raise MalformedResponse("AI returned an empty cover letter")
        return body

    def parse_raw_text(self, raw_text: str) -> CVData:
        if not raw_text or not raw_text.strip():
            raise ValueError("No CV text to parse")
        data = self._call_json(ACTION_PARSE_RAW_TEXT, {"rawText": raw_text})
        return hydrate_cv_data(data.get("cvData", data))
