# sheetlingo/services/translation_backends.py
"""
Translation backends: remote language models that translate a list of
strings into a target language and return a list of the same length.

Providers:
- Gemini (Google Generative Language REST API)
- Alibaba Bailian (DashScope application completion API)

Credentials come from environment variables only.
"""

from __future__ import annotations

import json
import logging
import os
import re
import socket
import urllib.error
import urllib.request
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Optional, Sequence, Union

from sheetlingo.models.types import TranslationModel
from sheetlingo.services.exceptions import BackendError

if TYPE_CHECKING:
    from sheetlingo.config.settings import AppSettings

logger = logging.getLogger(__name__)

DEFAULT_MAX_CHARS_PER_BATCH = 8000
DEFAULT_TIMEOUT = 120

_RE_CODE_FENCE = re.compile(r"^\s*```(?:json)?\s*$", re.IGNORECASE)
_RE_TRAILING_COMMAS = re.compile(r",(\s*[}\]])")

TRANSLATION_INSTRUCTION = """You are an expert translator. Your task is to translate a JSON array of text strings into a specified target language. The source language will be detected automatically.
- You MUST return a valid JSON array of strings.
- The output array MUST have the exact same number of elements as the input array.
- The order of the translated strings in the output array MUST correspond to the order of the source strings in the input array.
- If a string does not require translation (e.g., it is a number, code, a proper noun, or is already in the target language), return the original string in the corresponding position in the output array.
- Do not add any explanatory text, markdown, or any characters outside of the JSON array in your response.

Example for a target language of Russian:
Input: ["Hello world", "技术规格", "100", "DN50"]
Output: ["Привет, мир", "Технические характеристики", "100", "DN50"]
"""


def _strip_code_fences(text: str) -> str:
    if "```" not in text:
        return text
    lines = []
    for line in text.splitlines():
        if _RE_CODE_FENCE.match(line):
            continue
        lines.append(line)
    return "\n".join(lines).strip()


def _extract_json_array(text: str) -> Optional[str]:
    text = text.strip()
    start = text.find("[")
    end = text.rfind("]")
    if start == -1 or end <= start:
        return None
    return text[start : end + 1]


def parse_string_array(text: str) -> list[str]:
    """
    Parse a model answer that should be a JSON array of strings.

    Markdown code fences and text around the array are tolerated.

    Raises:
        BackendError: if no array of strings can be parsed
    """
    cleaned = _strip_code_fences(text)
    candidate = _extract_json_array(cleaned) or cleaned.strip()
    if not candidate:
        raise BackendError("Translation response is empty")

    try:
        parsed = json.loads(candidate)
    except json.JSONDecodeError:
        try:
            parsed = json.loads(_RE_TRAILING_COMMAS.sub(r"\1", candidate))
        except json.JSONDecodeError as e:
            raise BackendError(f"Translation response is not valid JSON: {e}") from e

    if not isinstance(parsed, list):
        raise BackendError(f"Translation response is not a JSON array: {type(parsed).__name__}")
    if not all(isinstance(item, str) for item in parsed):
        raise BackendError("Translation response contains non-string items")
    return parsed


class TranslationBackend(ABC):
    """
    Base class for translation providers.

    translate() splits the input into batches bounded by max_chars_per_batch,
    sends them one after another and concatenates the results. Any failed
    batch fails the whole call.
    """

    name: str = ""

    def __init__(
        self,
        max_chars_per_batch: int = DEFAULT_MAX_CHARS_PER_BATCH,
        timeout: int = DEFAULT_TIMEOUT,
    ):
        self.max_chars_per_batch = max_chars_per_batch
        self.timeout = timeout

    def translate(self, texts: Sequence[str], target_language_name: str) -> list[str]:
        """
        Translate texts into the target language, preserving count and order.

        Raises:
            BackendError: on missing credentials, transport failure, malformed
                response or a result count that does not match the input
        """
        if not texts:
            return []

        self._check_credentials()

        results: list[str] = []
        batches = self._create_batches(list(texts))
        for index, batch in enumerate(batches, start=1):
            logger.debug("%s batch %d/%d: %d texts", self.name, index, len(batches), len(batch))
            translated = self._translate_batch(batch, target_language_name)
            if len(translated) != len(batch):
                raise BackendError(
                    f"{self.name} returned {len(translated)} translations for {len(batch)} texts"
                )
            results.extend(translated)

        logger.info("%s translated %d texts into %s", self.name, len(results), target_language_name)
        return results

    def _create_batches(self, texts: list[str]) -> list[list[str]]:
        """
        Split texts into batches based on max_chars_per_batch.

        A single text longer than the limit is sent on its own.
        """
        batches = []
        current_batch: list[str] = []
        current_chars = 0

        for text in texts:
            size = len(text)
            if size > self.max_chars_per_batch:
                if current_batch:
                    batches.append(current_batch)
                    current_batch = []
                    current_chars = 0
                logger.warning(
                    "Text exceeds max_chars_per_batch (%d > %d), sending it alone",
                    size, self.max_chars_per_batch,
                )
                batches.append([text])
                continue

            if current_batch and current_chars + size > self.max_chars_per_batch:
                batches.append(current_batch)
                current_batch = []
                current_chars = 0

            current_batch.append(text)
            current_chars += size

        if current_batch:
            batches.append(current_batch)
        return batches

    @abstractmethod
    def _check_credentials(self) -> None:
        """Raise BackendError when the provider is not configured."""
        pass

    @abstractmethod
    def _translate_batch(self, texts: list[str], target_language_name: str) -> list[str]:
        pass

    def _post_json(self, url: str, payload: dict, headers: dict[str, str]) -> dict:
        """POST a JSON body and return the decoded JSON response."""
        body = json.dumps(payload, ensure_ascii=False).encode("utf-8")
        req = urllib.request.Request(url, data=body, method="POST")
        req.add_header("Content-Type", "application/json")
        for key, value in headers.items():
            req.add_header(key, value)

        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as response:
                raw = response.read()
        except urllib.error.HTTPError as e:
            try:
                body_text = e.read().decode("utf-8", errors="replace")
            except OSError:
                body_text = ""
            raise BackendError(
                f"{self.name} request failed with HTTP {e.code}: {body_text[:200]}"
            ) from e
        except urllib.error.URLError as e:
            raise BackendError(f"{self.name} is unreachable: {e.reason}") from e
        except (socket.timeout, TimeoutError) as e:
            raise BackendError(f"{self.name} request timed out after {self.timeout}s") from e
        except OSError as e:
            raise BackendError(f"{self.name} request failed: {e}") from e

        try:
            data = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise BackendError(f"{self.name} returned a non-JSON response: {e}") from e
        if not isinstance(data, dict):
            raise BackendError(f"{self.name} returned an unexpected response: {type(data).__name__}")
        return data


class GeminiBackend(TranslationBackend):
    """Gemini via the generateContent REST endpoint with a JSON response schema."""

    name = "Gemini"
    ENDPOINT = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "gemini-2.5-flash",
        **kwargs,
    ):
        super().__init__(**kwargs)
        self.api_key = api_key or os.environ.get("GEMINI_API_KEY") or os.environ.get("API_KEY")
        self.model = model

    def _check_credentials(self) -> None:
        if not self.api_key:
            raise BackendError("Gemini API key is not configured (set GEMINI_API_KEY)")

    def _translate_batch(self, texts: list[str], target_language_name: str) -> list[str]:
        prompt = (
            f"Translate the following JSON array into {target_language_name}:\n"
            f"{json.dumps(texts, ensure_ascii=False)}"
        )
        payload = {
            "systemInstruction": {"parts": [{"text": TRANSLATION_INSTRUCTION}]},
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {
                "responseMimeType": "application/json",
                "responseSchema": {"type": "ARRAY", "items": {"type": "STRING"}},
            },
        }
        data = self._post_json(
            self.ENDPOINT.format(model=self.model),
            payload,
            {"x-goog-api-key": self.api_key},
        )
        return parse_string_array(self._response_text(data))

    @staticmethod
    def _response_text(data: dict) -> str:
        candidates = data.get("candidates")
        if not isinstance(candidates, list) or not candidates:
            feedback = data.get("promptFeedback")
            raise BackendError(f"Gemini response has no candidates: {feedback}")
        content = candidates[0].get("content") or {}
        parts = content.get("parts") or []
        text = "".join(part.get("text", "") for part in parts if isinstance(part, dict))
        if not text.strip():
            raise BackendError("Gemini response does not contain text")
        return text


class BailianBackend(TranslationBackend):
    """Alibaba Bailian application completion API (DashScope)."""

    name = "Alibaba Bailian"
    ENDPOINT = "https://dashscope.aliyuncs.com/api/v1/apps/{app_id}/completion"

    def __init__(
        self,
        api_key: Optional[str] = None,
        app_id: Optional[str] = None,
        **kwargs,
    ):
        super().__init__(**kwargs)
        self.api_key = api_key or os.environ.get("BAILIAN_API_KEY")
        self.app_id = app_id or os.environ.get("BAILIAN_APP_ID")

    def _check_credentials(self) -> None:
        if not self.api_key or not self.app_id:
            raise BackendError(
                "Alibaba Bailian credentials are not configured (set BAILIAN_API_KEY and BAILIAN_APP_ID)"
            )

    def _translate_batch(self, texts: list[str], target_language_name: str) -> list[str]:
        prompt = (
            f"{TRANSLATION_INSTRUCTION}\n"
            f"Translate the following JSON array into {target_language_name}:\n"
            f"{json.dumps(texts, ensure_ascii=False)}"
        )
        data = self._post_json(
            self.ENDPOINT.format(app_id=self.app_id),
            {"input": {"prompt": prompt}, "parameters": {}},
            {"Authorization": f"Bearer {self.api_key}"},
        )
        output = data.get("output")
        text = output.get("text") if isinstance(output, dict) else None
        if not isinstance(text, str) or not text.strip():
            raise BackendError("Alibaba Bailian response does not contain 'output.text'")
        return parse_string_array(text)


def create_backend(
    model: Union[TranslationModel, str],
    settings: Optional["AppSettings"] = None,
) -> TranslationBackend:
    """
    Create the backend for a translation model.

    Raises:
        ValueError: if the model is unknown
    """
    if not isinstance(model, TranslationModel):
        model = TranslationModel(model)

    kwargs = {}
    if settings is not None:
        kwargs = {
            "max_chars_per_batch": settings.max_chars_per_batch,
            "timeout": settings.request_timeout,
        }

    if model == TranslationModel.GEMINI:
        gemini_model = settings.gemini_model if settings is not None else "gemini-2.5-flash"
        return GeminiBackend(model=gemini_model, **kwargs)
    if model == TranslationModel.BAILIAN:
        return BailianBackend(**kwargs)
    raise ValueError(f"Unsupported translation model: {model}")
