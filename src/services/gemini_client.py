from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Optional

import google.generativeai as genai
from google.api_core import exceptions as google_exceptions

from src.services.errors import (
    GenerationConfigurationError,
    GenerationFailedError,
    NetworkTimeoutError,
    RateLimitedError,
    ServiceError,
)


class GeminiPromptError(ServiceError):
    pass


class GeminiClient:
    def __init__(
        self,
        api_key: str,
        model_name: str = "gemini-2.5-flash",
        timeout_seconds: float = 60.0,
    ) -> None:
        self.api_key = api_key
        self.model_name = model_name
        self.timeout_seconds = timeout_seconds
        self._configure_api()

    def _configure_api(self) -> None:
        if not self.api_key:
            raise GenerationConfigurationError("Missing Google API key.")
        genai.configure(api_key=self.api_key)

    def _load_system_prompt(self, file_path: Path) -> str:
        try:
            return file_path.read_text(encoding="utf-8")
        except FileNotFoundError as not_found_error:
            raise GeminiPromptError(f"Prompt file not found: {file_path}") from not_found_error
        except (OSError, IOError) as io_error:
            raise GeminiPromptError(f"Unable to read prompt file: {io_error}") from io_error

    def generate_json(
        self,
        user_prompt: str,
        system_prompt_path: Path,
        response_schema: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        system_instruction = self._load_system_prompt(system_prompt_path)
        model = genai.GenerativeModel(
            model_name=self.model_name,
            system_instruction=system_instruction,
            generation_config=genai.GenerationConfig(
                response_mime_type="application/json",
                response_schema=response_schema,
            ),
        )

        try:
            response = model.generate_content(
                user_prompt,
                request_options={"timeout": self.timeout_seconds},
            )
        except google_exceptions.DeadlineExceeded as err:
            raise NetworkTimeoutError(f"models/{self.model_name}", self.timeout_seconds) from err
        except google_exceptions.ResourceExhausted as err:
            raise RateLimitedError("Gemini API quota reached. Try again shortly.") from err
        except google_exceptions.GoogleAPICallError as err:
            raise GenerationFailedError(f"Gemini request failed: {err}") from err

        try:
            text = response.text
        except ValueError:
            # Raised by the SDK when the candidate was blocked or is empty.
            text = None
        if not text:
            raise GenerationFailedError("Model response did not include text content.")

        try:
            payload = json.loads(text)
        except json.JSONDecodeError as err:
            raise GenerationFailedError(f"Model returned invalid JSON: {err}") from err
        if not isinstance(payload, dict):
            raise GenerationFailedError("Model returned JSON that is not an object.")
        return payload
