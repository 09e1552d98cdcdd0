"""Text-generation helpers: Go test code and response analysis.

The text generator itself is an external service behind a one-method
contract, ``generate(prompt) -> str``. This module only builds the prompts
and turns any generator failure into a fixed fallback string.
"""

from __future__ import annotations

import os
import re
from typing import Protocol

import httpx

from .builder import append_query, build_header_map, build_query_string
from .exceptions import TextGenerationError
from .logging_config import get_logger
from .models import ExecutionOutcome, RequestSpec

logger = get_logger("assist")

CODEGEN_FALLBACK = "// Error generating Go code; check the text generation service settings."
ANALYSIS_FALLBACK = "Unable to analyze the response right now."
# Only the head of the body goes into the analysis prompt
ANALYSIS_BODY_LIMIT = 1000

LLM_URL_ENV = "VOLLEY_LLM_URL"
LLM_MODEL_ENV = "VOLLEY_LLM_MODEL"
DEFAULT_LLM_URL = "http://localhost:11434"
DEFAULT_LLM_MODEL = "llama3.1"
DEFAULT_LLM_TIMEOUT_SEC = 60.0

_CODE_FENCE = re.compile(r"```[a-zA-Z]*")


class TextGenerator(Protocol):
    def generate(self, prompt: str) -> str: ...


def build_codegen_prompt(spec: RequestSpec) -> str:
    """Prompt for a runnable Go net/http test. Deterministic for a given spec."""
    headers = ", ".join(f'"{k}": "{v}"' for k, v in build_header_map(spec.headers).items())
    full_url = append_query(spec.url, build_query_string(spec.query_params))
    method = spec.method.value
    return (
        "You are a senior Go (Golang) developer.\n"
        'Write a complete, runnable Go source file that uses the "net/http" and "testing" '
        "packages to test the following API request.\n"
        "\n"
        "Request details:\n"
        f"- Method: {method}\n"
        f"- URL: {full_url}\n"
        f"- Headers: {{{headers}}}\n"
        f"- Body: {spec.body or 'nil'}\n"
        "\n"
        "Requirements:\n"
        f"1. Create a test function named 'TestAPI_{method}'.\n"
        "2. Use 'http.NewRequest'.\n"
        "3. Set every request header.\n"
        "4. If there is a body, handle JSON marshaling.\n"
        "5. Check that the status code is 200 (or the appropriate success code).\n"
        "6. Output only raw Go code, without Markdown fences or explanations.\n"
    )


def build_analysis_prompt(spec: RequestSpec, outcome: ExecutionOutcome) -> str:
    """Prompt asking for a short Markdown analysis of one response."""
    return (
        "Analyze this API response and explain it briefly.\n"
        "\n"
        f"Request: {spec.method.value} {spec.url}\n"
        f"Response status: {outcome.status}\n"
        f"Response body (excerpt): {outcome.raw_body[:ANALYSIS_BODY_LIMIT]}...\n"
        "\n"
        "If it is an error (4xx/5xx), explain the likely cause and how to fix it in Go.\n"
        "If it succeeded, describe the returned data structure.\n"
        "Use Markdown.\n"
    )


def strip_code_fences(text: str) -> str:
    return _CODE_FENCE.sub("", text).replace("```", "").strip()


def generate_test_code(spec: RequestSpec, generator: TextGenerator) -> str:
    """Go test source for ``spec``, or CODEGEN_FALLBACK if generation fails."""
    try:
        return strip_code_fences(generator.generate(build_codegen_prompt(spec)))
    except Exception as e:  # noqa: BLE001
        logger.warning("Code generation failed: %s", e)
        return CODEGEN_FALLBACK


def analyze_response(spec: RequestSpec, outcome: ExecutionOutcome, generator: TextGenerator) -> str:
    """Markdown analysis of ``outcome``, or ANALYSIS_FALLBACK if generation fails."""
    try:
        return generator.generate(build_analysis_prompt(spec, outcome))
    except Exception as e:  # noqa: BLE001
        logger.warning("Response analysis failed: %s", e)
        return ANALYSIS_FALLBACK


class OllamaTextGenerator:
    """Text generator backed by an Ollama-compatible ``/api/generate`` endpoint."""

    def __init__(
        self,
        base_url: str | None = None,
        model: str | None = None,
        timeout: float = DEFAULT_LLM_TIMEOUT_SEC,
        client: httpx.Client | None = None,
    ) -> None:
        self.base_url = (base_url or os.environ.get(LLM_URL_ENV) or DEFAULT_LLM_URL).rstrip("/")
        self.model = model or os.environ.get(LLM_MODEL_ENV) or DEFAULT_LLM_MODEL
        self._client = client or httpx.Client(timeout=timeout)

    def generate(self, prompt: str) -> str:
        try:
            r = self._client.post(
                f"{self.base_url}/api/generate",
                json={"model": self.model, "prompt": prompt, "stream": False},
            )
            r.raise_for_status()
            data = r.json()
        except (httpx.HTTPError, ValueError) as e:
            raise TextGenerationError(f"Text generation request failed: {e}", original_error=e) from e
        text = data.get("response") if isinstance(data, dict) else None
        if not text:
            raise TextGenerationError("Text generation returned empty content")
        return str(text).strip()

    def close(self) -> None:
        self._client.close()
