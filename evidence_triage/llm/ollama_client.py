"""
Evidence Triage - Ollama Client

Thin urllib wrapper around the local Ollama HTTP API. Only the endpoints
the scorer needs are covered: version check, installed model listing and
non-streaming generation.
"""

import http.client
import json
import logging
from dataclasses import dataclass
from typing import Any, Optional
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

logger = logging.getLogger(__name__)

CHECK_TIMEOUT = 5
TAGS_TIMEOUT = 10


@dataclass
class OllamaResponse:
    """Outcome of one /api/generate call."""

    response: str
    model: str
    total_duration: Optional[int] = None
    eval_count: Optional[int] = None
    success: bool = True
    error: Optional[str] = None

    @classmethod
    def failed(cls, model: str, error: str) -> "OllamaResponse":
        return cls(response="", model=model, success=False, error=error)


class OllamaClient:
    """
    Client for a local Ollama server.

    Availability checks answer False/None/[] when the server cannot be reached;
    generate() reports transport problems through OllamaResponse.error
    instead of raising, so a scorer can fall back to keyword rules.
    """

    DEFAULT_BASE_URL = "http://127.0.0.1:11434"
    DEFAULT_MODEL = "llama3.1"
    TIMEOUT_SECONDS = 60

    def __init__(
        self,
        base_url: Optional[str] = None,
        model: Optional[str] = None,
        timeout: int = TIMEOUT_SECONDS,
    ):
        self.base_url = (base_url or self.DEFAULT_BASE_URL).rstrip("/")
        self.model = model or self.DEFAULT_MODEL
        self.timeout = timeout

    def _call(self, endpoint: str, timeout: float, payload: Optional[dict] = None) -> Any:
        """GET (or POST when a payload is given) and decode the JSON body."""
        if payload is None:
            req = Request(f"{self.base_url}{endpoint}")
        else:
            req = Request(
                f"{self.base_url}{endpoint}",
                data=json.dumps(payload).encode("utf-8"),
                headers={"Content-Type": "application/json"},
                method="POST",
            )
        with urlopen(req, timeout=timeout) as resp:
            return json.loads(resp.read().decode())

    def is_available(self) -> bool:
        """True when the server answers the version endpoint with 200."""
        try:
            with urlopen(Request(f"{self.base_url}/api/version"), timeout=CHECK_TIMEOUT) as resp:
                return resp.status == 200
        except (OSError, http.client.HTTPException):
            # URLError, HTTPError and socket timeouts are all OSError subclasses
            return False

    def get_version(self) -> Optional[str]:
        try:
            data = self._call("/api/version", CHECK_TIMEOUT)
        except (OSError, ValueError, http.client.HTTPException):
            return None
        return data.get("version") if isinstance(data, dict) else None

    def list_models(self) -> list[str]:
        """Names of installed models, e.g. ["llama3.1:latest"]."""
        try:
            data = self._call("/api/tags", TAGS_TIMEOUT)
        except (OSError, ValueError, http.client.HTTPException):
            return []
        installed = data.get("models") if isinstance(data, dict) else None
        if not isinstance(installed, list):
            return []
        return [entry.get("name", "") for entry in installed if isinstance(entry, dict)]

    def is_model_available(self, model: Optional[str] = None) -> bool:
        """Whether ``model`` is installed; a bare name matches any tag."""
        wanted = model or self.model
        return any(
            name == wanted or name.split(":", 1)[0] == wanted
            for name in self.list_models()
        )

    def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        model: Optional[str] = None,
        temperature: float = 0.3,
        max_tokens: Optional[int] = None,
        json_mode: bool = False,
    ) -> OllamaResponse:
        """
        Run one non-streaming completion.

        Args:
            prompt: Rendered evidence record
            system_prompt: Analyst persona and output contract
            model: Override for the client's model
            temperature: Sampling temperature
            max_tokens: Sent as options.num_predict when set
            json_mode: Ask Ollama to constrain output to a JSON document

        Returns:
            OllamaResponse; success is False when the call did not complete
        """
        model = model or self.model

        options: dict[str, Any] = {"temperature": temperature}
        if max_tokens:
            options["num_predict"] = max_tokens

        payload: dict[str, Any] = {
            "model": model,
            "prompt": prompt,
            "stream": False,
            "options": options,
        }
        if system_prompt:
            payload["system"] = system_prompt
        if json_mode:
            payload["format"] = "json"

        try:
            data = self._call("/api/generate", self.timeout, payload)
        except HTTPError as e:
            error = f"HTTP error {e.code}: {e.reason}"
        except URLError as e:
            error = f"Connection error: {e.reason}"
        except TimeoutError:
            error = f"Request timed out after {self.timeout}s"
        except json.JSONDecodeError as e:
            error = f"Invalid JSON response: {e}"
        except UnicodeDecodeError as e:
            error = f"Response is not valid UTF-8: {e}"
        except http.client.HTTPException as e:
            error = f"Incomplete or malformed HTTP response: {e!r}"
        except OSError as e:
            error = f"Socket error: {e}"
        else:
            if not isinstance(data, dict):
                error = f"Unexpected response body: {type(data).__name__}"
            elif not isinstance(data.get("response", ""), str):
                error = "Response field is not text"
            else:
                return OllamaResponse(
                    response=data.get("response", ""),
                    model=data.get("model") or model,
                    total_duration=data.get("total_duration"),
                    eval_count=data.get("eval_count"),
                )

        logger.warning(f"Ollama generation with {model} failed: {error}")
        return OllamaResponse.failed(model, error)
