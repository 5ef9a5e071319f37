"""Advisory target suggestions from a vision language model.

The suggester looks at the image content and proposes a target size
percentage with a short rationale. It is advisory only: the caller decides
whether to feed the percentage back into a search.
"""

import base64
import json
import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol

import requests

from .errors import SuggestionError


_logger = logging.getLogger(__name__)


SUGGESTION_PROMPT = (
    "You are an image compression specialist. Look at the attached image and "
    "recommend a target file size as a percentage (1-100) of the original file's "
    "byte size. 70 means the compressed file should be about 70% of the original. "
    "100 means keep the best possible quality, which can be lossless for PNG. "
    "Take the content into account (photograph, graphic, text, screenshot) and "
    "balance visual quality against size reduction. "
    'Reply with JSON only: {"targetSizePercentage": <number>, "reasoning": "<text>"}'
)


@dataclass(frozen=True)
class Suggestion:
    """A suggested compression target.

    Attributes:
        percentage: Suggested target size percentage (1-100)
        reasoning: Human-readable explanation
    """
    percentage: int
    reasoning: str


class Suggester(Protocol):
    """Anything that can suggest a target percentage for an image."""

    def suggest(self, image_bytes: bytes, mime_type: str) -> Suggestion:
        ...


def parse_suggestion(payload: Dict[str, Any]) -> Suggestion:
    """Validate a decoded model reply.

    The percentage is rounded and clamped into 1-100.

    Args:
        payload: Dict with targetSizePercentage and reasoning

    Returns:
        Suggestion

    Raises:
        SuggestionError: If required fields are missing or not numeric
    """
    if not isinstance(payload, dict):
        raise SuggestionError(f"Expected a JSON object, got {type(payload).__name__}")

    raw = payload.get('targetSizePercentage')
    if isinstance(raw, bool) or not isinstance(raw, (int, float, str)):
        raise SuggestionError(f"Missing or invalid targetSizePercentage: {raw!r}")
    try:
        percentage = float(raw)
    except ValueError as exc:
        raise SuggestionError(f"targetSizePercentage is not a number: {raw!r}") from exc
    if not math.isfinite(percentage):
        raise SuggestionError(f"targetSizePercentage is not finite: {raw!r}")

    percentage = max(1, min(100, int(round(percentage))))
    reasoning = str(payload.get('reasoning') or "").strip()
    return Suggestion(percentage=percentage, reasoning=reasoning)


class HttpSuggester:
    """Suggester backed by an OpenAI-compatible chat completions endpoint."""

    DEFAULT_ENDPOINT = "https://api.openai.com/v1/chat/completions"
    DEFAULT_MODEL = "gpt-4o-mini"

    def __init__(
        self,
        api_key: Optional[str],
        endpoint: str = DEFAULT_ENDPOINT,
        model: str = DEFAULT_MODEL,
        timeout: float = 60,
        session: Optional[requests.Session] = None,
    ):
        """Initialize suggester.

        Args:
            api_key: Bearer token for the endpoint (None for local servers)
            endpoint: Chat completions URL
            model: Model name sent with each request
            timeout: Request timeout in seconds
            session: Optional requests session to reuse connections
        """
        self.api_key = api_key
        self.endpoint = endpoint
        self.model = model
        self.timeout = timeout
        self.session = session or requests.Session()

    def suggest(self, image_bytes: bytes, mime_type: str) -> Suggestion:
        """Ask the model for a target percentage.

        Raises:
            SuggestionError: On transport errors, HTTP errors or unusable replies
        """
        data_uri = "data:{};base64,{}".format(
            mime_type, base64.b64encode(image_bytes).decode('ascii')
        )
        body = {
            'model': self.model,
            'response_format': {'type': 'json_object'},
            'messages': [{
                'role': 'user',
                'content': [
                    {'type': 'text', 'text': SUGGESTION_PROMPT},
                    {'type': 'image_url', 'image_url': {'url': data_uri}},
                ],
            }],
        }
        headers = {'Content-Type': 'application/json'}
        if self.api_key:
            headers['Authorization'] = f"Bearer {self.api_key}"

        try:
            response = self.session.post(
                self.endpoint, json=body, headers=headers, timeout=self.timeout
            )
            response.raise_for_status()
            content = response.json()['choices'][0]['message']['content']
        except requests.RequestException as exc:
            _logger.warning(f"Suggestion request failed: {exc}")
            raise SuggestionError(f"Suggestion request failed: {exc}") from exc
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise SuggestionError(f"Unexpected suggestion response: {exc}") from exc

        try:
            payload = json.loads(content)
        except (TypeError, json.JSONDecodeError) as exc:
            raise SuggestionError(f"Suggestion was not valid JSON: {content!r}") from exc

        suggestion = parse_suggestion(payload)
        _logger.info(f"Suggested target {suggestion.percentage}%")
        return suggestion
