"""
Gemini annotator for the AI overlay, using the Google GenAI SDK.
"""

import json
import logging
from typing import Any

from google import genai
from google.genai import types

from ..config import EngineSettings
from ..exceptions import OverlayError

logger = logging.getLogger(__name__)

SYSTEM_INSTRUCTION = """You are an insurance estimate analysis system. Your ONLY function is to \
provide neutral, factual observations about the structure of an already-analyzed estimate.

STRICT RULES:
- No recommendations or advice
- No obligation or entitlement language
- No negotiation guidance
- No legal interpretation
- No coverage opinions
- State facts only, using the numbers provided

You will receive a JSON object of computed scores, counts and dollar ranges.
Return ONLY valid JSON with this structure:
{
  "structural_observations": ["factual observation 1", "factual observation 2"],
  "pattern_observations": ["pattern 1", "pattern 2"],
  "neutral_summary": "Brief neutral summary of the analysis"
}"""


def strip_code_fences(text: str) -> str:
    """Remove a surrounding markdown code block, if present."""
    text = text.strip()
    if text.startswith("```"):
        lines = text.split("\n")
        if lines[0].startswith("```"):
            lines = lines[1:]
        if lines and lines[-1].strip() == "```":
            lines = lines[:-1]
        text = "\n".join(lines)
    return text


class GeminiAnnotator:
    """
    Annotator backed by ``client.models.generate_content``.
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str = "gemini-2.5-flash",
        temperature: float = 0.2,
        client: Any | None = None,
    ) -> None:
        if client is None and not api_key:
            raise OverlayError(
                "No Gemini API key configured",
                remediation="Set GOOGLE_API_KEY or GEMINI_API_KEY, or disable the AI overlay.",
            )
        self.model = model
        self.temperature = temperature
        self.client = client or genai.Client(api_key=api_key)

    @classmethod
    def from_settings(cls, settings: EngineSettings) -> "GeminiAnnotator":
        return cls(api_key=settings.google_api_key, model=settings.ai_model)

    def annotate(self, payload: dict[str, Any]) -> dict[str, Any]:
        """
        Request neutral observations for a numeric analysis summary.

        Raises:
            OverlayError: If the response is empty or not a JSON object
        """
        user_prompt = (
            "Provide neutral observations for this estimate analysis summary:\n\n"
            f"{json.dumps(payload, indent=2)}"
        )
        response = self.client.models.generate_content(
            model=self.model,
            contents=types.Content(parts=[types.Part(text=user_prompt)]),
            config=types.GenerateContentConfig(
                system_instruction=SYSTEM_INSTRUCTION,
                temperature=self.temperature,
                response_mime_type="application/json",
            ),
        )

        if not response.text:
            raise OverlayError("Empty AI response")
        try:
            result = json.loads(strip_code_fences(response.text))
        except json.JSONDecodeError as e:
            raise OverlayError(f"Failed to parse AI response as JSON: {e}") from e
        if not isinstance(result, dict):
            raise OverlayError("AI response is not a JSON object")
        logger.debug("Gemini %s returned %d key(s)", self.model, len(result))
        return result
