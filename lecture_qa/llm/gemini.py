"""Gemini answer generator (google-genai, JSON response)."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional

from google import genai
from google.genai import errors as genai_errors
from google.genai import types as genai_types

from lecture_qa.common.retry import call_with_retry
from lecture_qa.common.schemas import Flashcard, LlmAnswer
from lecture_qa.config import LlmConfig, RetryConfig
from lecture_qa.llm.answer_generator import build_prompt, gemini_api_key

logger = logging.getLogger(__name__)

RESPONSE_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "answer": {"type": "string"},
        "flashcards": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "question": {"type": "string"},
                    "answer": {"type": "string"},
                },
                "required": ["question", "answer"],
            },
        },
        "summary": {"type": "string"},
    },
    "required": ["answer"],
}


def extract_text_from_response(response: Any) -> str:
    text = getattr(response, "text", None)
    if text:
        return text
    for candidate in getattr(response, "candidates", None) or []:
        content = getattr(candidate, "content", None)
        for part in getattr(content, "parts", None) or []:
            part_text = getattr(part, "text", None)
            if part_text:
                return part_text
    raise ValueError("Failed to extract text from Gemini response.")


def parse_answer(text: str) -> LlmAnswer:
    """Parse the JSON body; a non-JSON reply is used verbatim as the answer."""
    cleaned = text.strip()
    if cleaned.startswith("```"):
        cleaned = cleaned.strip("`")
        if cleaned.startswith("json"):
            cleaned = cleaned[4:]
    try:
        payload = json.loads(cleaned)
    except json.JSONDecodeError:
        logger.warning("Gemini reply was not JSON; using raw text as answer")
        return LlmAnswer(answer=text.strip(), source="gemini")
    if not isinstance(payload, dict):
        return LlmAnswer(answer=text.strip(), source="gemini")

    flashcards: Optional[List[Flashcard]] = None
    raw_cards = payload.get("flashcards")
    if isinstance(raw_cards, list):
        flashcards = [
            Flashcard(question=str(card["question"]), answer=str(card["answer"]))
            for card in raw_cards
            if isinstance(card, dict) and card.get("question") and card.get("answer")
        ]
    summary = payload.get("summary")
    return LlmAnswer(
        answer=str(payload.get("answer", "")).strip(),
        flashcards=flashcards,
        summary=str(summary) if summary else None,
        source="gemini",
    )


class GeminiAnswerGenerator:
    def __init__(self, config: LlmConfig, *, retry_cfg: Optional[RetryConfig] = None) -> None:
        api_key = gemini_api_key(config)
        if not api_key:
            raise ValueError("Developer API key is missing. Set GOOGLE_API_KEY or GEMINI_API_KEY.")
        http_options = genai_types.HttpOptions(timeout=max(1, int(config.timeout_sec * 1000)))
        self.client = genai.Client(api_key=api_key, http_options=http_options)
        self.model = config.model
        self.temperature = config.temperature
        self.retry_cfg = retry_cfg or RetryConfig()

    def _generate(self, prompt: str) -> str:
        response = self.client.models.generate_content(
            model=self.model,
            contents=prompt,
            config={
                "temperature": self.temperature,
                "response_mime_type": "application/json",
                "response_schema": RESPONSE_SCHEMA,
            },
        )
        return extract_text_from_response(response)

    def complete(self, question: str, context: str) -> LlmAnswer:
        text = call_with_retry(
            self._generate,
            build_prompt(question, context),
            retry_cfg=self.retry_cfg,
            retry_on=(genai_errors.ServerError, ConnectionError, TimeoutError),
        )
        return parse_answer(text)
