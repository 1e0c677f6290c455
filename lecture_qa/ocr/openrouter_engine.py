"""Board OCR via a vision-capable OpenRouter model (openai SDK)."""

from __future__ import annotations

import base64
import os
from typing import Optional

from dotenv import load_dotenv
from openai import APIConnectionError, APITimeoutError, OpenAI, RateLimitError

from lecture_qa.common.retry import call_with_retry
from lecture_qa.common.schemas import OcrText
from lecture_qa.config import OcrConfig, RetryConfig
from lecture_qa.ocr.ocr_engine import filter_to_whitelist

SYSTEM_PROMPT = (
    "You transcribe text written on a lecture whiteboard or blackboard. "
    "Output only the text, line by line, exactly as written. "
    "Do not add explanations, Markdown or code fences."
)

USER_PROMPT = "Transcribe all text and formulas visible in this board image."

DEFAULT_REQUEST_PARAMS = {
    "temperature": 0.0,
    "top_p": 1.0,
    "stream": False,
}


class OpenRouterOcrEngine:
    """Sends each board crop as a data URL and keeps whitelisted characters only."""

    thread_safe = True

    def __init__(self, config: OcrConfig, *, retry_cfg: Optional[RetryConfig] = None) -> None:
        load_dotenv()
        self.api_key = os.getenv("OPENROUTER_API_KEY")
        if not self.api_key:
            raise ValueError("OPENROUTER_API_KEY is not set in the environment.")

        self.base_url = os.getenv("OPENROUTER_BASE_URL", "https://openrouter.ai/api/v1")
        self.model_name = os.getenv("OPENROUTER_OCR_MODEL", config.openrouter_model)
        self.client = OpenAI(base_url=self.base_url, api_key=self.api_key)
        self.whitelist = config.whitelist
        self.retry_cfg = retry_cfg or RetryConfig()
        self.request_params = dict(DEFAULT_REQUEST_PARAMS)

    def _build_image_part(self, image_bytes: bytes) -> dict:
        encoded = base64.b64encode(image_bytes).decode("ascii")
        return {"type": "image_url", "image_url": {"url": f"data:image/png;base64,{encoded}"}}

    def _complete(self, image_bytes: bytes) -> str:
        messages = [
            {"role": "system", "content": SYSTEM_PROMPT},
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": USER_PROMPT},
                    self._build_image_part(image_bytes),
                ],
            },
        ]
        completion = self.client.chat.completions.create(
            model=self.model_name,
            messages=messages,
            **self.request_params,
        )
        return completion.choices[0].message.content or ""

    def recognize(self, image_bytes: bytes) -> OcrText:
        content = call_with_retry(
            self._complete,
            image_bytes,
            retry_cfg=self.retry_cfg,
            retry_on=(APIConnectionError, APITimeoutError, RateLimitError),
        )
        text = filter_to_whitelist(content, self.whitelist).strip()
        return OcrText(text=text, words=text.split())

    def close(self) -> None:
        self.client.close()
