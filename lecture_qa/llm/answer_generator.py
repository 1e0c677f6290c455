"""Answer generator interface, prompt text, offline generator and factory."""

from __future__ import annotations

import os
from typing import Optional, Protocol, runtime_checkable

from lecture_qa.common.schemas import Flashcard, LlmAnswer
from lecture_qa.config import LlmConfig, RetryConfig

PROMPT_TEMPLATE = """You are a helpful tutor. Answer the student's question using the provided lecture context.
Include specific timestamp references and create helpful flashcards if appropriate.

Question: {question}

Context:
{context}

Provide:
1. A clear, concise answer
2. Relevant flashcards (if applicable)
3. A brief summary of the key points

Respond with JSON: {{"answer": str, "flashcards": [{{"question": str, "answer": str}}], "summary": str}}"""


def build_prompt(question: str, context: str) -> str:
    return PROMPT_TEMPLATE.format(question=question, context=context or "(no matching lecture content)")


@runtime_checkable
class AnswerGenerator(Protocol):
    def complete(self, question: str, context: str) -> LlmAnswer:
        ...


class OfflineAnswerGenerator:
    """Deterministic answer used when no language model is configured."""

    source = "offline"

    def complete(self, question: str, context: str) -> LlmAnswer:
        lines = [line for line in context.splitlines() if line.strip()]
        if lines:
            answer = (
                f"Based on the lecture content, {question.lower()} is covered at the "
                f"{len(lines)} moment(s) listed below:\n" + "\n".join(lines)
            )
        else:
            answer = f"No lecture content matched \"{question}\"."
        return LlmAnswer(
            answer=answer,
            flashcards=[
                Flashcard(
                    question=f'What is the main concept related to "{question}"?',
                    answer=lines[0] if lines else "Not covered in this lecture.",
                )
            ],
            summary=f"{len(lines)} relevant lecture moment(s) found.",
            source=self.source,
        )


def gemini_api_key(config: LlmConfig) -> Optional[str]:
    for name in config.api_key_env_candidates:
        value = os.getenv(name)
        if value:
            return value.strip()
    return None


def create_answer_generator(config: LlmConfig, retry_cfg: Optional[RetryConfig] = None) -> AnswerGenerator:
    """``auto`` uses Gemini when an API key is present, otherwise the offline generator."""
    provider = config.provider
    if provider == "auto":
        provider = "gemini" if gemini_api_key(config) else "offline"
    if provider == "offline":
        return OfflineAnswerGenerator()

    from lecture_qa.llm.gemini import GeminiAnswerGenerator

    return GeminiAnswerGenerator(config, retry_cfg=retry_cfg)
