"""
Answer generation over retrieved context.

Thin wrapper around OpenAI chat completions. The context may be empty
(nothing relevant, or retrieval degraded); the model is told to say so
rather than invent an answer.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from openai import OpenAI, OpenAIError

from doc_retrieval_pipeline.core.errors import ProviderError
from doc_retrieval_pipeline.retrieval.context import RetrievedContext

DEFAULT_SYSTEM_PROMPT = (
    "You are an assistant that answers questions based on the provided context "
    "from a document collection. If the context does not contain information "
    "relevant to the question, say that you don't have information about that "
    "topic in the documents. Keep your answers concise and helpful."
)


@dataclass
class Answer:
    text: str
    model: str
    context: RetrievedContext
    input_tokens: int = 0
    output_tokens: int = 0


class AnswerGenerator:
    """Generates an answer from a question and retrieved context."""

    def __init__(
        self,
        model: str = "gpt-3.5-turbo",
        system_prompt: str = DEFAULT_SYSTEM_PROMPT,
        api_key: str | None = None,
        timeout: float = 30.0,
    ):
        self.model = model
        self.system_prompt = system_prompt
        self._client = OpenAI(
            api_key=api_key or os.environ.get("OPENAI_API_KEY"),
            timeout=timeout,
        )

    def build_messages(self, question: str, context: RetrievedContext) -> list[dict]:
        return [
            {"role": "system", "content": self.system_prompt},
            {"role": "user", "content": f"Context: {context.text}\n\nQuestion: {question}"},
        ]

    def generate(self, question: str, context: RetrievedContext) -> Answer:
        """
        Raises:
            ProviderError: if the chat completion fails
        """
        try:
            completion = self._client.chat.completions.create(
                model=self.model,
                messages=self.build_messages(question, context),
            )
        except OpenAIError as e:
            raise ProviderError(f"Chat completion failed: {e}", details={"model": self.model}) from e

        usage = completion.usage
        return Answer(
            text=completion.choices[0].message.content or "",
            model=self.model,
            context=context,
            input_tokens=usage.prompt_tokens if usage else 0,
            output_tokens=usage.completion_tokens if usage else 0,
        )
