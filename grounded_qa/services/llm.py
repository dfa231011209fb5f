"""OpenAI LLM service for answer generation."""

import logging
from typing import Optional

from openai import AsyncOpenAI

from grounded_qa.core.config import settings
from grounded_qa.core.exceptions import LLMError
from grounded_qa.models.response import FormattedPrompt

logger = logging.getLogger(__name__)


class LLMService:
    """Service for generating answers with the chat completions API."""

    def __init__(self) -> None:
        """Initialize the LLM service."""
        self.client = AsyncOpenAI(api_key=settings.openai_api_key)
        self.model = settings.llm_model

    async def generate(
        self,
        prompt: FormattedPrompt,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> str:
        """
        Generate a raw text answer.

        The answer is expected to end with a "Primary Sources" trailer; it is
        returned untouched for downstream parsing.

        Args:
            prompt: System and user messages.
            temperature: Sampling temperature override.
            max_tokens: Completion length override.

        Returns:
            Generated text.

        Raises:
            LLMError: If response generation fails.
        """
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": prompt.system_message},
                    {"role": "user", "content": prompt.user_message},
                ],
                temperature=settings.llm_temperature if temperature is None else temperature,
                max_tokens=max_tokens or settings.llm_max_tokens,
            )
        except Exception as e:
            raise LLMError(f"Failed to generate response: {str(e)}") from e

        if not response.choices:
            raise LLMError("Empty response from LLM")
        content = response.choices[0].message.content
        if not content:
            raise LLMError("Empty response from LLM")
        return content
