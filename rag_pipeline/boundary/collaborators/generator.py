"""
Text generation adapter.

TextGenerator over a LangChain chat model. Prompts are rendered through
a ChatPromptTemplate (system + human) and sent with per-call sampling
options bound to the model.

Dependencies: langchain_core, langchain_google_genai
System role: AI generation collaborator (drafts, summaries, query variants)
"""

import asyncio
import logging
from typing import Any

from dotenv import load_dotenv
from langchain_core.language_models import BaseChatModel
from langchain_core.prompts import ChatPromptTemplate
from langchain_core.runnables import Runnable
from langchain_google_genai import ChatGoogleGenerativeAI

from rag_pipeline.configs.collaborators import CollaboratorSettings
from rag_pipeline.core.exceptions import CollaboratorError, OperationTimeoutError

logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_PROMPT = "Du bist ein hilfreicher Assistent."

GENERATION_PROMPT = ChatPromptTemplate.from_messages(
    [
        ("system", "{system_prompt}"),
        ("human", "{prompt}"),
    ]
)


def message_text(content: Any) -> str:
    """Flatten chat message content (str or list of parts) to text."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for part in content:
            if isinstance(part, str):
                parts.append(part)
            elif isinstance(part, dict) and part.get("type") == "text":
                parts.append(part.get("text", ""))
        return "".join(parts)
    return str(content or "")


class LangChainTextGenerator:
    """TextGenerator backed by a LangChain chat model."""

    def __init__(self, model: BaseChatModel, timeout_s: float = 60.0) -> None:
        self._model = model
        self._timeout_s = timeout_s

    def _bind_options(self, max_tokens: int | None, temperature: float | None) -> Runnable:
        options: dict[str, Any] = {}
        if max_tokens is not None:
            options["max_tokens"] = max_tokens
        if temperature is not None:
            options["temperature"] = temperature
        return self._model.bind(**options) if options else self._model

    async def agenerate(
        self,
        prompt: str,
        system_prompt: str | None = None,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> str:
        """
        Generate text for a prompt.

        Args:
            prompt: User prompt
            system_prompt: System instructions
            max_tokens: Output token cap
            temperature: Sampling temperature

        Returns:
            str: Generated text (stripped)

        Raises:
            OperationTimeoutError: Generation exceeded its timeout
            CollaboratorError: Provider failure
        """
        messages = GENERATION_PROMPT.format_messages(
            system_prompt=system_prompt or DEFAULT_SYSTEM_PROMPT,
            prompt=prompt,
        )
        runnable = self._bind_options(max_tokens, temperature)
        try:
            response = await asyncio.wait_for(runnable.ainvoke(messages), timeout=self._timeout_s)
        except asyncio.TimeoutError as e:
            raise OperationTimeoutError(
                "Generation timed out",
                operation="generate",
                timeout_s=self._timeout_s,
            ) from e
        except Exception as e:
            logger.error(f"{__name__}:agenerate - {type(e).__name__}: {e}")
            raise CollaboratorError(f"Generation failed: {e}", collaborator="generator") from e

        return message_text(getattr(response, "content", response)).strip()


class GeminiTextGenerator(LangChainTextGenerator):
    """Gemini takes sampling overrides through ``generation_config``."""

    def _bind_options(self, max_tokens: int | None, temperature: float | None) -> Runnable:
        generation_config: dict[str, Any] = {}
        if max_tokens is not None:
            generation_config["max_output_tokens"] = max_tokens
        if temperature is not None:
            generation_config["temperature"] = temperature
        if not generation_config:
            return self._model
        return self._model.bind(generation_config=generation_config)


def build_text_generator(settings: CollaboratorSettings, timeout_s: float = 60.0) -> GeminiTextGenerator:
    """Default Gemini chat generator."""
    logger.info(f"{__name__}:build_text_generator - model={settings.chat_model}")
    load_dotenv()
    model = ChatGoogleGenerativeAI(model=settings.chat_model, temperature=0.3)
    return GeminiTextGenerator(model, timeout_s=timeout_s)
