"""Generation collaborators backed by LangChain chat models.

Adapts any ``BaseChatModel`` to the StructureGenerator / ContentGenerator
signatures the queue expects. The caller decides the instructions through
``PhaseConfig.custom_prompt``; this module only frames the topic and
outline as the user message and normalizes failures to GenerationError.

Usage:
    from langchain_anthropic import ChatAnthropic

    generators = ChatModelGenerators(
        lambda cfg: ChatAnthropic(model=cfg.model, max_tokens=4096)
    )
    service = QueueService(
        generate_structure=generators.generate_structure,
        generate_content=generators.generate_content,
    )
"""

import asyncio
import logging
from typing import Any, Callable

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import BaseMessage, HumanMessage, SystemMessage

from .errors import GenerationError
from .schemas import PhaseConfig

logger = logging.getLogger(__name__)

ModelFactory = Callable[[PhaseConfig], BaseChatModel]


def extract_response_content(response: Any) -> str:
    """Extract text content from string or content-block responses."""
    content = getattr(response, "content", response)
    if isinstance(content, str):
        return content.strip()
    if isinstance(content, list):
        parts = []
        for block in content:
            if isinstance(block, str):
                parts.append(block)
            elif isinstance(block, dict) and block.get("type", "text") == "text":
                parts.append(block.get("text", ""))
            elif hasattr(block, "text"):
                parts.append(block.text)
        return "".join(parts).strip()
    return str(content).strip()


class ChatModelGenerators:
    """Structure and content generators over a chat model factory.

    Models are built lazily per (provider, model, temperature) and reused.

    Args:
        model_factory: Builds a chat model for a PhaseConfig
    """

    def __init__(self, model_factory: ModelFactory):
        self.model_factory = model_factory
        self._models: dict[tuple, BaseChatModel] = {}

    def get_model(self, phase_config: PhaseConfig) -> BaseChatModel:
        key = (phase_config.provider, phase_config.model, phase_config.temperature)
        if key not in self._models:
            self._models[key] = self.model_factory(phase_config)
        return self._models[key]

    async def generate_structure(self, topic: str, phase_config: PhaseConfig) -> str:
        """Phase 1: outline for ``topic``."""
        messages = self._messages(phase_config, f"Topic: {topic}")
        return await self._invoke(phase_config, messages)

    async def generate_content(
        self, topic: str, structure: str, phase_config: PhaseConfig
    ) -> str:
        """Phase 2: full note for ``topic`` following the approved ``structure``."""
        messages = self._messages(
            phase_config, f"Topic: {topic}\n\nApproved outline:\n{structure}"
        )
        return await self._invoke(phase_config, messages)

    @staticmethod
    def _messages(phase_config: PhaseConfig, body: str) -> list[BaseMessage]:
        messages: list[BaseMessage] = []
        if phase_config.custom_prompt:
            messages.append(SystemMessage(content=phase_config.custom_prompt))
        messages.append(HumanMessage(content=body))
        return messages

    async def _invoke(self, phase_config: PhaseConfig, messages: list[BaseMessage]) -> str:
        try:
            model = self.get_model(phase_config)
            response = await model.ainvoke(messages)
        except asyncio.CancelledError:
            raise
        except GenerationError:
            raise
        except Exception as e:
            raise GenerationError(
                f"{phase_config.provider}/{phase_config.model} call failed: {e}",
                provider=phase_config.provider,
            ) from e

        text = extract_response_content(response)
        if not text:
            raise GenerationError(
                f"{phase_config.provider}/{phase_config.model} returned an empty response",
                provider=phase_config.provider,
            )
        logger.debug(f"{phase_config.provider}/{phase_config.model} returned {len(text)} chars")
        return text
