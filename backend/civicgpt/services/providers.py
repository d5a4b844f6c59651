"""Hosted language-model dispatch.

OpenAI, Anthropic and Perplexity are reached through the OpenAI SDK against
each vendor's OpenAI-compatible endpoint; Gemini goes through google-genai.
Provider calls are never retried: any failure raises ``ProviderError``.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Optional

import openai
from google import genai
from google.genai import errors as genai_errors
from google.genai import types
from openai import AsyncOpenAI

from ..config import Settings, get_settings
from ..models.schemas import NumberedCitation
from ..pipeline.assembler import ComposedPrompt

logger = logging.getLogger(__name__)

OPENAI = "openai"
ANTHROPIC = "anthropic"
PERPLEXITY = "perplexity"
GEMINI = "gemini"


class ProviderError(Exception):
    def __init__(self, provider: str, status_code: int, body: str = ""):
        super().__init__(f"{provider} request failed ({status_code}): {body[:300]}")
        self.provider = provider
        self.status_code = status_code
        self.body = body


@dataclass(frozen=True)
class DispatchPlan:
    provider: str
    model: str
    streaming: bool
    downgraded: bool = False


@dataclass
class ProviderResponse:
    text: str
    model: str
    citations: list[NumberedCitation] = field(default_factory=list)


def provider_for_model(model: str) -> str:
    name = (model or "").lower()
    if name.startswith("sonar"):
        return PERPLEXITY
    if name.startswith("claude"):
        return ANTHROPIC
    if name.startswith("gemini"):
        return GEMINI
    return OPENAI


def citations_from_metadata(payload: dict) -> list[NumberedCitation]:
    """Map Perplexity ``search_results``/``citations`` metadata to numbered citations."""
    results = payload.get("search_results") or []
    if results:
        return [
            NumberedCitation(
                number=i,
                url=item.get("url"),
                title=item.get("title") or f"Source {i}",
                excerpt=item.get("snippet") or "",
            )
            for i, item in enumerate(results, start=1)
            if isinstance(item, dict)
        ]
    return [
        NumberedCitation(number=i, url=url, title=f"Source {i}")
        for i, url in enumerate(payload.get("citations") or [], start=1)
        if isinstance(url, str)
    ]


class ProviderDispatcher:
    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self._openai_clients: dict[str, AsyncOpenAI] = {}
        self._gemini: Optional[genai.Client] = None

    def plan(self, model: Optional[str], stream_requested: bool = True) -> DispatchPlan:
        model_name = model or self.settings.default_model
        provider = provider_for_model(model_name)
        if stream_requested and provider in self.settings.non_streaming_providers:
            logger.info(f"Streaming downgraded to single-shot for {provider} ({model_name})")
            return DispatchPlan(provider, model_name, streaming=False, downgraded=True)
        return DispatchPlan(provider, model_name, streaming=stream_requested)

    def _api_key(self, provider: str) -> str:
        return {
            OPENAI: self.settings.openai_api_key,
            ANTHROPIC: self.settings.anthropic_api_key,
            PERPLEXITY: self.settings.perplexity_api_key,
            GEMINI: self.settings.google_api_key,
        }[provider]

    def _base_url(self, provider: str) -> str:
        return {
            OPENAI: self.settings.openai_base_url,
            ANTHROPIC: self.settings.anthropic_base_url,
            PERPLEXITY: self.settings.perplexity_base_url,
        }[provider]

    def _openai_client(self, provider: str) -> AsyncOpenAI:
        client = self._openai_clients.get(provider)
        if client is None:
            client = AsyncOpenAI(api_key=self._api_key(provider), base_url=self._base_url(provider))
            self._openai_clients[provider] = client
        return client

    def _gemini_client(self) -> genai.Client:
        if self._gemini is None:
            self._gemini = genai.Client(api_key=self.settings.google_api_key)
        return self._gemini

    def _require_key(self, provider: str) -> None:
        if not self._api_key(provider):
            raise ProviderError(provider, 500, f"{provider} API key is not configured")

    @staticmethod
    def _wrap_openai_error(provider: str, exc: Exception) -> ProviderError:
        if isinstance(exc, openai.APIStatusError):
            return ProviderError(provider, exc.status_code, exc.response.text if exc.response else str(exc))
        return ProviderError(provider, 502, str(exc))

    @staticmethod
    def _wrap_gemini_error(exc: genai_errors.APIError) -> ProviderError:
        return ProviderError(GEMINI, exc.code or 502, exc.message or str(exc))

    def _gemini_request(self, prompt: ComposedPrompt) -> tuple[list, types.GenerateContentConfig]:
        contents = [
            types.Content(
                role="user" if m.role == "user" else "model",
                parts=[types.Part.from_text(text=m.content)],
            )
            for m in prompt.messages
        ]
        config = types.GenerateContentConfig(
            system_instruction=prompt.system_text,
            temperature=self.settings.temperature,
            max_output_tokens=self.settings.max_tokens,
        )
        return contents, config

    async def stream(self, prompt: ComposedPrompt, plan: DispatchPlan) -> AsyncIterator[str]:
        """Yield text deltas in arrival order."""
        self._require_key(plan.provider)
        logger.info(f"Streaming from {plan.provider} model {plan.model}")

        if plan.provider == GEMINI:
            contents, config = self._gemini_request(prompt)
            try:
                response = await self._gemini_client().aio.models.generate_content_stream(
                    model=plan.model, contents=contents, config=config
                )
                async for chunk in response:
                    if chunk.text:
                        yield chunk.text
            except genai_errors.APIError as e:
                raise self._wrap_gemini_error(e) from e
            return

        client = self._openai_client(plan.provider)
        try:
            response = await client.chat.completions.create(
                model=plan.model,
                messages=prompt.openai_messages(),
                temperature=self.settings.temperature,
                max_tokens=self.settings.max_tokens,
                stream=True,
            )
            async for chunk in response:
                if not chunk.choices:
                    continue
                delta = chunk.choices[0].delta.content
                if delta:
                    yield delta
        except openai.OpenAIError as e:
            raise self._wrap_openai_error(plan.provider, e) from e

    async def complete(self, prompt: ComposedPrompt, plan: DispatchPlan) -> ProviderResponse:
        self._require_key(plan.provider)
        logger.info(f"Single-shot request to {plan.provider} model {plan.model}")

        if plan.provider == GEMINI:
            contents, config = self._gemini_request(prompt)
            try:
                response = await self._gemini_client().aio.models.generate_content(
                    model=plan.model, contents=contents, config=config
                )
            except genai_errors.APIError as e:
                raise self._wrap_gemini_error(e) from e
            return ProviderResponse(text=response.text or "", model=plan.model)

        client = self._openai_client(plan.provider)
        try:
            response = await client.chat.completions.create(
                model=plan.model,
                messages=prompt.openai_messages(),
                temperature=self.settings.temperature,
                max_tokens=self.settings.max_tokens,
            )
        except openai.OpenAIError as e:
            raise self._wrap_openai_error(plan.provider, e) from e

        payload: dict[str, Any] = response.model_dump()
        text = ""
        if response.choices:
            text = response.choices[0].message.content or ""
        citations = citations_from_metadata(payload) if plan.provider == PERPLEXITY else []
        return ProviderResponse(text=text, model=payload.get("model") or plan.model, citations=citations)

    async def dispatch(
        self,
        prompt: ComposedPrompt,
        model: Optional[str] = None,
        stream_requested: bool = True,
    ) -> tuple[DispatchPlan, Any]:
        """Return the plan plus either a delta iterator or a ``ProviderResponse``."""
        plan = self.plan(model, stream_requested)
        if plan.streaming:
            return plan, self.stream(prompt, plan)
        return plan, await self.complete(prompt, plan)


_DISPATCHER: Optional[ProviderDispatcher] = None


def get_dispatcher() -> ProviderDispatcher:
    global _DISPATCHER
    if _DISPATCHER is None:
        _DISPATCHER = ProviderDispatcher()
    return _DISPATCHER
