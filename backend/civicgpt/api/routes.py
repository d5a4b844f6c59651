import json
import logging
import asyncio
from fastapi import APIRouter, Depends, HTTPException
from sse_starlette.sse import EventSourceResponse

from ..models.schemas import (
    ConfigResponse,
    GenerateRequest,
    GenerateResponse,
    ProviderInfo,
    SemanticSearchRequest,
    SemanticSearchResponse,
)
from ..clients.base import APIError, RateLimitError
from ..pipeline.orchestrator import get_pipeline
from ..retrieval.embeddings import EmbeddingError
from ..security import require_api_key
from ..services.providers import ProviderError, get_dispatcher
from ..config import get_settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


def _http_status(error: ProviderError) -> int:
    return error.status_code if 400 <= error.status_code < 600 else 502


@router.get("/config", response_model=ConfigResponse)
async def get_config():
    settings = get_settings()
    non_streaming = set(settings.non_streaming_providers)
    providers = {
        "openai": ProviderInfo(
            name="openai",
            display_name="OpenAI",
            models=settings.openai_models,
            api_key_detected=bool(settings.openai_api_key),
            streaming="openai" not in non_streaming,
        ),
        "anthropic": ProviderInfo(
            name="anthropic",
            display_name="Anthropic",
            models=settings.anthropic_models,
            api_key_detected=bool(settings.anthropic_api_key),
            streaming="anthropic" not in non_streaming,
        ),
        "perplexity": ProviderInfo(
            name="perplexity",
            display_name="Perplexity",
            models=settings.perplexity_models,
            api_key_detected=bool(settings.perplexity_api_key),
            streaming="perplexity" not in non_streaming,
        ),
        "gemini": ProviderInfo(
            name="gemini",
            display_name="Google Gemini",
            models=settings.gemini_models,
            api_key_detected=bool(settings.google_api_key),
            streaming="gemini" not in non_streaming,
        ),
    }
    return ConfigResponse(
        model=settings.default_model,
        providers=providers,
        vector_backend=settings.vector_backend,
    )


@router.post("/generate", dependencies=[Depends(require_api_key)])
async def generate(request: GenerateRequest):
    dispatcher = get_dispatcher()
    plan = dispatcher.plan(request.model, request.stream)
    prompt, report = await get_pipeline().build_prompt(request, streaming=plan.streaming)

    if not plan.streaming:
        try:
            response = await dispatcher.complete(prompt, plan)
        except ProviderError as e:
            logger.error(f"Provider error: {e}")
            raise HTTPException(
                status_code=_http_status(e),
                detail={"error": "provider_error", "message": str(e), "status_code": e.status_code},
            )
        return GenerateResponse(
            generated_text=response.text,
            model=response.model,
            citations=response.citations,
            nys_data_used=report.live_used,
        ).model_dump(by_alias=True)

    async def event_generator():
        try:
            async for delta in dispatcher.stream(prompt, plan):
                yield {
                    "event": "delta",
                    "data": json.dumps({"delta": delta}),
                }
            yield {
                "event": "done",
                "data": json.dumps({"model": plan.model, "streamed": True}),
            }

        except asyncio.CancelledError:
            logger.info("Generate stream cancelled by client")
        except ProviderError as e:
            logger.error(f"Provider error mid-stream: {e}")
            yield {
                "event": "error",
                "data": json.dumps({
                    "error": "provider_error",
                    "message": str(e),
                    "status_code": e.status_code,
                }),
            }
        except Exception as e:
            logger.exception("Error in generate stream")
            yield {
                "event": "error",
                "data": json.dumps({
                    "error": "internal_error",
                    "message": str(e),
                    "status_code": 500,
                }),
            }

    return EventSourceResponse(event_generator())


@router.get("/health")
async def health_check():
    return {"status": "healthy"}


@router.post("/semantic-search", response_model=SemanticSearchResponse, dependencies=[Depends(require_api_key)])
async def semantic_search(request: SemanticSearchRequest):
    try:
        matches = await get_pipeline().semantic.search(
            request.query,
            session_year=request.session_year,
            bill_number=request.bill_number,
            threshold=request.threshold,
            limit=request.limit,
        )
    except (EmbeddingError, APIError, RateLimitError) as e:
        logger.error(f"Semantic search failed: {e}")
        raise HTTPException(status_code=500, detail={"success": False, "error": str(e)})

    return SemanticSearchResponse(query=request.query, results=matches, count=len(matches))
