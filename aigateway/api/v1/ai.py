"""AI API: text generation and provider status for operations."""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException

from aigateway.core.config import settings
from aigateway.core.dependencies import get_gateway
from aigateway.gateway.errors import ExhaustedFailure
from aigateway.gateway.gateway import GenerationGateway
from aigateway.gateway.types import GenerationRequest
from aigateway.schemas.ai import GenerateRequestBody, GenerateResponse, ProviderStatusItem, StatusResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ai", tags=["ai"])


@router.post("/generate", response_model=GenerateResponse)
async def generate(
    body: GenerateRequestBody,
    gateway: GenerationGateway = Depends(get_gateway),
):
    request = GenerationRequest(
        prompt=body.prompt,
        system_prompt=body.system_prompt,
        temperature=body.temperature if body.temperature is not None else settings.ai_temperature,
        top_p=body.top_p if body.top_p is not None else settings.ai_top_p,
        max_tokens=body.max_tokens if body.max_tokens is not None else settings.ai_max_tokens,
    )

    try:
        result = await gateway.generate(request, timeout_ms=body.timeout_ms)
    except ExhaustedFailure as e:
        # Provider error text stays in the logs
        logger.warning(
            "Generation unavailable: providers_tried=%d deadline_exceeded=%s",
            e.providers_tried,
            e.deadline_exceeded,
        )
        raise HTTPException(status_code=503, detail=ExhaustedFailure.user_message)

    return GenerateResponse(**result.to_dict())


@router.get("/status", response_model=StatusResponse)
async def status(gateway: GenerationGateway = Depends(get_gateway)):
    statuses = await gateway.get_status()
    return StatusResponse(
        ok=True,
        providers=[ProviderStatusItem(**s.to_dict()) for s in statuses],
        config=gateway.describe(),
        timestamp=datetime.now(timezone.utc),
    )
