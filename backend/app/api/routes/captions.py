"""
Caption API Routes

Metered caption generation. The caption costs one token, charged only
after Gemini returned a caption.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from app.domain.caption import Caption, CaptionRequest, CaptionResponse
from app.domain.ledger import MeteredOperation
from app.infrastructure.ai.gemini_service import GeminiService, get_gemini_service
from app.infrastructure.services.content_store import ContentStore, get_content_store
from app.infrastructure.services.metering_service import (
    MeteredOperationRunner,
    MeteredStatus,
    get_metered_runner,
)
from app.api.dependencies import get_current_user_id


logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/captions", response_model=CaptionResponse)
async def generate_caption(
    request: CaptionRequest,
    user_id: str = Depends(get_current_user_id),
    runner: MeteredOperationRunner = Depends(get_metered_runner),
    gemini: GeminiService = Depends(get_gemini_service),
    store: ContentStore = Depends(get_content_store),
):
    """
    Generate a caption for a product description.

    Returns 402 when the balance is too low and 502 when generation fails.
    """

    async def save(caption: Caption) -> None:
        await store.save_activity(
            user_id=user_id,
            activity_type="caption",
            prompt=request.description,
            result_text=caption.text,
            metadata={
                "platform": request.platform.value,
                "tone": request.tone.value,
                "hashtags": caption.hashtags,
            },
        )

    result = await runner.run(
        user_id=user_id,
        operation=MeteredOperation.CAPTION,
        call=lambda: gemini.generate_caption(request),
        reason=f"Generated {request.platform.value} caption",
        on_success=save,
    )

    if result.status == MeteredStatus.INSUFFICIENT:
        raise HTTPException(
            status_code=status.HTTP_402_PAYMENT_REQUIRED,
            detail="Insufficient tokens",
        )

    if result.status == MeteredStatus.FAILED:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=result.error,
        )

    return CaptionResponse(
        caption=result.value.text,
        hashtags=result.value.hashtags,
        tokens_remaining=result.current_balance,
    )
