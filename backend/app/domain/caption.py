"""
Caption Domain Models

Request/response DTOs for social media caption generation.
"""

from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, Field


class CaptionPlatform(str, Enum):
    INSTAGRAM = "instagram"
    FACEBOOK = "facebook"
    TIKTOK = "tiktok"
    EMAIL = "email"


class CaptionTone(str, Enum):
    CASUAL = "casual"
    PROFESSIONAL = "professional"
    PLAYFUL = "playful"
    LUXURIOUS = "luxurious"


class CaptionLength(str, Enum):
    SHORT = "short"
    MEDIUM = "medium"
    LONG = "long"


class Caption(BaseModel):
    """A generated caption."""
    text: str
    hashtags: List[str] = Field(default_factory=list)


class CaptionRequest(BaseModel):
    """Request DTO for caption generation."""
    description: str = Field(..., min_length=1, max_length=2000, description="Product or promotion")
    platform: CaptionPlatform = CaptionPlatform.INSTAGRAM
    tone: CaptionTone = CaptionTone.CASUAL
    length: CaptionLength = CaptionLength.MEDIUM
    include_hashtags: bool = True
    include_emojis: bool = True
    call_to_action: Optional[str] = Field(default=None, max_length=200)


class CaptionResponse(BaseModel):
    """Response DTO for caption generation."""
    caption: str
    hashtags: List[str]
    tokens_remaining: Optional[int] = None
