"""
Gemini AI Service for Fashion Studio

Uses the google.genai SDK to write social media captions for fashion
products. The model is asked for a JSON object; output that is not JSON
is still usable as plain caption text.
"""

import asyncio
from typing import Optional
import logging

from google import genai
from google.genai import types

from app.config.settings import get_settings
from app.domain.caption import (
    Caption,
    CaptionLength,
    CaptionPlatform,
    CaptionRequest,
    CaptionTone,
)
from app.infrastructure.ai.response_parser import (
    ParsedResponse,
    extract_hashtags,
    parse_generation_response,
)
from app.infrastructure.exceptions import (
    AIServiceError,
    RateLimitError,
    ConfigurationError,
)


logger = logging.getLogger(__name__)


TONE_DESCRIPTIONS = {
    CaptionTone.CASUAL: "friendly, relatable, and conversational",
    CaptionTone.PROFESSIONAL: "polished, authoritative, and sophisticated",
    CaptionTone.PLAYFUL: "fun, energetic, and trendy with Gen-Z appeal",
    CaptionTone.LUXURIOUS: "elegant, exclusive, and high-end fashion focused",
}

LENGTH_GUIDE = {
    CaptionLength.SHORT: "1-2 sentences, punchy and impactful",
    CaptionLength.MEDIUM: "3-4 sentences, engaging and descriptive",
    CaptionLength.LONG: "5-7 sentences, storytelling and detailed",
}


def build_caption_prompt(request: CaptionRequest) -> str:
    """Build the caption prompt for a platform, tone and length."""
    if request.platform == CaptionPlatform.INSTAGRAM:
        hashtags = "Include 15-20 relevant fashion hashtags." if request.include_hashtags else "Do NOT include any hashtags."
        intro = "Generate an Instagram caption for a fashion brand, optimized for Instagram engagement."
    elif request.platform == CaptionPlatform.TIKTOK:
        hashtags = "Include 5-8 trending TikTok hashtags including #fashion #fyp #style." if request.include_hashtags else "Do NOT include any hashtags."
        intro = "Generate a short, punchy TikTok caption for a fashion brand using TikTok-style language."
    elif request.platform == CaptionPlatform.FACEBOOK:
        hashtags = "Do NOT include any hashtags."
        intro = "Generate a conversational Facebook post for a fashion brand that encourages comments."
    else:
        hashtags = "Do NOT include any hashtags."
        intro = "Generate a marketing email subject line and body for a fashion brand."

    emojis = "Use relevant emojis." if request.include_emojis else "Do NOT use any emojis."
    call_to_action = ""
    if request.call_to_action and request.platform != CaptionPlatform.EMAIL:
        call_to_action = f"Call to Action: {request.call_to_action}\n"

    return f"""{intro}
{hashtags}
{emojis}

Product/Promotion Description: {request.description}

Tone: {TONE_DESCRIPTIONS[request.tone]}
Length: {LENGTH_GUIDE[request.length]}
{call_to_action}
Write everything in the same language as the description.

Respond in JSON format:
{{
    "caption": "caption text without the hashtags",
    "hashtags": ["#tag", "..."]
}}"""


class GeminiService:
    """
    Gemini caption generation service.

    Features:
    - google.genai SDK, called from a worker thread
    - JSON-first parsing with a plain-text fallback
    - Rate limit detection
    """

    TEMPERATURE = 0.8
    MAX_OUTPUT_TOKENS = 2048

    def __init__(self, client: Optional[genai.Client] = None, model: Optional[str] = None):
        settings = get_settings()
        self._client = client
        self._api_key = settings.gemini_api_key or settings.google_api_key
        self.model = model or settings.gemini_model

    @property
    def client(self) -> genai.Client:
        """Get the Gemini client instance."""
        if self._client is None:
            if not self._api_key:
                raise ConfigurationError(
                    "Missing GOOGLE_API_KEY environment variable",
                    missing_keys=["GOOGLE_API_KEY", "GEMINI_API_KEY"],
                )
            self._client = genai.Client(api_key=self._api_key)
            logger.info(f"GeminiService initialized with model: {self.model}")
        return self._client

    async def generate_caption(self, request: CaptionRequest) -> Caption:
        """
        Generate a caption for a product description.

        Raises:
            RateLimitError: provider quota exhausted
            AIServiceError: any other provider failure or an empty response
        """
        prompt = build_caption_prompt(request)

        try:
            response = await asyncio.to_thread(
                lambda: self.client.models.generate_content(
                    model=self.model,
                    contents=prompt,
                    config=types.GenerateContentConfig(
                        temperature=self.TEMPERATURE,
                        max_output_tokens=self.MAX_OUTPUT_TOKENS,
                    ),
                )
            )
        except ConfigurationError:
            raise
        except Exception as e:
            error_msg = str(e).lower()

            if "rate" in error_msg or "quota" in error_msg or "429" in error_msg:
                raise RateLimitError(
                    "Gemini API rate limit exceeded",
                    original_error=e,
                )

            raise AIServiceError(
                f"Failed to generate caption: {str(e)}",
                model=self.model,
                operation="generate_caption",
                original_error=e,
            )

        if not response.text:
            raise AIServiceError(
                "Empty response from Gemini",
                model=self.model,
                operation="generate_caption",
            )

        return caption_from_text(response.text, request.include_hashtags)


def caption_from_text(text: str, include_hashtags: bool = True) -> Caption:
    """Build a Caption from model output, JSON or plain text."""
    parsed = parse_generation_response(text)

    if isinstance(parsed, ParsedResponse) and parsed.data.get("caption"):
        caption_text = str(parsed.data["caption"]).strip()
        hashtags = [str(tag) for tag in parsed.data.get("hashtags") or []]
    else:
        caption_text = text.strip()
        hashtags = extract_hashtags(caption_text)

    if not include_hashtags:
        hashtags = []

    return Caption(text=caption_text, hashtags=hashtags)


_gemini_service_instance: Optional[GeminiService] = None


def get_gemini_service() -> GeminiService:
    """Get or create the Gemini service singleton."""
    global _gemini_service_instance

    if _gemini_service_instance is None:
        _gemini_service_instance = GeminiService()

    return _gemini_service_instance
