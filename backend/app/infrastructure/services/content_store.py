"""
Content Store

Writes generated content records to Supabase with the service role key.
Writes happen after a generation was delivered, so callers treat a
failure here as bookkeeping only.
"""

import asyncio
from typing import Any, Dict, Optional
import logging

from supabase import create_client, Client
from supabase.lib.client_options import ClientOptions

from app.config.settings import get_settings
from app.infrastructure.exceptions import ConfigurationError, DatabaseError


logger = logging.getLogger(__name__)


class ContentStore:
    """Supabase-backed store for the user's generation history."""

    HISTORY_TABLE = "user_history"

    def __init__(self, client: Optional[Client] = None):
        self._supabase = client

    def _initialize(self) -> None:
        settings = get_settings()
        if not settings.supabase_service_role_key:
            raise ConfigurationError(
                "Missing Supabase service role key",
                missing_keys=["SUPABASE_SERVICE_ROLE_KEY"],
            )

        options = ClientOptions(postgrest_client_timeout=10)
        self._supabase = create_client(
            settings.supabase_url,
            settings.supabase_service_role_key,
            options,
        )
        logger.info("ContentStore initialized")

    @property
    def supabase(self) -> Client:
        if self._supabase is None:
            self._initialize()
        return self._supabase

    async def save_activity(
        self,
        user_id: str,
        activity_type: str,
        prompt: Optional[str] = None,
        result_text: Optional[str] = None,
        image_url: Optional[str] = None,
        video_url: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Insert one history row.

        Raises:
            DatabaseError: the insert failed
        """
        row = {
            "user_id": user_id,
            "activity_type": activity_type,
            "prompt": prompt,
            "result_text": result_text,
            "image_url": image_url,
            "video_url": video_url,
            "metadata": metadata or {},
        }

        try:
            response = await asyncio.to_thread(
                lambda: self.supabase.table(self.HISTORY_TABLE).insert(row).execute()
            )
        except ConfigurationError:
            raise
        except Exception as e:
            raise DatabaseError(
                f"Failed to save {activity_type} activity: {e}",
                operation="insert",
                table=self.HISTORY_TABLE,
                original_error=e,
            )

        logger.debug(f"Saved {activity_type} activity for user {user_id}")
        return response.data[0] if response.data else row


_content_store_instance: Optional[ContentStore] = None


def get_content_store() -> ContentStore:
    """Get or create the content store singleton."""
    global _content_store_instance

    if _content_store_instance is None:
        _content_store_instance = ContentStore()

    return _content_store_instance
