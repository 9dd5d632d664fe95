import hashlib
import logging
import time
from supabase import Client
from staffaccess.config.settings import settings
from fastapi import HTTPException
from typing import Dict, Any

logger = logging.getLogger(__name__)

# Verified tokens are cached briefly so a burst of requests with the same token hits Supabase Auth once
_AUTH_USER_CACHE: Dict[str, tuple] = {}


def clear_auth_cache() -> None:
    _AUTH_USER_CACHE.clear()


class AuthService:
    """Identity verification is delegated to Supabase Auth; this only maps a token to a user."""

    def __init__(self, supabase: Client):
        self.supabase = supabase

    def get_current_user(self, token: str) -> Dict[str, Any]:
        """Get current user details from Supabase Auth token. Uses short TTL cache to reduce auth API calls."""
        try:
            cache_key = hashlib.sha256(token.encode()).hexdigest()
            now = time.monotonic()
            if cache_key in _AUTH_USER_CACHE:
                user_data, expiry = _AUTH_USER_CACHE[cache_key]
                if now < expiry:
                    return user_data
                del _AUTH_USER_CACHE[cache_key]
            user_response = self.supabase.auth.get_user(jwt=token)
            if not user_response or not user_response.user:
                raise HTTPException(status_code=401, detail="Invalid or expired token")
            user = user_response.user
            user_data = {
                "id": user.id,
                "email": user.email,
                "user_metadata": user.user_metadata or {},
            }
            if len(_AUTH_USER_CACHE) < settings.auth_cache_max_size:
                _AUTH_USER_CACHE[cache_key] = (user_data, now + settings.auth_cache_ttl)
            return user_data
        except HTTPException:
            raise
        except Exception as e:
            error_msg = str(e)
            logger.debug(f"Token verification failed: {error_msg}")
            if "JWT" in error_msg or "expired" in error_msg.lower() or "invalid" in error_msg.lower():
                raise HTTPException(status_code=401, detail="Invalid or expired token")
            raise HTTPException(status_code=401, detail="Authentication failed")
