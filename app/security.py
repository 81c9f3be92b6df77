#!/usr/bin/env python3
import hmac
from fastapi import Depends, Header, HTTPException

from deps import get_settings
from settings import Settings


async def admin_guard(
    x_api_key: str = Header(None),
    settings: Settings = Depends(get_settings),
):
    """Allow admin-only mutations (notes edits, manual entries)."""
    expected = settings.admin_api_key
    if not expected:
        raise HTTPException(status_code=403, detail="admin access is not configured")
    if not x_api_key:
        raise HTTPException(status_code=401, detail="missing api key")
    if not hmac.compare_digest(expected, x_api_key):
        raise HTTPException(status_code=401, detail="invalid api key")
    return True
