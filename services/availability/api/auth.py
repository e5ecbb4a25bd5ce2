from typing import Optional

from fastapi import HTTPException, Request


def get_tenant_id_from_request(request: Request) -> str:
    """
    Extract tenant ID from request headers.

    The availability service expects tenant identity via X-Tenant-Id header.
    """
    tenant_id = request.headers.get("X-Tenant-Id")
    if not tenant_id:
        raise HTTPException(status_code=400, detail="Missing X-Tenant-Id header")
    return tenant_id


def get_user_id_from_request(request: Request, fallback: Optional[str] = None) -> str:
    """Extract user ID from the X-User-Id header, or use ``fallback`` when given."""
    user_id = fallback or request.headers.get("X-User-Id")
    if not user_id:
        raise HTTPException(status_code=400, detail="Missing X-User-Id header")
    return user_id
