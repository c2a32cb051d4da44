import httpx
from fastapi import Header, HTTPException

from reverie.libs.schemas import get_settings


async def get_current_user_id(authorization: str | None = Header(default=None)) -> str:
    settings = get_settings()
    if authorization and authorization.startswith("Bearer "):
        token = authorization.split(" ", 1)[1]
        headers = {"Authorization": f"Bearer {token}"}
        if settings.auth_api_key:
            headers["apikey"] = settings.auth_api_key
        async with httpx.AsyncClient() as client:
            response = await client.get(
                f"{settings.auth_url.rstrip('/')}/auth/v1/user",
                headers=headers,
                timeout=10,
            )
        if response.status_code == 200:
            payload = response.json()
            if isinstance(payload, dict) and "id" in payload:
                return payload["id"]

    if settings.demo_mode and settings.demo_user_id:
        return settings.demo_user_id

    raise HTTPException(status_code=401, detail="Unauthorized")
