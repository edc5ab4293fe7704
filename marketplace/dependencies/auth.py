from typing import Optional

from fastapi import Depends, HTTPException, Security
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
import httpx
from marketplace.config import settings
from structlog import get_logger

logger = get_logger()
security = HTTPBearer()

async def get_current_user(credentials: HTTPAuthorizationCredentials = Security(security)):
    async with httpx.AsyncClient() as client:
        try:
            logger.info("Verifying token with user management service", url=f"{settings.USER_MANAGEMENT_URL}/auth/verify")

            response = await client.get(
                f"{settings.USER_MANAGEMENT_URL}/auth/verify",
                headers={"Authorization": f"Bearer {credentials.credentials}"}
            )
            response.raise_for_status()
            user_data = response.json()
            # some deployments wrap the user as {"user": {...}}
            if isinstance(user_data.get("user"), dict):
                user_data = user_data["user"]
            if "id" not in user_data and "_id" in user_data:
                user_data["id"] = str(user_data["_id"])
            if user_data.get("status") == "suspended":
                logger.warning("Suspended user rejected", user_id=user_data.get("id"))
                raise HTTPException(status_code=403, detail="Account suspended")
            logger.info("User verified", user_id=user_data.get("id"), user_type=user_data.get("userType"))
            return user_data
        except httpx.HTTPStatusError as e:
            logger.error("Token verification failed", status_code=e.response.status_code, response=e.response.text)
            raise HTTPException(status_code=401, detail="Invalid token")
        except httpx.RequestError as e:
            logger.error("User management service is unavailable", error=str(e))
            raise HTTPException(status_code=503, detail="User management service is unavailable")

async def require_admin(user: dict = Depends(get_current_user)):
    if (user.get("userType") or "").lower() != "admin":
        logger.warning("Admin route refused", user_id=user.get("id"), user_type=user.get("userType"))
        raise HTTPException(status_code=403, detail="Admin access required")
    return user

optional_security = HTTPBearer(auto_error=False)

async def get_optional_user(credentials: Optional[HTTPAuthorizationCredentials] = Security(optional_security)):
    if credentials is None:
        return None
    try:
        return await get_current_user(credentials)
    except HTTPException as e:
        # an unusable token on a public route is treated as anonymous
        logger.info("Ignoring invalid token on public route", status_code=e.status_code)
        return None
