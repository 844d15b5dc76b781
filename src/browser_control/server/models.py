from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict


class CreateSessionRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    tabId: str
    headless: Optional[bool] = None
    cookies: Optional[List[Dict[str, Any]]] = None
    defaultUrl: Optional[str] = None
    websiteSlug: Optional[str] = None
    loadFromDb: bool = False


class SessionResponse(BaseModel):
    tabId: str
    createdAt: str
    cloudSessionId: Optional[str] = None
    liveViewUrl: Optional[str] = None


class CreatedSessionResponse(SessionResponse):
    cookiesLoaded: bool = False
    cookieCount: int = 0
    cookieSource: str = "none"


class ScreenshotRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    tabId: str
    cloudSessionId: Optional[str] = None
    format: Literal["base64", "binary"] = "base64"


class SetCookiesRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    tabId: str
    cloudSessionId: Optional[str] = None
    cookies: List[Dict[str, Any]]
