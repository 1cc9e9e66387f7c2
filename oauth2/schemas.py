"""
Pydantic schemas for OAuth2 request validation and response serialization.

Field names follow the wire format the client applications already use
(snake_case for the token protocol, mustAgree/consentItems for the
consent screen).
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import Dict, List, Optional, Union


# ============ Request Schemas ============

class AuthorizeRequest(BaseModel):
    """
    Consent approval submitted by the signed-in user.

    Example:
        {
            "client_id": "3f1c2a9e-7b7d-4c3e-9a51-0d7d9d4a2b10",
            "agreed": ["1", "2"],
            "redirect_to": "https://app.example.com/callback",
            "nonce": "n-0S6_WzA2Mj"
        }
    """
    client_id: str = Field(..., min_length=1, description="Client UUID")
    agreed: List[Union[str, int]] = Field(default_factory=list, description="Agreed scope ids")
    redirect_to: str = Field(..., min_length=1, description="Registered redirect URL")
    nonce: Optional[str] = Field(None, max_length=255, description="OpenID nonce echoed into the ID token")


class TokenRequest(BaseModel):
    """Token endpoint body; which optional field is required depends on grant_type"""
    grant_type: str
    client_id: str
    client_secret: str
    code: Optional[str] = None
    refresh_token: Optional[str] = None


# ============ Internal ============

class ClientSnapshot(BaseModel):
    """Detached copy of a client row, safe to keep in the client cache"""
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: str
    title: str
    profile: str
    use_oauth: bool
    secret: str


# ============ Response Schemas ============

class ScopeItem(BaseModel):
    id: str
    display: str


class ApplicationInfoResponse(BaseModel):
    title: str
    profile: str
    mustAgree: List[ScopeItem]
    consentItems: List[ScopeItem]


class AuthorizationResponse(BaseModel):
    status: str
    message: str


class ClientProfile(BaseModel):
    title: str
    profile: str


class ConnectInfoResponse(BaseModel):
    code: str
    username: str
    client: ClientProfile
    agreed: str


class TokenResponse(BaseModel):
    """
    Token endpoint response.

    expires_in and refresh_token_expires_in are absolute expiry
    timestamps (Unix seconds), not durations.
    """
    token_type: str = "bearer"
    access_token: str
    id_token: Optional[str] = None
    expires_in: int
    refresh_token: Optional[str] = None
    refresh_token_expires_in: Optional[int] = None
    scope: Optional[str] = None


class AccessTokenInfoResponse(BaseModel):
    id: int
    exp: int
    app_id: str


class UserInfoResponse(BaseModel):
    id: int
    connected_at: str
    debuggers_account: Dict[str, Optional[str]]
