"""GitHub and Google OAuth clients for social login."""
import logging
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlencode

import httpx

from codemarket.config import settings

logger = logging.getLogger(__name__)


class OAuthError(Exception):
    """The identity provider rejected the code or could not be reached."""


@dataclass
class OAuthIdentity:
    """Normalised profile returned by a provider."""

    provider: str
    provider_id: str
    email: str
    username: str
    avatar_url: Optional[str] = None
    profile_url: Optional[str] = None


class GitHubOAuthClient:
    provider = "github"
    authorize_url = "https://github.com/login/oauth/authorize"
    token_url = "https://github.com/login/oauth/access_token"
    api_base = "https://api.github.com"

    def __init__(self, client_id: str, client_secret: str, redirect_uri: str, timeout: float = 10.0):
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.timeout = timeout

    def authorization_url(self, state: str) -> str:
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "scope": "user:email",
            "state": state,
        }
        return f"{self.authorize_url}?{urlencode(params)}"

    async def fetch_identity(self, code: str) -> OAuthIdentity:
        """Exchange an authorization code and load the GitHub profile."""
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                token_resp = await client.post(
                    self.token_url,
                    json={
                        "client_id": self.client_id,
                        "client_secret": self.client_secret,
                        "code": code,
                        "redirect_uri": self.redirect_uri,
                    },
                    headers={"Accept": "application/json"},
                )
                token_resp.raise_for_status()
                access_token = token_resp.json().get("access_token")
                if not access_token:
                    raise OAuthError("GitHub did not return an access token")

                headers = {
                    "Authorization": f"token {access_token}",
                    "Accept": "application/vnd.github.v3+json",
                }
                user_resp = await client.get(f"{self.api_base}/user", headers=headers)
                user_resp.raise_for_status()
                profile = user_resp.json()

                emails_resp = await client.get(f"{self.api_base}/user/emails", headers=headers)
                emails_resp.raise_for_status()
                emails = emails_resp.json()
        except httpx.HTTPError as e:
            logger.error(f"GitHub OAuth request failed: {e}")
            raise OAuthError(f"GitHub request failed: {e}") from e

        primary = next((e for e in emails if e.get("primary") and e.get("verified")), None)
        email = primary["email"] if primary else profile.get("email")
        if not email:
            raise OAuthError("No verified email found on the GitHub account")

        return OAuthIdentity(
            provider=self.provider,
            provider_id=str(profile["id"]),
            email=email.lower(),
            username=profile.get("login") or email.split("@")[0],
            avatar_url=profile.get("avatar_url"),
            profile_url=profile.get("html_url"),
        )


class GoogleOAuthClient:
    provider = "google"
    authorize_url = "https://accounts.google.com/o/oauth2/v2/auth"
    token_url = "https://oauth2.googleapis.com/token"
    userinfo_url = "https://www.googleapis.com/oauth2/v3/userinfo"

    def __init__(self, client_id: str, client_secret: str, redirect_uri: str, timeout: float = 10.0):
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.timeout = timeout

    def authorization_url(self, state: str) -> str:
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": "openid email profile",
            "state": state,
        }
        return f"{self.authorize_url}?{urlencode(params)}"

    async def fetch_identity(self, code: str) -> OAuthIdentity:
        """Exchange an authorization code and load the Google profile."""
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                token_resp = await client.post(
                    self.token_url,
                    data={
                        "client_id": self.client_id,
                        "client_secret": self.client_secret,
                        "code": code,
                        "grant_type": "authorization_code",
                        "redirect_uri": self.redirect_uri,
                    },
                )
                token_resp.raise_for_status()
                access_token = token_resp.json().get("access_token")
                if not access_token:
                    raise OAuthError("Google did not return an access token")

                user_resp = await client.get(
                    self.userinfo_url,
                    headers={"Authorization": f"Bearer {access_token}"},
                )
                user_resp.raise_for_status()
                profile = user_resp.json()
        except httpx.HTTPError as e:
            logger.error(f"Google OAuth request failed: {e}")
            raise OAuthError(f"Google request failed: {e}") from e

        email = profile.get("email")
        if not email or not profile.get("email_verified", False):
            raise OAuthError("No verified email found on the Google account")

        return OAuthIdentity(
            provider=self.provider,
            provider_id=str(profile["sub"]),
            email=email.lower(),
            username=profile.get("name") or email.split("@")[0],
            avatar_url=profile.get("picture"),
        )


def get_github_oauth() -> GitHubOAuthClient:
    return GitHubOAuthClient(
        settings.GITHUB_CLIENT_ID,
        settings.GITHUB_CLIENT_SECRET,
        redirect_uri=f"{settings.FRONTEND_URL}/auth/github/callback",
        timeout=settings.OAUTH_TIMEOUT_SECONDS,
    )


def get_google_oauth() -> GoogleOAuthClient:
    return GoogleOAuthClient(
        settings.GOOGLE_CLIENT_ID,
        settings.GOOGLE_CLIENT_SECRET,
        redirect_uri=f"{settings.FRONTEND_URL}/auth/google/callback",
        timeout=settings.OAUTH_TIMEOUT_SECONDS,
    )
