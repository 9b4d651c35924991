"""
Coursedog REST API client.

Obtains API tokens with the operator's credentials and downloads the school
templates scenarios fill forms from.
"""

import asyncio
import json
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

import aiohttp

from ..core.config import Config
from ..core.exceptions import ApiRequestError, AuthenticationError
from ..core.logging_config import get_logger
from ..wizard.catalog import is_peoplesoft


PRODUCTION_BASE_URL = "https://app.coursedog.com"
STAGING_BASE_URL = "https://staging.coursedog.com"
TEMPLATE_STAMP_FORMAT = "%Y-%m-%d_%H-%M-%S"


def base_url_for(environment: str) -> str:
    """API host for an environment; anything but ``prd`` is staging."""
    return PRODUCTION_BASE_URL if environment == "prd" else STAGING_BASE_URL


class CoursedogApiClient:
    """
    Thin aiohttp wrapper around the endpoints the runner needs.

    Args:
        config: Runner configuration (timeouts, attempts, schools dir)
        email: Operator sign-in email
        password: Operator sign-in password
        download_templates: Whether obtaining a run token also refreshes the
            school templates under ``<schools_dir>/<school>/Resources``
    """

    def __init__(
        self,
        config: Config,
        email: str,
        password: str,
        download_templates: bool = True,
    ):
        self.config = config
        self.email = email
        self.password = password
        self.download_templates_on_auth = download_templates
        self.logger = get_logger(__name__)

    def _headers(self, token: Optional[str] = None) -> Dict[str, str]:
        headers = {
            "Accept": "*/*",
            "Cache-Control": "no-cache",
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"
            headers["Cookie"] = f"isLoggedIn=true; token={token}"
        return headers

    async def request_json(
        self,
        method: str,
        url: str,
        token: Optional[str] = None,
        payload: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """
        Send a request and decode the JSON body.

        Raises:
            ApiRequestError: On transport errors, timeouts or status >= 400
        """
        timeout = aiohttp.ClientTimeout(total=self.config.request_timeout)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.request(
                    method, url, json=payload, headers=self._headers(token)
                ) as response:
                    if response.status >= 400:
                        raise ApiRequestError(
                            f"{method} {url} returned status {response.status}",
                            url=url,
                            status=response.status,
                        )
                    try:
                        return await response.json(content_type=None)
                    except ValueError:
                        raise ApiRequestError(
                            f"{method} {url} returned invalid JSON",
                            url=url,
                            status=response.status,
                        )
        except aiohttp.ClientError as e:
            raise ApiRequestError(f"{method} {url} failed: {e}", url=url)
        except asyncio.TimeoutError:
            raise ApiRequestError(f"{method} {url} timed out", url=url)

    async def get_token(self, environment: str) -> str:
        """
        Create an API session, retrying up to ``auth_max_attempts`` times.

        Raises:
            AuthenticationError: If every attempt fails
        """
        url = f"{base_url_for(environment)}/api/v1/sessions"
        attempts = self.config.auth_max_attempts

        for attempt in range(1, attempts + 1):
            try:
                data = await self.request_json(
                    "POST", url, payload={"email": self.email, "password": self.password}
                )
                token = data.get("token") if isinstance(data, dict) else None
                if not token:
                    raise ApiRequestError("No token received in response", url=url)
            except ApiRequestError as e:
                self.logger.warning(
                    f"Authentication attempt {attempt}/{attempts} failed: {e.message}"
                )
                continue

            self.logger.debug(f"Authenticated against {environment} on attempt {attempt}")
            return token

        raise AuthenticationError(
            f"Authentication failed after {attempts} attempts",
            environment=environment,
            attempts=attempts,
        )

    async def obtain_auth_token(self, environment: str, school_id: str) -> str:
        """Token for a run; refreshes the school's templates on success."""
        token = await self.get_token(environment)
        self.logger.info("✅ Authentication successful")
        if self.download_templates_on_auth:
            await self.download_templates(environment, school_id, token)
        return token

    async def download_templates(
        self, environment: str, school_id: str, token: str
    ) -> List[Path]:
        """
        Save the section, course and (PeopleSoft only) program templates.

        A template that cannot be fetched or saved is logged and skipped.

        Returns:
            Paths of the saved template files
        """
        base = base_url_for(environment)
        wanted = [
            ("section", [f"{base}/api/v2/{school_id}/general/sectionTemplate"]),
            ("course", [f"{base}/api/v1/{school_id}/general/courseTemplate"]),
        ]
        if is_peoplesoft(school_id):
            wanted.append(
                (
                    "program",
                    [
                        f"{base}/api/v1/{school_id}/general/programTemplate",
                        f"{base}/api/v2/{school_id}/general/programTemplate",
                    ],
                )
            )

        saved = []
        for kind, urls in wanted:
            try:
                data = await self._fetch_first(urls, token)
                saved.append(self._save_template(school_id, kind, data))
            except (ApiRequestError, OSError) as e:
                self.logger.warning(f"Unable to fetch {kind} template for {school_id}: {e}")
        return saved

    async def _fetch_first(self, urls: List[str], token: str) -> Any:
        """GET the first URL that does not answer 404."""
        last_error = None
        for url in urls:
            try:
                return await self.request_json("GET", url, token=token)
            except ApiRequestError as e:
                last_error = e
                if e.status != 404:
                    raise
        raise last_error

    def _save_template(self, school_id: str, kind: str, data: Any) -> Path:
        resources = self.config.get_school_dir(school_id) / "Resources"
        resources.mkdir(parents=True, exist_ok=True)
        stamp = datetime.now().strftime(TEMPLATE_STAMP_FORMAT)
        path = resources / f"{school_id}-{kind}Template-{stamp}.json"
        path.write_text(json.dumps(data, indent=2), encoding="utf-8")
        self.logger.info(f"💾 Saved {kind} template to {path}")
        return path
