"""
Playwright browser sessions.

Launches one Chromium context per action, seeds the tenant cookies, signs the
operator in, navigates to a product and checks for a running nightly merge.
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional
from urllib.parse import quote

from playwright.async_api import (
    Browser,
    BrowserContext,
    Page,
    Playwright,
    TimeoutError as PlaywrightTimeoutError,
    async_playwright,
)

from ..core.config import Config
from ..core.exceptions import AuthenticationError
from ..core.logging_config import get_logger


PRODUCTION_DOMAIN = "app.coursedog.com"
STAGING_DOMAIN = "staging.coursedog.com"

HEADLESS_VIEWPORT = {"width": 1280, "height": 9000}
HEADED_ARGS = [
    "--window-size=1400,900",
    "--start-minimized",
    "--disable-blink-features=AutomationControlled",
]

EMAIL_INPUT = 'input[placeholder="Email"]'
NEXT_BUTTON = 'button[data-test="next-button"]'
PASSWORD_INPUT = 'input[placeholder="Enter Password"]'
SIGN_IN_BUTTON = 'button:has-text("Sign In")'
INVALID_PASSWORD = 'small.form-text.text-danger[data-test="invalid-password"]'
APP_NAVIGATION = 'nav[data-test="app-navigation"]'
RELEASE_NOTES_CLOSE = '#popupClosePanel, #popupCloseBtn, [data-testid="popup-close-btn-icon"]'
MERGE_ALERT = '[data-cy="section-integration-status-alert"]'

SEED_STORAGE_SCRIPT = """
(schoolId) => {
    localStorage.setItem('ajs_group_id', JSON.stringify(schoolId));
    const wf = JSON.parse(localStorage.getItem('whatfix_user_data') || '{}');
    wf.school = schoolId;
    localStorage.setItem('whatfix_user_data', JSON.stringify(wf));
}
"""


def domain_for(environment: str) -> str:
    return PRODUCTION_DOMAIN if environment == "prd" else STAGING_DOMAIN


def login_url(environment: str, product_slug: str) -> str:
    """Login page that continues to the product after sign-in."""
    continue_to = quote(f"/{product_slug}", safe="")
    return f"https://{domain_for(environment)}/#/login?continue={continue_to}"


def tenant_cookies(environment: str, email: str, school_id: str) -> List[Dict[str, Any]]:
    """Cookies that preselect the school for the signed-in user."""
    url = f"https://{domain_for(environment)}"
    return [
        {
            "name": f"userSelectedSchool_{quote(email, safe='')}",
            "value": school_id,
            "url": url,
            "httpOnly": False,
            "secure": True,
            "sameSite": "Strict",
        },
        {
            "name": "ajs_group_id",
            "value": school_id,
            "url": url,
            "httpOnly": False,
            "secure": False,
            "sameSite": "Lax",
        },
    ]


class PlaywrightSession:
    """One browser, context and page; closing releases all three."""

    def __init__(
        self,
        playwright: Playwright,
        browser: Browser,
        context: BrowserContext,
        page: Page,
        environment: str,
        video_target: Optional[Path] = None,
    ):
        self.playwright = playwright
        self.browser = browser
        self.context = context
        self.page = page
        self.environment = environment
        self.video_target = video_target
        self.closed = False
        self.logger = get_logger(__name__)

    async def seed(self, email: str, school_id: str) -> None:
        """Add the tenant cookies and local storage entries for the school."""
        await self.context.add_cookies(tenant_cookies(self.environment, email, school_id))
        await self.context.add_init_script(
            script=f"({SEED_STORAGE_SCRIPT.strip()})({json.dumps(school_id)})"
        )
        self.logger.debug(f"Seeded browser context for {school_id}")

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True

        video = self.page.video
        try:
            await self.context.close()
            await self.browser.close()
            if video and self.video_target:
                recorded = Path(await video.path())
                if recorded.exists():
                    recorded.replace(self.video_target)
                    self.logger.info(f"🎥 Saved debug video to {self.video_target}")
        except OSError as e:
            self.logger.warning(f"Failed to keep debug video: {e}")
        finally:
            await self.playwright.stop()


class PlaywrightSessionProvider:
    """Launches Chromium sessions configured for the runner."""

    def __init__(self, config: Config):
        self.config = config
        self.logger = get_logger(__name__)

    async def acquire(
        self, environment: str, output_folder: Path, label: str, headed: bool
    ) -> PlaywrightSession:
        """
        Launch a browser with a fresh context and page.

        Args:
            environment: Target environment
            output_folder: Folder debug videos are recorded into
            label: Name of the kept video file, without extension
            headed: Whether to show the browser window
        """
        playwright = await async_playwright().start()
        try:
            browser = await playwright.chromium.launch(
                headless=not headed, args=HEADED_ARGS if headed else []
            )
            context_options: Dict[str, Any] = {}
            if headed:
                context_options["no_viewport"] = True
            else:
                context_options["viewport"] = HEADLESS_VIEWPORT

            video_target = None
            if output_folder:
                folder = Path(output_folder)
                folder.mkdir(parents=True, exist_ok=True)
                context_options["record_video_dir"] = str(folder)
                if not headed:
                    context_options["record_video_size"] = HEADLESS_VIEWPORT
                video_target = folder / f"{label}.webm"

            context = await browser.new_context(**context_options)
            page = await context.new_page()
            page.set_default_timeout(self.config.browser_timeout_ms)
            page.set_default_navigation_timeout(self.config.browser_timeout_ms)
        except Exception:
            await playwright.stop()
            raise

        self.logger.info(f"Launched browser for {label} (headed={headed})")
        return PlaywrightSession(
            playwright, browser, context, page, environment, video_target
        )


class PlaywrightAuthenticator:
    """Signs in through the two-step email and password form."""

    def __init__(self, timeout_ms: int = 8000):
        self.timeout_ms = timeout_ms
        self.logger = get_logger(__name__)

    async def sign_in(
        self,
        session: PlaywrightSession,
        email: str,
        password: str,
        product_slug: str,
        environment: str,
    ) -> None:
        """
        Raises:
            AuthenticationError: If the email is unknown, the password is
                wrong, or sign-in does not complete
        """
        page = session.page
        self.logger.info("🔑 Signing in...")
        await page.goto(login_url(environment, product_slug), wait_until="domcontentloaded")

        await page.fill(EMAIL_INPUT, email)
        await page.click(NEXT_BUTTON)
        try:
            await page.wait_for_selector(PASSWORD_INPUT, state="visible", timeout=5000)
        except PlaywrightTimeoutError:
            raise AuthenticationError(
                f'The email "{email}" was not found. Verify the email address or '
                "register this user in the system.",
                environment=environment,
            )

        await page.fill(PASSWORD_INPUT, password)
        try:
            async with page.expect_navigation(
                wait_until="domcontentloaded", timeout=self.timeout_ms
            ):
                await page.click(SIGN_IN_BUTTON)
        except PlaywrightTimeoutError:
            if await page.locator(INVALID_PASSWORD).is_visible():
                raise AuthenticationError(
                    "Password is incorrect. Verify your credentials and try again.",
                    environment=environment,
                )
            raise AuthenticationError(
                "Sign-in did not complete successfully. Check your credentials and "
                "ensure the user has access to this school.",
                environment=environment,
            )

        self.logger.info("✅ Successfully signed in")


class PlaywrightNavigator:
    """Opens product pages and reads the nightly merge indicator."""

    def __init__(self, config: Config):
        self.config = config
        self.logger = get_logger(__name__)

    async def navigate(
        self, session: PlaywrightSession, product_slug: str, environment: str
    ) -> None:
        page = session.page
        await page.goto(
            f"https://{domain_for(environment)}/#/{product_slug}",
            wait_until="domcontentloaded",
        )
        await page.wait_for_selector(APP_NAVIGATION, timeout=self.config.browser_timeout_ms)
        await self.dismiss_release_notes(session)

    async def dismiss_release_notes(self, session: PlaywrightSession) -> bool:
        """Close the release notes popup if it shows up; True if it did."""
        popup = session.page.locator(RELEASE_NOTES_CLOSE).first
        try:
            await popup.wait_for(state="visible", timeout=3000)
        except PlaywrightTimeoutError:
            self.logger.debug("No release notes popup detected")
            return False

        await popup.click()
        await session.page.wait_for_timeout(500)
        self.logger.info("📋 Release notes popup dismissed")
        return True

    async def merge_in_progress(self, session: PlaywrightSession) -> bool:
        alert = session.page.locator(MERGE_ALERT)
        try:
            await alert.wait_for(
                state="visible", timeout=self.config.merge_alert_timeout_ms
            )
        except PlaywrightTimeoutError:
            return False
        self.logger.warning("Nightly merge indicator is visible")
        return True
