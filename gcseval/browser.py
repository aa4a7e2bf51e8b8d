"""
Signed URL validation in a real browser.

Opens a signed URL with Playwright and decides whether it is usable (the
object is served with HTTP 200) and trustworthy (the browser did not put up a
deceptive-site / phishing interstitial in front of it).

Orchestrates, per validation:
1. A fresh browser context and page on the shared browser
2. Response and download observers armed before navigation
3. Navigation, tolerating the "Download is starting" abort
4. Status resolution and deception inspection
5. A screenshot when something looks wrong
"""
import logging
import threading
import time
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, Optional, Union

from playwright.sync_api import Browser, BrowserContext, Error as PlaywrightError, Page, Playwright, Response, sync_playwright

from gcseval.config import HarnessConfig
from gcseval.types import STATUS_ERROR, STATUS_NOT_OBSERVED, SignedUrlValidationResult

logger = logging.getLogger(__name__)

# Lower-cased phrases shown by browser security interstitials
PHISHING_INDICATORS = (
    "deceptive site ahead",
    "dangerous site",
    "phishing",
    "this site ahead contains harmful programs",
    "attack site ahead",
    "suspicious site",
    "your connection is not private",
    "security warning",
)

WARNING_SELECTORS = (
    "#warning",
    ".warning-message",
    "[class*='phishing']",
    "[class*='warning']",
    "[class*='dangerous']",
)

META_REFRESH_SELECTOR = "meta[http-equiv='refresh']"

# Navigation error text when the engine aborts page load to start a download
DOWNLOAD_STARTING_MARKER = "Download is starting"

# Statuses that do not warrant a screenshot
EXPECTED_STATUSES = (200, 302)

VIEWPORT = {"width": 1920, "height": 1080}
USER_AGENT = "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36"


# ============================================================================
# Shared browser engine
# ============================================================================


class BrowserEngine:
    """
    Lazily started Playwright driver and browser, shared by every validator.

    The driver and browser are created at most once (check, lock, check
    again) and torn down by an explicit shutdown(). Contexts are handed out
    per call and never shared.

    Playwright's sync API is bound to the thread that started it; run
    parallel validations in separate processes (pytest-xdist), each with its
    own engine.
    """

    def __init__(
        self,
        browser_type: str = "firefox",
        headless: bool = True,
        launch_timeout_ms: float = 120000,
    ) -> None:
        self.browser_type = browser_type
        self.headless = headless
        self.launch_timeout_ms = launch_timeout_ms
        self._lock = threading.Lock()
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None

    @property
    def is_started(self) -> bool:
        return self._browser is not None

    def get_browser(self) -> Browser:
        """Return the shared browser, starting Playwright and launching it on first use."""
        browser = self._browser
        if browser is not None and browser.is_connected():
            return browser

        with self._lock:
            if self._playwright is None:
                logger.info("Creating new Playwright instance")
                self._playwright = sync_playwright().start()

            if self._browser is None or not self._browser.is_connected():
                logger.info(f"Launching new {self.browser_type} browser (headless: {self.headless})")
                launcher = getattr(self._playwright, self.browser_type)
                self._browser = launcher.launch(
                    headless=self.headless,
                    timeout=self.launch_timeout_ms,
                )
            return self._browser

    @contextmanager
    def context(self) -> Iterator[BrowserContext]:
        """A fresh, isolated browser context, closed on exit."""
        context = self.get_browser().new_context(
            viewport=VIEWPORT,
            user_agent=USER_AGENT,
            accept_downloads=True,
        )
        try:
            yield context
        finally:
            try:
                context.close()
            except PlaywrightError as e:
                logger.warning(f"Error closing browser context: {e}")

    def shutdown(self) -> None:
        """Close the browser, then the Playwright driver."""
        with self._lock:
            if self._browser is not None:
                try:
                    self._browser.close()
                    logger.info("Shared browser closed")
                except PlaywrightError as e:
                    logger.error(f"Error closing shared browser: {e}")
                self._browser = None
            if self._playwright is not None:
                try:
                    self._playwright.stop()
                    logger.info("Shared Playwright closed")
                except PlaywrightError as e:
                    logger.error(f"Error stopping Playwright: {e}")
                self._playwright = None


_shared_engine: Optional[BrowserEngine] = None
_shared_engine_lock = threading.Lock()


def shared_engine(browser_type: str = "firefox", headless: bool = True) -> BrowserEngine:
    """Process-wide default engine; arguments only apply to the first call."""
    global _shared_engine
    if _shared_engine is None:
        with _shared_engine_lock:
            if _shared_engine is None:
                _shared_engine = BrowserEngine(browser_type=browser_type, headless=headless)
    return _shared_engine


def shutdown_shared_engine() -> None:
    """Tear down the process-wide engine, if one was ever created."""
    global _shared_engine
    with _shared_engine_lock:
        engine, _shared_engine = _shared_engine, None
    if engine is not None:
        engine.shutdown()


# ============================================================================
# Decision helpers
# ============================================================================


def is_download_interrupt(error: BaseException) -> bool:
    """True for the navigation error raised when a download replaces the page."""
    return DOWNLOAD_STARTING_MARKER in str(error)


def match_indicator(text: Optional[str]) -> Optional[str]:
    """First phishing indicator contained in text (case-insensitive)."""
    if not text:
        return None
    lowered = text.lower()
    for indicator in PHISHING_INDICATORS:
        if indicator in lowered:
            return indicator
    return None


def resolve_status(response_status: Optional[int], observed_status: int, download_started: bool) -> int:
    """
    Navigation response first, then the observer, then 200 for a download.

    A download never starts on an error response, so a started download with
    no observed status counts as 200.
    """
    if response_status is not None:
        return response_status
    if observed_status != STATUS_NOT_OBSERVED:
        return observed_status
    if download_started:
        logger.info("Download started, assuming HTTP 200")
        return 200
    return STATUS_NOT_OBSERVED


def needs_screenshot(phishing_detected: bool, status_code: int) -> bool:
    return phishing_detected or status_code not in EXPECTED_STATUSES


# ============================================================================
# Validator
# ============================================================================


class SignedUrlValidator:
    """
    Opens signed URLs in the shared browser and reports what happened.

    Example:
        validator = SignedUrlValidator(shared_engine())
        result = validator.validate(signed_url)
        assert not result.phishing_detected, result.screenshot_path
        assert result.status_code == 200
    """

    def __init__(
        self,
        engine: Optional[BrowserEngine] = None,
        screenshot_dir: Union[str, Path] = "target/screenshots",
        navigation_timeout_ms: float = 30000,
        status_wait_ms: float = 1000,
        inspect_timeout_ms: float = 5000,
    ) -> None:
        self.engine = engine or shared_engine()
        self.screenshot_dir = Path(screenshot_dir)
        self.navigation_timeout_ms = navigation_timeout_ms
        self.status_wait_ms = status_wait_ms
        self.inspect_timeout_ms = inspect_timeout_ms

    @classmethod
    def from_config(cls, config: HarnessConfig, engine: Optional[BrowserEngine] = None) -> "SignedUrlValidator":
        engine = engine or shared_engine(browser_type=config.browser, headless=config.headless)
        return cls(engine=engine, screenshot_dir=config.screenshot_dir)

    def validate(self, url: str) -> SignedUrlValidationResult:
        """
        Navigate to a signed URL and build a verdict.

        Never raises for browser-side failures; those produce a result with
        status -1 and the error message as content.
        """
        logger.info(f"Validating signed URL: {url}")
        try:
            with self.engine.context() as context:
                page = context.new_page()
                try:
                    return self._validate_page(page, url)
                finally:
                    page.close()
        except PlaywrightError as e:
            logger.error(f"Error validating signed URL: {e}")
            return SignedUrlValidationResult(
                url=url,
                status_code=STATUS_ERROR,
                phishing_detected=False,
                page_content=f"Error: {e}",
            )

    def _validate_page(self, page: Page, url: str) -> SignedUrlValidationResult:
        observed: Dict[str, Any] = {"status": STATUS_NOT_OBSERVED, "download": False}

        def on_response(response: Response) -> None:
            if response.url == url:
                observed["status"] = response.status
                logger.info(f"Captured response status: {response.status}")

        def on_download(download: Any) -> None:
            observed["download"] = True
            logger.info(f"Download detected for URL: {download.url}")

        page.on("response", on_response)
        page.on("download", on_download)

        response: Optional[Response] = None
        try:
            response = page.goto(
                url,
                wait_until="domcontentloaded",
                timeout=self.navigation_timeout_ms,
            )
        except PlaywrightError as e:
            if not is_download_interrupt(e):
                raise
            logger.info("Navigation aborted because download started (this is expected behavior)")
            observed["download"] = True
            self._await_observed_status(page, observed)

        download_started = observed["download"]
        status_code = resolve_status(
            response.status if response is not None else None,
            observed["status"],
            download_started,
        )
        logger.info(f"Final HTTP status code: {status_code}")

        page_title: Optional[str] = ""
        page_content: Optional[str] = ""
        matched: Optional[str] = None
        if not download_started:
            matched = self.find_deception_indicator(page)
            page_title = page.title()
            page_content = page.content()

        phishing_detected = matched is not None
        screenshot_path = None
        if needs_screenshot(phishing_detected, status_code):
            screenshot_path = self.capture_screenshot(page)

        return SignedUrlValidationResult(
            url=url,
            status_code=status_code,
            phishing_detected=phishing_detected,
            page_title=page_title,
            page_content=page_content,
            screenshot_path=screenshot_path,
            download_started=download_started,
            matched_indicator=matched,
        )

    def _await_observed_status(self, page: Page, observed: Dict[str, Any]) -> None:
        """Let the response observer fire; bounded by status_wait_ms."""
        deadline = time.monotonic() + self.status_wait_ms / 1000.0
        while observed["status"] == STATUS_NOT_OBSERVED and time.monotonic() < deadline:
            # wait_for_timeout pumps the event loop so the observer can run
            page.wait_for_timeout(100)

    def find_deception_indicator(self, page: Page) -> Optional[str]:
        """
        Look for a security interstitial on the rendered page.

        Checks title, body text, warning elements, then a meta refresh tag;
        the first hit is returned.
        """
        try:
            title_match = match_indicator(page.title())
            if title_match:
                logger.warning(f"Phishing indicator found in title: {title_match}")
                return title_match

            body_text = page.inner_text("body", timeout=self.inspect_timeout_ms)
            text_match = match_indicator(body_text)
            if text_match:
                logger.warning(f"Phishing indicator found in page content: {text_match}")
                return text_match

            for selector in WARNING_SELECTORS:
                if page.is_visible(selector):
                    logger.warning(f"Phishing warning element detected: {selector}")
                    return selector

            meta_refresh = page.query_selector(META_REFRESH_SELECTOR)
            if meta_refresh is not None:
                content = meta_refresh.get_attribute("content") or ""
                if "phishing" in content.lower():
                    logger.warning("Phishing indicator found in meta refresh tag")
                    return META_REFRESH_SELECTOR

        except PlaywrightError as e:
            logger.error(f"Error checking for phishing warning: {e}")
            return None

        logger.info("No phishing indicators detected")
        return None

    def capture_screenshot(self, page: Page, name: Optional[str] = None) -> Optional[str]:
        """Full-page screenshot into screenshot_dir; None if it could not be taken."""
        name = name or f"validation-{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}"
        path = self.screenshot_dir / f"{name}.png"
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            page.screenshot(path=str(path), full_page=True)
        except (PlaywrightError, OSError) as e:
            logger.error(f"Failed to capture screenshot: {e}")
            return None
        logger.info(f"Screenshot saved: {path}")
        return str(path)

    def download(self, url: str, destination: Union[str, Path]) -> bool:
        """
        Download the object behind a signed URL to destination.

        Returns:
            True if the browser produced a download and it was saved
        """
        destination = Path(destination)
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            with self.engine.context() as context:
                page = context.new_page()
                try:
                    with page.expect_download(timeout=self.navigation_timeout_ms) as download_info:
                        try:
                            page.goto(url, timeout=self.navigation_timeout_ms)
                        except PlaywrightError as e:
                            if not is_download_interrupt(e):
                                raise
                    download_info.value.save_as(str(destination))
                finally:
                    page.close()
        except (PlaywrightError, OSError) as e:
            logger.error(f"Error downloading file: {e}")
            return False

        logger.info(f"File downloaded successfully to: {destination}")
        return True
