"""
LinkedIn job search scraper (Playwright, sync API).

Reuses a logged-in browser session exported with Playwright's storage_state
(LINKEDIN_STORAGE_STATE). Selector lists hold the known variants of the
LinkedIn layout; the first one that matches wins.
"""

import logging
from typing import List, Optional
from urllib.parse import urlencode
from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError
from playwright.sync_api import sync_playwright
from app.core.config import settings
from app.services.job_normalizer import canonical_job_url, extract_posting_id
from app.services.scraper_base import (
    CardExtractionError,
    JobCard,
    JobScraper,
    RawJobPosting,
    ScraperError,
)

logger = logging.getLogger(__name__)

JOBS_URL = "https://www.linkedin.com/jobs/"
SEARCH_URL = "https://www.linkedin.com/jobs/search/"

CARD_SELECTORS = [
    "li[data-occludable-job-id]",
    "div.job-card-container[data-job-id]",
    "ul.jobs-search__results-list > li",
]

TITLE_SELECTORS = [
    "div.job-details-jobs-unified-top-card__job-title h1",
    "div.jobs-unified-top-card__content--two-pane h1",
    "h1.top-card-layout__title",
    "h1",
]
COMPANY_SELECTORS = [
    "div.job-details-jobs-unified-top-card__company-name a",
    "div.jobs-unified-top-card__company-name a",
    "a.topcard__org-name-link",
    "div.job-details-jobs-unified-top-card__company-name",
]
LOCATION_SELECTORS = [
    "div.job-details-jobs-unified-top-card__primary-description-container span.tvm__text",
    "span.topcard__flavor--bullet",
    "span.job-details-jobs-unified-top-card__bullet",
]
POSTED_SELECTORS = [
    "span.posted-time-ago__text",
    "div.job-details-jobs-unified-top-card__primary-description-container span:has-text('ago')",
]
DESCRIPTION_SELECTORS = [
    "div.jobs-description__content",
    "div.show-more-less-html__markup",
    "article.jobs-description__container",
]
SEE_MORE_SELECTORS = [
    "button.inline-show-more-text__button",
    "button.show-more-less-html__button--more",
    "button:has-text('See more')",
]
NEXT_PAGE_SELECTORS = [
    "button[aria-label='View next page']",
    "button.jobs-search-pagination__button--next",
    "button.artdeco-pagination__button--next",
]
FILTER_BUTTON = 'button.search-reusables__filter-pill-button:has-text("{label}")'
FILTER_OPTION = '.search-reusables__value-label:has-text("{label}")'
SHOW_RESULTS_BUTTON = ".artdeco-hoverable-content__content:visible button.artdeco-button--primary"


class LinkedInScraper(JobScraper):
    """
    Playwright-driven implementation of the JobScraper capability.

    Args:
        storage_state: Path to a Playwright storage_state JSON of a logged-in session
        headless: Run the browser without a window
        date_posted_filter: Label of the "Date posted" filter option, empty to skip
        timeout_ms: Default wait for navigation and selectors
    """

    def __init__(
        self,
        storage_state: Optional[str] = None,
        headless: Optional[bool] = None,
        date_posted_filter: Optional[str] = None,
        timeout_ms: int = 30000,
    ):
        self.storage_state = storage_state if storage_state is not None else settings.LINKEDIN_STORAGE_STATE
        self.headless = settings.SCRAPER_HEADLESS if headless is None else headless
        self.date_posted_filter = (
            settings.SCRAPER_DATE_POSTED_FILTER if date_posted_filter is None else date_posted_filter
        )
        self.timeout_ms = timeout_ms
        self._playwright = None
        self._browser = None
        self._context = None
        self._page = None
        self._card_selector: Optional[str] = None

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    def open(self) -> None:
        try:
            self._playwright = sync_playwright().start()
            self._browser = self._playwright.chromium.launch(headless=self.headless)
            self._context = self._browser.new_context(
                storage_state=self.storage_state or None,
                viewport={"width": 1280, "height": 900},
            )
            self._context.set_default_timeout(self.timeout_ms)
            self._page = self._context.new_page()
        except PlaywrightError as e:
            self.close()
            raise ScraperError(f"Could not start browser: {e}") from e

    def close(self) -> None:
        for resource, action in (
            (self._context, "close"),
            (self._browser, "close"),
            (self._playwright, "stop"),
        ):
            if resource is None:
                continue
            try:
                getattr(resource, action)()
            except PlaywrightError as e:
                logger.warning(f"[Scraper] Error during browser {action}: {e}")
        self._context = self._browser = self._playwright = self._page = None

    @property
    def page(self):
        if self._page is None:
            raise ScraperError("Browser session not open. Call open() first.")
        return self._page

    # ------------------------------------------------------------------
    # State machine steps
    # ------------------------------------------------------------------

    def navigate_to_jobs(self) -> None:
        try:
            self.page.goto(JOBS_URL, wait_until="domcontentloaded")
        except PlaywrightError as e:
            raise ScraperError(f"Could not reach {JOBS_URL}: {e}") from e

        if any(marker in self.page.url for marker in ("/login", "/authwall", "/checkpoint")):
            raise ScraperError(
                "LinkedIn session is not authenticated. Export a logged-in "
                "storage_state and set LINKEDIN_STORAGE_STATE."
            )

    def search(self, role: str, location: str) -> None:
        params = {"keywords": role}
        if location:
            params["location"] = location
        url = f"{SEARCH_URL}?{urlencode(params)}"
        try:
            self.page.goto(url, wait_until="domcontentloaded")
        except PlaywrightError as e:
            raise ScraperError(f"Job search failed for '{role}' in '{location}': {e}") from e
        self._card_selector = self._wait_for_cards()

    def apply_filters(self) -> None:
        if not self.date_posted_filter:
            return
        label = self.date_posted_filter
        try:
            self.page.locator(FILTER_BUTTON.format(label="Date posted")).first.click(timeout=5000)
            self.page.locator(FILTER_OPTION.format(label=label)).first.click(timeout=5000)
            self.page.locator(SHOW_RESULTS_BUTTON).first.click(timeout=5000)
            self._card_selector = self._wait_for_cards()
        except PlaywrightError as e:
            logger.warning(f"[Scraper] Could not apply 'Date posted: {label}' filter, continuing unfiltered: {e}")

    def visible_cards(self) -> List[JobCard]:
        cards = self.page.locator(self._card_selector or CARD_SELECTORS[0])
        result = []
        for index in range(cards.count()):
            card = cards.nth(index)
            posting_id = self._posting_id_of(card)
            if not posting_id:
                continue
            result.append(JobCard(posting_id=posting_id, url=canonical_job_url(posting_id), handle=card))
        return result

    def extract(self, card: JobCard) -> RawJobPosting:
        page = self.page
        try:
            card.handle.scroll_into_view_if_needed(timeout=5000)
            card.handle.click(timeout=6000)
            page.wait_for_selector(TITLE_SELECTORS[0] + ", " + DESCRIPTION_SELECTORS[0], timeout=10000)
            self._expand_description()

            return RawJobPosting(
                posting_id=card.posting_id,
                url=card.url,
                title=self._first_text(TITLE_SELECTORS),
                company_name=self._first_text(COMPANY_SELECTORS),
                company_url=self._first_attribute(COMPANY_SELECTORS[:3], "href"),
                location=self._first_text(LOCATION_SELECTORS),
                description_text=self._first_text(DESCRIPTION_SELECTORS, keep_lines=True) or "",
                posted_text=self._first_text(POSTED_SELECTORS),
            )
        except PlaywrightError as e:
            raise CardExtractionError(f"Could not read card {card.posting_id}: {e}") from e

    def load_more(self) -> bool:
        cards = self.page.locator(self._card_selector or CARD_SELECTORS[0])
        before = cards.count()
        if before == 0:
            return False
        try:
            cards.last.scroll_into_view_if_needed(timeout=5000)
            self.page.wait_for_timeout(1500)
        except PlaywrightError as e:
            logger.debug(f"[Scraper] Scroll failed: {e}")
            return False
        return cards.count() > before

    def next_page(self) -> bool:
        for selector in NEXT_PAGE_SELECTORS:
            button = self.page.locator(selector).first
            try:
                if button.count() == 0 or not button.is_visible() or not button.is_enabled():
                    continue
                button.click(timeout=5000)
                self._card_selector = self._wait_for_cards()
                return True
            except PlaywrightError as e:
                logger.debug(f"[Scraper] Next-page via {selector} failed: {e}")
        return False

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _wait_for_cards(self) -> str:
        try:
            self.page.wait_for_selector(", ".join(CARD_SELECTORS), timeout=self.timeout_ms)
        except PlaywrightTimeoutError as e:
            raise ScraperError(f"No job listing rendered at {self.page.url}") from e
        for selector in CARD_SELECTORS:
            if self.page.locator(selector).count() > 0:
                return selector
        raise ScraperError(f"No job listing rendered at {self.page.url}")

    def _posting_id_of(self, card) -> Optional[str]:
        for attribute in ("data-occludable-job-id", "data-job-id"):
            value = (card.get_attribute(attribute) or "").strip()
            if value.isdigit():
                return value
        link = card.locator("a[href*='/jobs/view/']").first
        if link.count() > 0:
            return extract_posting_id(link.get_attribute("href") or "")
        return None

    def _expand_description(self) -> None:
        for selector in SEE_MORE_SELECTORS:
            button = self.page.locator(selector).first
            if button.count() > 0 and button.is_visible():
                button.click(timeout=3000)
                return

    def _first_text(self, selectors: List[str], keep_lines: bool = False) -> Optional[str]:
        for selector in selectors:
            locator = self.page.locator(selector).first
            if locator.count() > 0:
                text = locator.inner_text().strip()
                if not keep_lines:
                    text = " ".join(text.split())
                if text:
                    return text
        return None

    def _first_attribute(self, selectors: List[str], attribute: str) -> Optional[str]:
        for selector in selectors:
            locator = self.page.locator(selector).first
            if locator.count() > 0:
                value = locator.get_attribute(attribute)
                if value:
                    return value.split("?")[0]
        return None
