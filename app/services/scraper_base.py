"""
Abstract base class for job-site scrapers.

The scraper worker drives a JobScraper through its state machine
(navigate -> search -> filter -> list -> extract -> paginate). Concrete
scrapers own the browser, selectors and timing; the worker owns duplicate
suppression, persistence, cancellation and termination bounds.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, List, Optional


class ScraperError(Exception):
    """Capability-level failure: the listing cannot be reached at all. Fatal for the mission."""
    pass


class CardExtractionError(ScraperError):
    """One result card could not be opened or read. Only that card is skipped."""
    pass


class DataIntegrityError(Exception):
    """Required posting fields (title, company) are missing. The item is discarded."""
    pass


@dataclass
class JobCard:
    """A result card as seen in the listing, before it is opened."""
    posting_id: str
    url: str
    title: Optional[str] = None
    handle: Any = None


@dataclass
class RawJobPosting:
    """Fields read from an opened card, not yet validated."""
    posting_id: str
    url: str
    title: Optional[str]
    company_name: Optional[str]
    company_url: Optional[str] = None
    location: Optional[str] = None
    description_text: str = ""
    posted_text: Optional[str] = None


class JobScraper(ABC):
    """
    Scraper capability used by the scraper worker.

    Usage:
        with scraper:
            scraper.navigate_to_jobs()
            scraper.search(role, location)
            scraper.apply_filters()
            for card in scraper.visible_cards():
                posting = scraper.extract(card)
    """

    def __enter__(self) -> "JobScraper":
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def open(self) -> None:
        """Start the browser session. Default is a no-op."""
        pass

    def close(self) -> None:
        """Release the browser session. Default is a no-op."""
        pass

    @abstractmethod
    def navigate_to_jobs(self) -> None:
        """
        Reach the jobs section of the site.

        Raises:
            ScraperError: If the site or the jobs page cannot be reached
        """
        pass

    @abstractmethod
    def search(self, role: str, location: str) -> None:
        """Run a job search for role in location."""
        pass

    @abstractmethod
    def apply_filters(self) -> None:
        """Narrow the listing (e.g. date posted). Failure to filter is not fatal."""
        pass

    @abstractmethod
    def visible_cards(self) -> List[JobCard]:
        """Cards currently rendered in the listing, in display order."""
        pass

    @abstractmethod
    def extract(self, card: JobCard) -> RawJobPosting:
        """
        Open a card and read its details.

        Raises:
            CardExtractionError: If the card cannot be opened or read
        """
        pass

    @abstractmethod
    def load_more(self) -> bool:
        """
        Scroll to surface more cards on the current page.

        Returns:
            bool: False when the page is known to be exhausted
        """
        pass

    @abstractmethod
    def next_page(self) -> bool:
        """
        Move to the next results page.

        Returns:
            bool: False when there is no next page
        """
        pass
