"""Job posting import: fetch a posting URL and pull out its title, company and description.

Known boards (LinkedIn, Indeed, Greenhouse, Lever) get site-specific selectors;
everything else goes through heading-based section extraction and a generic
fallback. A posting whose description cannot be recovered raises
``JobImportError`` so the caller can ask for the description by hand.
"""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass
from urllib.parse import urljoin, urlparse

import httpx
from bs4 import BeautifulSoup, NavigableString, Tag

from ats_tailor.parsers.jd_parser import parse_jd
from ats_tailor.utils.url_validator import validate_url

logger = logging.getLogger(__name__)

HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.5",
}

REQUEST_TIMEOUT = 15.0
MAX_REDIRECTS = 5
MIN_DESCRIPTION_CHARS = 200
MIN_SECTION_CHARS = 20

FETCH_FAILED = "Unable to fetch URL. Please check the link or paste the description manually."
EXTRACT_FAILED = "Unable to extract job information from this URL. Please paste the description manually."

SECTION_KEYWORDS = (
    "responsibilit", "requirement", "qualification", "about the role", "about role",
    "about this role", "the role", "your role", "what you", "what we", "job description",
    "description", "mission", "duties", "skills", "experience", "nice to have", "bonus",
    "perks", "benefits", "who you are", "ideal candidate",
)

_HEADINGS = ["h1", "h2", "h3", "h4"]
_DROP_TAGS = ["script", "style", "noscript", "template", "svg"]


@dataclass(frozen=True)
class SiteRules:
    title: tuple[str, ...] = ()
    company: tuple[str, ...] = ()
    description: tuple[str, ...] = ()


SITE_RULES: dict[str, SiteRules] = {
    "linkedin.com": SiteRules(
        title=('h1[class*="topcard__title"]',),
        company=('a[class*="topcard__org-name-link"]',),
        description=('div[class*="description__text"]', 'section[class*="description"]'),
    ),
    "indeed.com": SiteRules(
        title=('h1[class*="jobsearch-JobInfoHeader-title"]', '[data-testid="jobsearch-JobInfoHeader-title"]'),
        company=('[data-testid="inlineHeader-companyName"]', 'div[class*="jobsearch-InlineCompanyRating"]'),
        description=("#jobDescriptionText",),
    ),
    "greenhouse.io": SiteRules(
        title=('h1[class*="app-title"]',),
        company=('span[class*="company-name"]',),
        description=("#content", 'div[class*="job-description"]', 'section[class*="description"]'),
    ),
    "lever.co": SiteRules(
        title=(".posting-headline h2", 'h2[class*="posting-headline"]'),
        description=('div[class*="posting-description"]', 'div[class*="section-wrapper"]'),
    ),
}

GENERIC_DESCRIPTION = (
    'div[class*="job-description"]',
    'div[class*="job_description"]',
    'section[class*="description"]',
    'div[class*="description"]',
    "main",
    "article",
)


class JobImportError(ValueError):
    """A posting could not be fetched or its description could not be recovered.

    ``title`` and ``company`` carry whatever was found, so a manual entry can
    start from them.
    """

    def __init__(self, message: str, *, title: str = "", company: str = ""):
        super().__init__(message)
        self.title = title
        self.company = company


@dataclass
class JobPosting:
    url: str
    title: str
    description: str
    company: str = ""


async def fetch_job_posting(
    url: str,
    *,
    client: httpx.AsyncClient | None = None,
    timeout: float = REQUEST_TIMEOUT,
) -> JobPosting:
    """Fetch ``url`` and extract the posting. Raises ``JobImportError``."""
    url = (url or "").strip()
    if not url:
        raise JobImportError("URL is required")

    owns_client = client is None
    if client is None:
        client = httpx.AsyncClient(headers=HEADERS, timeout=timeout)
    try:
        final_url, html = await _fetch(client, url)
    except ValueError as exc:
        raise JobImportError(f"Invalid job URL: {exc}") from exc
    except httpx.HTTPError as exc:
        logger.warning("Fetching job posting %s failed: %s", url, exc)
        raise JobImportError(FETCH_FAILED) from exc
    finally:
        if owns_client:
            await client.aclose()

    logger.info("Fetched job posting %s (%d chars of HTML)", final_url, len(html))
    return parse_job_html(html, final_url)


async def fill_from_postings(
    jobs: list[dict],
    *,
    client: httpx.AsyncClient | None = None,
) -> dict[int, str]:
    """Fill a missing ``title``/``description`` on job dicts that carry a ``url``.

    Jobs are updated in place and fetched concurrently. Returns the import
    error message per job index for postings that could not be read.
    """
    pending = [
        (index, job)
        for index, job in enumerate(jobs)
        if isinstance(job, dict) and job.get("url") and not (job.get("title") and job.get("description"))
    ]
    results = await asyncio.gather(
        *(fetch_job_posting(job["url"], client=client) for _, job in pending),
        return_exceptions=True,
    )

    failures: dict[int, str] = {}
    for (index, job), result in zip(pending, results):
        if isinstance(result, JobImportError):
            failures[index] = str(result)
            if not job.get("title") and result.title:
                job["title"] = result.title
            continue
        if isinstance(result, BaseException):
            raise result
        job["title"] = job.get("title") or result.title
        job["description"] = job.get("description") or result.description
    return failures


async def _fetch(client: httpx.AsyncClient, url: str) -> tuple[str, str]:
    """GET with manual redirects so every hop passes the SSRF check."""
    for _ in range(MAX_REDIRECTS + 1):
        await asyncio.to_thread(validate_url, url)
        response = await client.get(url, headers=HEADERS, follow_redirects=False)
        if response.is_redirect:
            url = urljoin(url, response.headers["location"])
            continue
        response.raise_for_status()
        return url, response.text
    raise httpx.TooManyRedirects(f"More than {MAX_REDIRECTS} redirects", request=response.request)


def parse_job_html(html: str, url: str = "") -> JobPosting:
    """Extract title, company and description from a posting page."""
    soup = BeautifulSoup(html, "html.parser")
    _flatten_markup(soup)
    rules = _rules_for(url)

    title = _first_text(soup, rules.title) or _fallback_title(soup)
    company = _first_text(soup, rules.company)

    description = extract_job_sections(soup)
    if len(description) < MIN_DESCRIPTION_CHARS:
        logger.debug("Section extraction found %d chars; trying selectors", len(description))
        description = _first_block(soup, (*rules.description, *GENERIC_DESCRIPTION))

    if len(description) < MIN_DESCRIPTION_CHARS:
        logger.warning("No usable description at %s (%d chars)", url, len(description))
        raise JobImportError(EXTRACT_FAILED, title=title, company=company)
    return JobPosting(url=url, title=title, description=description, company=company)


def extract_job_sections(soup: BeautifulSoup) -> str:
    """Join every section whose heading looks job-related, in page order."""
    sections: list[str] = []
    for heading in soup.find_all(_HEADINGS):
        heading_text = _inline(heading)
        if not any(k in heading_text.lower() for k in SECTION_KEYWORDS):
            continue
        body: list[str] = []
        for sibling in heading.next_siblings:
            if isinstance(sibling, Tag) and (sibling.name in _HEADINGS or sibling.find(_HEADINGS)):
                break
            body.append(sibling.get_text() if isinstance(sibling, Tag) else str(sibling))
        section = parse_jd(f"{heading_text}\n" + "".join(body))
        if len(section) > MIN_SECTION_CHARS:
            sections.append(section)
    return "\n\n".join(sections)


def _flatten_markup(soup: BeautifulSoup) -> None:
    """Turn block markup into line breaks so ``get_text`` keeps the structure."""
    for tag in soup.find_all(_DROP_TAGS):
        tag.decompose()
    for br in soup.find_all("br"):
        br.replace_with("\n")
    for li in soup.find_all("li"):
        li.insert(0, NavigableString("- "))
        li.append(NavigableString("\n"))
    for block in soup.find_all(["p", "div", "section", "ul", "ol", *_HEADINGS]):
        block.append(NavigableString("\n"))


def _rules_for(url: str) -> SiteRules:
    host = (urlparse(url).hostname or "").lower()
    for domain, rules in SITE_RULES.items():
        if host == domain or host.endswith("." + domain):
            return rules
    return SiteRules()


def _inline(tag: Tag) -> str:
    return re.sub(r"\s+", " ", tag.get_text(" ")).strip()


def _first_text(soup: BeautifulSoup, selectors: tuple[str, ...]) -> str:
    for selector in selectors:
        tag = soup.select_one(selector)
        if tag is not None and _inline(tag):
            return _inline(tag)
    return ""


def _first_block(soup: BeautifulSoup, selectors: tuple[str, ...]) -> str:
    best = ""
    for selector in selectors:
        tag = soup.select_one(selector)
        if tag is None:
            continue
        text = parse_jd(tag.get_text())
        if len(text) >= MIN_DESCRIPTION_CHARS:
            return text
        if len(text) > len(best):
            best = text
    return best


def _fallback_title(soup: BeautifulSoup) -> str:
    h1 = soup.find("h1")
    if h1 is not None and _inline(h1):
        return _inline(h1)
    og = soup.find("meta", attrs={"property": "og:title"})
    if og is not None and og.get("content"):
        return og["content"].strip()
    if soup.title is not None:
        return _inline(soup.title)
    return ""
