"""
Plain HTTP profile fetcher.

Downloads a page with aiohttp and extracts, with BeautifulSoup:
  - title and meta description (OpenGraph tags preferred)
  - visible body text
  - recent posts (<article> blocks)
  - e-mail addresses (mailto: links and addresses in the text)
  - absolute outbound http(s) links
For websites, an "about" page on the same host is fetched as well.

Login-walled platforms usually return little beyond OpenGraph tags, which is
still enough to feed the identity validator and the summarizer.
"""

from __future__ import annotations

import re
from urllib.parse import urljoin, urlsplit

import aiohttp
from bs4 import BeautifulSoup
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from deep_dive.core.config import get_module_setting, settings
from deep_dive.core.exceptions import APIError
from deep_dive.core.logging import get_logger
from deep_dive.database.models import ProfileSnapshot
from deep_dive.providers.base import ProfileFetcher, ProviderResult
from deep_dive.utils.urls import normalize_url, same_host

logger = get_logger(__name__)

EMAIL_PATTERN = re.compile(r"[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}")
_WHITESPACE = re.compile(r"\s+")
_ABOUT_HINT = re.compile(r"\babout\b|/about", re.IGNORECASE)


def _squish(text: str) -> str:
    return _WHITESPACE.sub(" ", text).strip()


class HttpProfileFetcher(ProfileFetcher):
    """Fetch profile pages over plain HTTP."""

    name = "http"

    def __init__(self, timeout_seconds: int | None = None) -> None:
        self.timeout_seconds = timeout_seconds or settings.request_timeout_seconds
        self.max_links = int(get_module_setting("fetch", "http", "max_links", 60))
        self.max_text_chars = int(get_module_setting("fetch", "http", "max_text_chars", 4000))

    async def _fetch(
        self,
        url: str,
        channel_type: str,
        include_about: bool,
    ) -> ProviderResult[ProfileSnapshot]:
        async with aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=self.timeout_seconds),
            headers={"User-Agent": settings.user_agent, "Accept-Language": "en-US,en;q=0.9"},
        ) as session:
            page = await self._get(session, url)
            if page is None:
                return ProviderResult.fail(f"Could not load {url}", provider_name=self.name)
            final_url, html = page
            snapshot = self.parse_page(html, url=url, final_url=final_url, channel_type=channel_type)

            if include_about:
                about_url = self.find_about_url(html, final_url)
                if about_url:
                    about_page = await self._get(session, about_url)
                    if about_page is not None:
                        snapshot.about_url = about_page[0]
                        snapshot.about_text = self._page_text(
                            BeautifulSoup(about_page[1], "html.parser")
                        )

        logger.debug(
            "profile_fetched",
            url=url,
            links=len(snapshot.links),
            emails=len(snapshot.emails),
            has_about=bool(snapshot.about_text),
        )
        return ProviderResult.ok(snapshot, source=self.name)

    @retry(
        retry=retry_if_exception_type((aiohttp.ClientConnectionError, APIError)),
        stop=stop_after_attempt(2),
        wait=wait_exponential(multiplier=1, min=1, max=5),
        reraise=True,
    )
    async def _get(self, session: aiohttp.ClientSession, url: str) -> tuple[str, str] | None:
        async with session.get(url, allow_redirects=True) as resp:
            if resp.status in (401, 403, 404, 410, 451):
                logger.debug("profile_fetch_status", url=url, status=resp.status)
                return None
            if resp.status >= 500:
                raise APIError(self.name, resp.status, url)
            if resp.status != 200:
                return None
            content_type = resp.headers.get("Content-Type", "")
            if content_type and "html" not in content_type:
                return None
            return str(resp.url), await resp.text(errors="replace")

    def parse_page(
        self,
        html: str,
        *,
        url: str,
        final_url: str | None = None,
        channel_type: str = "",
    ) -> ProfileSnapshot:
        """Build a snapshot from raw HTML. Relative links resolve against final_url."""
        soup = BeautifulSoup(html, "html.parser")
        base = final_url or url

        title = self._meta(soup, "og:title") or (
            soup.title.get_text(strip=True) if soup.title else ""
        )
        description = self._meta(soup, "og:description") or self._meta(soup, "description")

        posts = []
        for article in soup.find_all("article")[:20]:
            text = _squish(article.get_text(" "))
            if text:
                posts.append(text[:800])

        emails: list[str] = []
        for anchor in soup.select('a[href^="mailto:"]'):
            address = str(anchor.get("href", ""))[len("mailto:"):].split("?")[0].strip()
            if address and address not in emails:
                emails.append(address)

        text = self._page_text(soup)
        for address in EMAIL_PATTERN.findall(text):
            if address not in emails:
                emails.append(address)

        links: list[str] = []
        for anchor in soup.find_all("a", href=True):
            absolute = normalize_url(urljoin(base, str(anchor["href"])))
            if absolute and absolute not in links:
                links.append(absolute)
            if len(links) >= self.max_links:
                break

        return ProfileSnapshot(
            url=url,
            final_url=final_url,
            channel_type=channel_type,
            title=_squish(title),
            description=_squish(description),
            profile_text=text,
            recent_posts=posts,
            emails=emails[:20],
            links=links,
        )

    @staticmethod
    def find_about_url(html: str, base_url: str) -> str | None:
        """First same-host link that looks like an about page."""
        soup = BeautifulSoup(html, "html.parser")
        for anchor in soup.find_all("a", href=True):
            href = str(anchor["href"])
            label = anchor.get_text(" ", strip=True)
            if not (_ABOUT_HINT.search(href) or _ABOUT_HINT.search(label)):
                continue
            candidate = normalize_url(urljoin(base_url, href))
            if candidate and same_host(candidate, base_url):
                if urlsplit(candidate).path.rstrip("/") != urlsplit(base_url).path.rstrip("/"):
                    return candidate
        return None

    def _page_text(self, soup: BeautifulSoup) -> str:
        for tag in soup(["script", "style", "noscript", "template"]):
            tag.decompose()
        body = soup.body or soup
        return _squish(body.get_text(" "))[: self.max_text_chars]

    @staticmethod
    def _meta(soup: BeautifulSoup, key: str) -> str:
        tag = soup.find("meta", attrs={"property": key}) or soup.find("meta", attrs={"name": key})
        if tag and tag.get("content"):
            return str(tag["content"])
        return ""
