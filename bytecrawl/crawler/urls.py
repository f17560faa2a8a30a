"""
URL helpers: resolution, canonical form and registrable domain.
"""

import logging
from typing import Optional, Union

import tldextract
from yarl import URL

logger = logging.getLogger(__name__)

CRAWLABLE_SCHEMES = frozenset(('http', 'https'))

# Bundled public suffix snapshot only; never fetched over the network.
_domain_extractor = tldextract.TLDExtract(suffix_list_urls=())


def to_url(url: Union[str, URL]) -> URL:
    """Coerce a string or URL to a yarl URL."""
    return url if isinstance(url, URL) else URL(url)


def strip_fragment(url: Union[str, URL]) -> URL:
    """Return the URL without its #fragment."""
    return to_url(url).with_fragment(None)


def canonicalize(url: Union[str, URL]) -> URL:
    """
    Canonical form used for deduplication.

    Scheme and host are lower-cased, the default port is dropped, an empty
    path becomes "/", the query is kept and the fragment is removed.
    """
    url = to_url(url)
    if not url.is_absolute():
        raise ValueError(f"Cannot canonicalize a relative URL: {url}")
    port = None if url.is_default_port() else url.port
    return URL.build(
        scheme=url.scheme.lower(),
        host=url.raw_host.lower(),
        port=port,
        path=url.raw_path or '/',
        query_string=url.raw_query_string,
        encoded=True
    )


def resolve(base: Union[str, URL], href: str) -> Optional[URL]:
    """
    Resolve an href against a page URL.

    Returns None when the result is not an absolute http(s) URL with a host,
    or when the href cannot be parsed at all.
    """
    if href is None:
        return None
    href = href.strip()
    if not href:
        return None
    try:
        link = to_url(base).join(URL(href))
    except (ValueError, TypeError, UnicodeError) as e:
        logger.debug(f"Dropping unresolvable link {href!r}: {e}")
        return None
    if link.scheme.lower() not in CRAWLABLE_SCHEMES or not link.host:
        return None
    return link


def registrable_domain(host: Optional[str]) -> str:
    """
    Public-suffix-aware registrable domain of a host ("sub.google.com" -> "google.com").

    Hosts without a public suffix, such as IP addresses and "localhost", are
    their own registrable domain.
    """
    if not host:
        return ''
    host = host.lower().rstrip('.')
    extracted = _domain_extractor(host)
    if extracted.domain and extracted.suffix:
        return f"{extracted.domain}.{extracted.suffix}"
    return host
