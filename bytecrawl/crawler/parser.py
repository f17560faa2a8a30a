"""
HTML link extraction.
"""

import logging
from typing import List, Optional, Union

from bs4 import BeautifulSoup
from bs4.builder import ParserRejectedMarkup


class LinkExtractor:
    """
    Pulls anchor targets out of HTML documents.

    The hrefs are returned exactly as written in the page; resolving them
    against the page URL is the caller's job.
    """

    def __init__(self, features: str = 'lxml'):
        self.features = features
        self.logger = logging.getLogger(__name__)

    def extract_links(self, html: Union[bytes, str], base_url: str,
                      encoding: Optional[str] = None) -> List[str]:
        """
        Extract the raw href of every <a href> in a document.

        Args:
            html: Document body, bytes or already decoded text
            base_url: URL the document was served from, used for logging
            encoding: Charset announced by the server, if any

        Returns:
            List of href strings in document order; empty if the document
            could not be parsed
        """
        try:
            if isinstance(html, bytes):
                soup = BeautifulSoup(html, self.features, from_encoding=encoding)
            else:
                soup = BeautifulSoup(html, self.features)
        except (ParserRejectedMarkup, ValueError, LookupError) as e:
            self.logger.warning(f"Error parsing document from {base_url}: {e}")
            return []

        links = [a.get('href') for a in soup.select('a[href]')]
        links = [href for href in links if isinstance(href, str)]

        self.logger.debug(f"Extracted {len(links)} links from {base_url}")
        return links
