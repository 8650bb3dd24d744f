"""Listing-page topic extractors.

One implementation of ITopicExtractor:
    ListingTopicExtractor -- BeautifulSoup parser for ``viewforum.php``
    listing tables; topic identifiers come from the ``topic`` query
    parameter of each title link.
"""

from src.providers.extractor.listing_extractor import ListingTopicExtractor

__all__ = ["ListingTopicExtractor"]
