"""Public interface definitions for the forum-facing capabilities.

The discovery and archiving services reach the forum exclusively through
the abstract base classes defined here.  Concrete adapters live in
``src/providers/`` and are injected at construction time, so unit tests can
pass an in-memory fake instead of touching the network.

CONCRETE PROVIDER MAP:
    Interface          ->  Concrete implementations (in src/providers/)
    ---------------------------------------------------------------
    IPageFetcher       ->  HttpxPageFetcher
    ITopicExtractor    ->  ListingTopicExtractor
    IPostParser        ->  ForumPostParser

Re-exports
----------
IPageFetcher
    Fetch one page of HTML, honouring a politeness delay.
ITopicExtractor
    Parse the topics listed on one section listing page.
IPostParser
    Parse the posts shown on one archived topic page.
"""

from src.interfaces.page_fetcher import IPageFetcher
from src.interfaces.post_parser import IPostParser
from src.interfaces.topic_extractor import ITopicExtractor

__all__ = [
    "IPageFetcher",
    "IPostParser",
    "ITopicExtractor",
]
