"""Topic-page post parsers.

One implementation of IPostParser:
    ForumPostParser -- BeautifulSoup parser for ``viewtopic.php`` post
    tables; splits each post body into new-text and quote blocks.
"""

from src.providers.post_parser.forum_post_parser import ForumPostParser

__all__ = ["ForumPostParser"]
