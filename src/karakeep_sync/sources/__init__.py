"""Source adapters — one per provider of saved items."""

from karakeep_sync.sources.github import GitHubStarredAdapter
from karakeep_sync.sources.hn import HNUpvotedAdapter
from karakeep_sync.sources.pinboard import PinboardAdapter
from karakeep_sync.sources.reddit import RedditSavedAdapter
from karakeep_sync.sources.registry import list_sources, register_adapter

register_adapter("hn", HNUpvotedAdapter)
register_adapter("reddit", RedditSavedAdapter)
register_adapter("github", GitHubStarredAdapter)
register_adapter("pinboard", PinboardAdapter)

__all__ = [
    "GitHubStarredAdapter",
    "HNUpvotedAdapter",
    "PinboardAdapter",
    "RedditSavedAdapter",
    "list_sources",
]
