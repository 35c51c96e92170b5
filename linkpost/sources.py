"""
Feed source registry for LinkPost.
"""
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List

CATEGORIES = ("ai", "tech", "science")


@dataclass(frozen=True)
class Source:
    """
    A feed that articles are collected from.
    """
    name: str
    url: str
    category: str
    enabled: bool = True


DEFAULT_SOURCES = [
    # AI
    Source("TechCrunch AI", "https://techcrunch.com/category/artificial-intelligence/feed/", "ai"),
    Source("VentureBeat AI", "https://venturebeat.com/category/ai/feed/", "ai"),
    Source("MarkTechPost", "https://www.marktechpost.com/feed/", "ai"),
    # Newsletter archive, entries are email bodies
    Source(
        "AI Weekly",
        "https://us12.campaign-archive.com/feed?u=f39692e245b94f7fb693b6d82&id=93051a3d5e",
        "ai",
        enabled=False,
    ),
    # General tech
    Source("Ars Technica", "https://feeds.arstechnica.com/arstechnica/index", "tech"),
    Source("The Verge", "https://www.theverge.com/rss/index.xml", "tech"),
    # Science / research
    Source("MIT Technology Review", "https://www.technologyreview.com/feed/", "science"),
    Source("Hacker News (AI/Tech)", "https://hnrss.org/newest?q=AI+OR+LLM+OR+Machine+Learning", "tech"),
]


def sources_from_config(entries: Iterable[Dict[str, Any]]) -> List[Source]:
    """
    Build sources from configuration mappings.

    Args:
        entries: Mappings with name, url, category and an optional enabled flag

    Returns:
        List of Source objects in the given order
    """
    sources = []
    for entry in entries:
        sources.append(Source(
            name=str(entry["name"]),
            url=str(entry["url"]),
            category=str(entry.get("category", "tech")).lower(),
            enabled=bool(entry.get("enabled", True)),
        ))
    return sources


def enabled_sources(sources: Iterable[Source]) -> List[Source]:
    """Sources taking part in a fetch cycle, in registry order."""
    return [source for source in sources if source.enabled]
