"""
LinkPost - RSS to social post draft generator

Collects articles from technology news feeds, deduplicates them into a local
store and turns a few of them each day into short promotional post drafts
that can be reviewed, approved and exported.
"""

__version__ = "0.1.0"
