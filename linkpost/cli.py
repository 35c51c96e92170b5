"""
Command-line interface for LinkPost.
"""
import sys
import argparse
import asyncio
import logging
from datetime import datetime

from dotenv import load_dotenv

from linkpost.config import load_settings
from linkpost.core.article import (
    ConfigError,
    InvalidTransitionError,
    PostNotFoundError,
    PostStatus,
    RunSummary,
    StorageError,
)
from linkpost.core.orchestrator import DailyJob
from linkpost.formatters.export import DraftExporter
from linkpost.scheduler import DailyScheduler

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False):
    """
    Log to stderr and to a dated file in the working directory.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler(f"linkpost_{datetime.now().strftime('%Y%m%d')}.log"),
            logging.StreamHandler(),
        ]
    )


def parse_args(argv=None):
    """
    Parse command-line arguments.

    Returns:
        Parsed arguments
    """
    parser = argparse.ArgumentParser(description="LinkPost - RSS to social post drafts")
    parser.add_argument("--config", help="Path to a YAML or JSON config file")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")

    actions = parser.add_mutually_exclusive_group()
    actions.add_argument("--fetch", action="store_true", help="Fetch articles and generate drafts now")
    actions.add_argument("--schedule", action="store_true", help="Run the daily job on the configured schedule")
    actions.add_argument("--review", action="store_true", help="Print pending drafts")
    actions.add_argument("--stats", action="store_true", help="Show database statistics")
    actions.add_argument("--export", action="store_true", help="Export pending drafts to JSON")
    actions.add_argument("--export-md", action="store_true", help="Export pending drafts to Markdown")
    actions.add_argument("--approve", type=int, metavar="ID", help="Approve a draft")
    actions.add_argument("--reject", type=int, metavar="ID", help="Reject a draft")
    actions.add_argument("--posted", type=int, metavar="ID", help="Mark a draft or approved post as posted")
    actions.add_argument("--reset", action="store_true",
                         help="Delete all posts and mark every article unprocessed")

    parser.add_argument("--category", help="Only review drafts of this category")
    parser.add_argument("--limit", type=int, default=10, help="Number of drafts to review or export")
    return parser, parser.parse_args(argv)


def print_summary(summary: RunSummary):
    print("\n📊 Run summary:")
    print(f"   Candidates fetched:  {summary.fetched}")
    print(f"   New articles stored: {summary.new_articles}")
    print(f"   Drafts generated:    {summary.drafts_generated}")
    print(f"   Failures:            {summary.failures}")
    if summary.quota_exhausted:
        print("   Daily quota already reached")
    if summary.failed_sources:
        print(f"   Sources that failed: {', '.join(summary.failed_sources)}")
    print(f"   Total articles: {summary.total_articles}")
    print(f"   Total posts:    {summary.total_posts}")
    print(f"   Drafts ready:   {summary.total_drafts}")


def review(job: DailyJob, category=None, limit: int = 10):
    drafts = job.get_drafts_by_category(category) if category else job.get_drafts(limit)
    if not drafts:
        print("✅ No pending drafts to review.")
        print('Run "linkpost --fetch" to generate new posts from RSS feeds.')
        return

    print(f"Found {len(drafts)} drafts waiting for review:\n")
    for draft in drafts:
        print(f"--- [ Draft #{draft.post.id} | {draft.category} ] ---")
        print(f"📄 Title: {draft.title}")
        print(f"🔗 URL:   {draft.link}")
        print("------------------------------")
        print(draft.post.content)
        print("------------------------------\n")
    print("👉 Use --approve ID, --reject ID or --posted ID to update a draft.")


def show_stats(job: DailyJob):
    stats = job.get_stats()
    print("\n📊 Statistics:")
    print(f"- 📰 Articles stored:  {stats['articles']} ({stats['unprocessed']} unprocessed)")
    print(f"- 📥 Drafts pending:   {stats['drafts']}")
    print(f"- 👍 Approved:         {stats['approved']}")
    print(f"- 🚀 Posted:           {stats['posted']}")
    print(f"- 🗑️  Rejected:         {stats['rejected']}")
    print(f"- 📅 Generated today:  {stats['today']}")


async def async_main(argv=None) -> int:
    """
    Main entry point for the application.
    """
    load_dotenv()
    parser, args = parse_args(argv)
    setup_logging(args.verbose)

    try:
        settings = load_settings(args.config)
        job = DailyJob.from_settings(settings, show_progress=args.fetch)
    except ConfigError as e:
        logger.error("Invalid configuration: %s", e)
        return 2
    except StorageError as e:
        logger.error("%s", e)
        return 1

    try:
        if args.fetch:
            logger.info("Manually triggering fetch and generate cycle")
            print_summary(await job.run())
            return 0

        if args.schedule:
            scheduler = DailyScheduler(settings, job.run)
            await scheduler.serve()
            return 0

        if args.review:
            review(job, args.category, args.limit)
            return 0

        if args.stats:
            show_stats(job)
            return 0

        if args.export or args.export_md:
            drafts = job.get_drafts(args.limit)
            if not drafts:
                print("No drafts to export.")
                return 0
            exporter = DraftExporter(settings.drafts_path)
            path = exporter.export_json(drafts) if args.export else exporter.export_markdown(drafts)
            print(f"✅ Exported {len(drafts)} drafts to {path}")
            return 0

        for flag, status in (("approve", PostStatus.APPROVED), ("reject", PostStatus.REJECTED),
                             ("posted", PostStatus.POSTED)):
            post_id = getattr(args, flag)
            if post_id is not None:
                try:
                    post = job.transition_status(post_id, status)
                except (PostNotFoundError, InvalidTransitionError) as e:
                    print(f"❌ {e}")
                    return 1
                print(f"✅ Post {post.id} is now {post.status.value}")
                return 0

        if args.reset:
            removed = job.posts.delete_all()
            reset = job.articles.reset_processing()
            print(f"🧹 Deleted {removed} posts, reset {reset} articles")
            return 0

        parser.print_help()
        return 0
    finally:
        await job.close()


def main():
    """
    Entry point for the command-line script.
    """
    try:
        return asyncio.run(async_main())
    except KeyboardInterrupt:
        logger.info("Process interrupted by user")
        return 1
    except Exception as e:
        logger.exception(f"An error occurred: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
