"""
Draft export to JSON and Markdown files.
"""
import json
import logging
import os
from datetime import date
from typing import List, Optional

from linkpost.core.article import DraftView

logger = logging.getLogger(__name__)


class DraftExporter:
    """
    Writes pending drafts to dated files for review outside the tool.
    """
    def __init__(self, output_dir: str):
        self.output_dir = output_dir

    def _path(self, extension: str, day: Optional[date] = None) -> str:
        day = day or date.today()
        os.makedirs(self.output_dir, exist_ok=True)
        return os.path.join(self.output_dir, f"drafts_{day.isoformat()}.{extension}")

    def format_markdown(self, drafts: List[DraftView]) -> str:
        """
        Format drafts as a Markdown document, one section per post.
        """
        lines = ["# LinkedIn Drafts", ""]
        for index, draft in enumerate(drafts, 1):
            lines.append(f"## Post {index}")
            lines.append("")
            lines.append(f"**Source:** [{draft.title}]({draft.link}) ({draft.source}, {draft.category})")
            lines.append("")
            lines.append("```")
            lines.append(draft.post.content)
            lines.append("```")
            lines.append("")
            if draft.post.infographic_path:
                lines.append(f"Infographic: {draft.post.infographic_path}")
                lines.append("")
            lines.append("---")
            lines.append("")
        return "\n".join(lines)

    def export_json(self, drafts: List[DraftView], day: Optional[date] = None) -> str:
        """
        Returns:
            Path of the written file
        """
        path = self._path("json", day)
        with open(path, "w", encoding="utf-8") as f:
            json.dump([draft.to_dict() for draft in drafts], f, indent=2, ensure_ascii=False)
        logger.info("Exported %d drafts to %s", len(drafts), path)
        return path

    def export_markdown(self, drafts: List[DraftView], day: Optional[date] = None) -> str:
        """
        Returns:
            Path of the written file
        """
        path = self._path("md", day)
        with open(path, "w", encoding="utf-8") as f:
            f.write(self.format_markdown(drafts))
        logger.info("Exported %d drafts to %s", len(drafts), path)
        return path
