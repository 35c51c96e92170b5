"""
Optional visual decoration of stored drafts.

Runs after a draft is persisted. Failures are logged and leave the draft as
it is.
"""
import asyncio
import html
import logging
from pathlib import Path
from typing import Optional, Tuple

import aiohttp
import async_timeout

from linkpost.config import Settings
from linkpost.core.article import Article, DraftPost
from linkpost.core.generator import category_key
from linkpost.utils.text import extract_key_points

logger = logging.getLogger(__name__)

THEMES = {
    "ai": ("#667eea", "#764ba2"),
    "tech": ("#11998e", "#38ef7d"),
    "science": ("#fc4a1a", "#f7b733"),
}

FOOTER_TAGS = {
    "ai": "#TechNews #Innovation #AI #ArtificialIntelligence",
    "tech": "#TechNews #Innovation #Technology #DigitalTransformation",
    "science": "#TechNews #Innovation #Science #Research",
}


def image_prompt(article: Article) -> str:
    return (
        f"Editorial illustration for a {category_key(article.category)} news story: "
        f"{article.title}. Clean, modern, professional, no text."
    )


def render_infographic(article: Article, key_points, image_url: Optional[str] = None) -> str:
    """
    Render a standalone infographic page for a post.
    """
    key = category_key(article.category)
    primary, secondary = THEMES[key]
    esc = html.escape

    points = "\n".join(
        f'      <li><span class="n">{i}</span>{esc(point)}</li>'
        for i, point in enumerate(key_points, 1)
    )
    image = (
        f'    <img class="illustration" src="{esc(image_url)}" alt="Generated illustration">\n'
        if image_url else ''
    )

    return f"""<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>{esc(article.title)}</title>
  <style>
    body {{ margin: 0; padding: 40px; font-family: -apple-system, "Segoe UI", Roboto, sans-serif;
           background: linear-gradient(135deg, {primary} 0%, {secondary} 100%); }}
    .card {{ max-width: 800px; margin: 0 auto; background: #fff; border-radius: 20px; overflow: hidden;
            box-shadow: 0 25px 50px rgba(0,0,0,0.3); }}
    .header {{ padding: 40px; color: #fff; text-align: center;
              background: linear-gradient(135deg, {primary} 0%, {secondary} 100%); }}
    .badge {{ display: inline-block; padding: 8px 20px; border-radius: 20px;
             background: rgba(255,255,255,0.2); font-weight: 600; letter-spacing: 1px; }}
    .content {{ padding: 40px; }}
    .illustration {{ width: 100%; border-radius: 12px; margin-bottom: 30px; }}
    ol {{ list-style: none; padding: 0; }}
    li {{ display: flex; gap: 16px; margin-bottom: 18px; line-height: 1.5; color: #333; }}
    .n {{ flex: 0 0 32px; height: 32px; border-radius: 50%; color: #fff; text-align: center;
         line-height: 32px; background: {primary}; }}
    .footer {{ padding: 30px 40px; background: #f8f9fa; text-align: center; }}
    .footer a {{ color: {primary}; font-weight: 600; text-decoration: none; }}
    .tags {{ margin-top: 12px; color: #666; }}
  </style>
</head>
<body>
  <div class="card">
    <div class="header">
      <div class="badge">{esc(key.upper())}</div>
      <h1>{esc(article.title)}</h1>
      <div>📰 Source: {esc(article.source)}</div>
    </div>
    <div class="content">
{image}      <h2>Key Takeaways</h2>
      <ol>
{points}
      </ol>
    </div>
    <div class="footer">
      <a href="{esc(article.link)}" target="_blank">🔗 Read Full Article</a>
      <div class="tags">{FOOTER_TAGS[key]}</div>
    </div>
  </div>
</body>
</html>
"""


class VisualEnricher:
    """
    Adds an AI illustration and an infographic page to a stored draft.
    """
    def __init__(self, settings: Settings):
        self.settings = settings
        self.images_dir = Path(settings.images_dir)
        self.infographics_dir = Path(settings.infographics_dir)
        self.image_url = f"{settings.summarizer_endpoint}/{settings.image_model}"
        self._session = None

    @property
    def session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession(
                headers={'Authorization': f'Bearer {self.settings.summarizer_token}'}
            )
        return self._session

    async def close(self):
        if self._session is not None:
            await self._session.close()
            self._session = None

    async def generate_image(self, article: Article, post_id: int) -> Optional[str]:
        """
        Request an illustration and save it as PNG.

        Returns:
            Path of the saved image, or None if no token is set or the call failed
        """
        if not self.settings.summarizer_token:
            return None
        try:
            async with async_timeout.timeout(self.settings.image_timeout):
                async with self.session.post(self.image_url, json={'inputs': image_prompt(article)}) as response:
                    response.raise_for_status()
                    if not response.content_type.startswith('image/'):
                        logger.warning("Image service returned %s, not an image", response.content_type)
                        return None
                    data = await response.read()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning("Image generation failed for post %s: %s", post_id, e or type(e).__name__)
            return None

        self.images_dir.mkdir(parents=True, exist_ok=True)
        path = self.images_dir / f"post_{post_id}.png"
        path.write_bytes(data)
        logger.info("AI image saved to %s", path)
        return str(path)

    def write_infographic(self, article: Article, post: DraftPost,
                          image_path: Optional[str] = None) -> str:
        self.infographics_dir.mkdir(parents=True, exist_ok=True)
        path = self.infographics_dir / f"infographic_{post.id}.html"
        image_src = None
        if image_path:
            image_src = Path(image_path).resolve().as_uri()
        page = render_infographic(article, extract_key_points(post.content, 5), image_src)
        path.write_text(page, encoding='utf-8')
        logger.info("Infographic written to %s", path)
        return str(path)

    async def enrich(self, article: Article, post: DraftPost) -> Tuple[Optional[str], Optional[str]]:
        """
        Produce visuals for a persisted draft.

        Returns:
            Tuple of (image path or None, infographic path or None)
        """
        image_path = await self.generate_image(article, post.id)
        try:
            infographic_path = self.write_infographic(article, post, image_path)
        except OSError as e:
            logger.warning("Could not write infographic for post %s: %s", post.id, e)
            infographic_path = None
        return image_path, infographic_path
