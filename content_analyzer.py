"""
Content analysis module for the SEO analysis engine
"""
import re
import logging
from typing import Optional

from bs4 import BeautifulSoup
from textstat import flesch_reading_ease

from models import AnalysisResult
from utils import round_half_up

logger = logging.getLogger(__name__)

# Counting patterns. These define the scoring contract, so they stay regex
# based rather than parser based.
HEADING_PATTERNS = {
    level: re.compile(r"<h%d[^>]*>" % level, re.IGNORECASE) for level in (1, 2, 3, 4)
}
IMAGE_PATTERN = re.compile(r"<img[^>]*>", re.IGNORECASE)
IMAGE_WITH_ALT_PATTERN = re.compile(r"<img[^>]*alt=[\"'][^\"']+[\"'][^>]*>", re.IGNORECASE)
INTERNAL_LINK_PATTERN = re.compile(r"<a[^>]*href=[\"']/[^\"']*[\"'][^>]*>", re.IGNORECASE)
LINK_PATTERN = re.compile(r"<a[^>]*href=[\"'][^\"']+[\"'][^>]*>", re.IGNORECASE)
LINK_TARGET_PATTERN = re.compile(r"<a[^>]*href=[\"']([^\"']+)[\"'][^>]*>", re.IGNORECASE)
ANCHOR_PATTERN = re.compile(r"<a[^>]*>([^<]+)</a>", re.IGNORECASE)

SENTENCE_SPLIT = re.compile(r"[.!?]+")
PARAGRAPH_SPLIT = re.compile(r"\n\n+")

BLOCK_TAGS = ["p", "div", "h1", "h2", "h3", "h4", "h5", "h6", "li", "blockquote",
              "pre", "table", "tr", "ul", "ol", "figure", "section", "article"]


def strip_markup(html: Optional[str]) -> str:
    """Convert marked-up body text to plain text, keeping paragraph breaks"""
    if not html:
        return ""

    soup = BeautifulSoup(html, "html.parser")

    # Remove script and style elements
    for element in soup(["script", "style"]):
        element.decompose()

    for br in soup.find_all("br"):
        br.replace_with("\n")
    for block in soup.find_all(BLOCK_TAGS):
        block.insert_after("\n\n")

    text = soup.get_text()

    # Collapse whitespace inside paragraphs, keep one blank line between them
    paragraphs = (" ".join(chunk.split()) for chunk in re.split(r"\n\s*\n", text))
    return "\n\n".join(p for p in paragraphs if p)


def count_words(plain_text: str) -> int:
    return len(plain_text.split()) if plain_text else 0


def count_keyword(plain_text: str, focus_keyword: Optional[str]) -> int:
    """Case-insensitive, non-overlapping substring occurrences"""
    if not plain_text or not focus_keyword:
        return 0
    return plain_text.lower().count(focus_keyword.lower())


def extract_link_targets(html: Optional[str]):
    """Return every href value in document order"""
    if not html:
        return []
    return LINK_TARGET_PATTERN.findall(html)


def extract_anchor_tags(html: Optional[str]):
    """Return every whole <a ...>text</a> element, markup included"""
    if not html:
        return []
    return [match.group(0) for match in ANCHOR_PATTERN.finditer(html)]


class ContentAnalyzer:
    """Turns plain and marked-up content into structural statistics"""

    def analyze(self, plain_text: Optional[str], html: Optional[str],
                focus_keyword: Optional[str] = None) -> AnalysisResult:
        """Analyze content structure. Never raises on malformed input."""
        plain_text = plain_text or ""
        html = html or ""
        focus_keyword = (focus_keyword or "").strip() or None

        word_count = count_words(plain_text)
        sentence_count = len([s for s in SENTENCE_SPLIT.split(plain_text) if s.strip()])
        paragraphs = [p for p in PARAGRAPH_SPLIT.split(plain_text) if p.strip()]
        paragraph_count = max(len(paragraphs), 1) if plain_text.strip() else 0
        avg_words = int(round_half_up(word_count / sentence_count)) if sentence_count > 0 else 0

        images_total = len(IMAGE_PATTERN.findall(html))
        images_with_alt = len(IMAGE_WITH_ALT_PATTERN.findall(html))
        internal_links = len(INTERNAL_LINK_PATTERN.findall(html))
        all_links = len(LINK_PATTERN.findall(html))

        keyword_count = 0
        keyword_density = 0.0
        if focus_keyword and word_count > 0:
            keyword_count = count_keyword(plain_text, focus_keyword)
            keyword_density = round_half_up((keyword_count / word_count) * 100, 2)

        result = AnalysisResult(
            word_count=word_count,
            sentence_count=sentence_count,
            paragraph_count=paragraph_count,
            avg_words_per_sentence=avg_words,
            h1_count=len(HEADING_PATTERNS[1].findall(html)),
            h2_count=len(HEADING_PATTERNS[2].findall(html)),
            h3_count=len(HEADING_PATTERNS[3].findall(html)),
            h4_count=len(HEADING_PATTERNS[4].findall(html)),
            images_total=images_total,
            images_with_alt=images_with_alt,
            images_without_alt=images_total - images_with_alt,
            internal_links=internal_links,
            external_links=max(0, all_links - internal_links),
            keyword_density=keyword_density,
            focus_keyword=focus_keyword,
            focus_keyword_count=keyword_count,
            reading_ease=self._calculate_reading_ease(plain_text, word_count),
        )

        logger.debug(f"Analyzed {word_count} words, {internal_links} internal links, "
                     f"{images_total} images")
        return result

    def _calculate_reading_ease(self, plain_text: str, word_count: int) -> float:
        """Flesch reading ease, informational only"""
        if word_count == 0:
            return 0.0
        try:
            return round(float(flesch_reading_ease(plain_text)), 2)
        except Exception as e:
            # textstat may need corpus data that is not installed
            logger.debug(f"Reading ease unavailable: {e}")
            return 0.0
