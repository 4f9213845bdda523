"""
SEO scoring engine: nine weighted rubrics plus rule-based suggestions
"""
import logging
from dataclasses import asdict
from datetime import datetime
from typing import List, Optional

from content_analyzer import ContentAnalyzer, strip_markup, count_keyword, extract_anchor_tags
from models import ContentItem, AnalysisResult, SubScores, Suggestion, ScoreSnapshot
from utils import round_half_up

logger = logging.getLogger(__name__)

WEIGHTS = {
    'title': 0.15,
    'meta_description': 0.10,
    'content': 0.20,
    'heading': 0.10,
    'keyword': 0.15,
    'readability': 0.10,
    'internal_link': 0.08,
    'image': 0.07,
    'technical': 0.05,
}

# Keyword subscore when no focus keyword is set
NEUTRAL_KEYWORD_SCORE = 50

POWER_WORDS = ['how to', 'guide', 'tips', 'top', 'best', 'review', 'vs', 'latest', 'ultimate']
CTA_WORDS = ['learn more', 'discover', 'find out', 'click', 'read more', 'see how', 'details']

# Suggestion thresholds
TITLE_MIN_LENGTH = 30
TITLE_MAX_LENGTH = 70
META_MIN_LENGTH = 50
META_MAX_LENGTH = 160
CONTENT_MIN_WORDS = 300
CONTENT_TARGET_WORDS = 1000
DENSITY_LOW = 0.5
DENSITY_HIGH = 3
SENTENCE_MAX_WORDS = 25

SCORE_BANDS = [
    (80, 'excellent'),
    (60, 'good'),
    (40, 'needs-improvement'),
    (0, 'poor'),
]


def score_band(score: int) -> str:
    """Map a 0-100 score to its named band"""
    for floor, name in SCORE_BANDS:
        if score >= floor:
            return name
    return 'poor'


def weighted_overall(scores: SubScores) -> int:
    total = sum(value * WEIGHTS[name] for name, value in asdict(scores).items())
    return int(round_half_up(total))


def _clamp(score: int) -> int:
    return max(0, min(100, score))


class ScoringEngine:
    """Deterministic multi-rubric scorer for content items"""

    def __init__(self, analyzer: ContentAnalyzer = None):
        self.analyzer = analyzer or ContentAnalyzer()

    def score(self, item: ContentItem, focus_keyword: Optional[str] = None,
              checked_at: Optional[str] = None) -> ScoreSnapshot:
        """Score a content item. An explicit focus keyword overrides the stored one."""
        keyword = (focus_keyword or item.focus_keyword or '').strip() or None
        html = item.body or ''
        plain = strip_markup(html)

        analysis = self.analyzer.analyze(plain, html, keyword)

        scores = SubScores(
            title=self.score_title(item.title, item.meta_title, keyword),
            meta_description=self.score_meta_description(item.meta_description, item.excerpt, keyword),
            content=self.score_content(plain, keyword),
            heading=self.score_headings(analysis),
            keyword=self.score_keyword(plain, keyword),
            readability=self.score_readability(analysis),
            internal_link=self.score_internal_links(html, analysis.internal_links),
            image=self.score_images(item.cover_image, analysis),
            technical=self.score_technical(item.slug, item.canonical_url, item.category_id is not None),
        )

        suggestions = self.generate_suggestions(item, analysis, keyword)

        return ScoreSnapshot(
            content_id=item.id,
            overall_score=weighted_overall(scores),
            scores=scores,
            analysis=analysis,
            suggestions=suggestions,
            checked_at=checked_at or datetime.now().isoformat(),
        )

    # Rubrics

    def score_title(self, title: Optional[str], meta_title: Optional[str] = None,
                    focus_keyword: Optional[str] = None) -> int:
        """Length window 50-60 chars, keyword presence and position, CTR hints"""
        text = meta_title or title or ''
        if not text:
            return 0

        score = 0
        length = len(text)
        lowered = text.lower()

        if 50 <= length <= 60:
            score += 40
        elif 40 <= length <= 70:
            score += 30
        else:
            score += 15

        if focus_keyword and focus_keyword.lower() in lowered:
            score += 30
            if lowered.startswith(focus_keyword.lower()):
                score += 10
        elif not focus_keyword:
            score += 20

        if length >= 30:
            score += 10

        if any(ch.isdigit() for ch in text):
            score += 5

        if any(word in lowered for word in POWER_WORDS):
            score += 5

        return _clamp(score)

    def score_meta_description(self, meta_description: Optional[str], excerpt: Optional[str] = None,
                               focus_keyword: Optional[str] = None) -> int:
        """Length window 150-160 chars, keyword, call to action, complete sentence"""
        desc = meta_description or excerpt or ''
        if not desc:
            return 0

        score = 0
        length = len(desc)
        lowered = desc.lower()

        if 150 <= length <= 160:
            score += 40
        elif 120 <= length <= 180:
            score += 30
        elif length > 50:
            score += 15

        if focus_keyword and focus_keyword.lower() in lowered:
            score += 30
        elif not focus_keyword:
            score += 15

        if any(word in lowered for word in CTA_WORDS):
            score += 15

        if desc.endswith(('.', '!', '?')):
            score += 15

        return _clamp(score)

    def score_content(self, plain_text: str, focus_keyword: Optional[str] = None) -> int:
        """Word count, keyword density and placement, paragraph variety"""
        words = plain_text.split()
        word_count = len(words)
        score = 0

        if 1500 <= word_count <= 2500:
            score += 40
        elif word_count >= 1000:
            score += 35
        elif word_count >= 500:
            score += 25
        elif word_count >= 300:
            score += 15

        if focus_keyword:
            if word_count > 0:
                density = (count_keyword(plain_text, focus_keyword) / word_count) * 100
                if 0.5 <= density <= 2.5:
                    score += 30
                elif density > 0:
                    score += 15

                first_100 = ' '.join(words[:100]).lower()
                if focus_keyword.lower() in first_100:
                    score += 15
        else:
            score += 30

        paragraphs = [p for p in plain_text.split('\n\n') if p.strip()]
        if len(paragraphs) >= 5:
            score += 15
        elif len(paragraphs) >= 3:
            score += 10

        return _clamp(score)

    def score_headings(self, analysis: AnalysisResult) -> int:
        """One H1, a handful of H2s, some H3s, sane hierarchy"""
        score = 0

        if analysis.h1_count == 1:
            score += 20
        elif analysis.h1_count == 0:
            # the page template usually renders the title as H1
            score += 15

        if 2 <= analysis.h2_count <= 8:
            score += 40
        elif analysis.h2_count > 0:
            score += 25

        if analysis.h3_count > 0:
            score += 20

        if analysis.h2_count > 0 and analysis.h3_count <= analysis.h2_count * 3:
            score += 20
        elif analysis.h2_count > 0:
            score += 10

        return _clamp(score)

    def score_keyword(self, plain_text: str, focus_keyword: Optional[str] = None) -> int:
        """Keyword presence, density window, repetition and term coverage"""
        if not focus_keyword:
            return NEUTRAL_KEYWORD_SCORE

        word_count = len(plain_text.split())
        lowered = plain_text.lower()
        count = count_keyword(plain_text, focus_keyword)
        density = (count / word_count) * 100 if word_count > 0 else 0

        score = 0
        if count > 0:
            score += 20

        if 1 <= density <= 2.5:
            score += 40
        elif 0.5 <= density <= 3:
            score += 30
        elif density > 0:
            score += 15

        if 3 <= count <= 10:
            score += 20
        elif count > 0:
            score += 10

        terms = focus_keyword.split()
        if len(terms) > 1:
            present = [t for t in terms if t.lower() in lowered]
            if len(present) == len(terms):
                score += 20
            elif present:
                score += 10

        return _clamp(score)

    def score_readability(self, analysis: AnalysisResult) -> int:
        """Sentence length, paragraph breaks, enough body to read"""
        score = 0
        avg = analysis.avg_words_per_sentence

        if 12 <= avg <= 20:
            score += 50
        elif 10 <= avg <= 25:
            score += 35
        elif avg > 0:
            score += 20

        if analysis.paragraph_count >= 5:
            score += 25
        elif analysis.paragraph_count >= 3:
            score += 15

        if analysis.word_count >= 500:
            score += 25
        elif analysis.word_count >= 300:
            score += 15

        return _clamp(score)

    def score_internal_links(self, html: str, internal_count: int) -> int:
        """Internal link count window and anchor text variety"""
        score = 0

        if internal_count >= 3:
            score += 50
        elif internal_count >= 1:
            score += 30

        if 2 <= internal_count <= 10:
            score += 30
        elif 0 < internal_count < 20:
            score += 20

        # Two links count as varied when their href or text differs
        unique_anchors = {anchor.lower() for anchor in extract_anchor_tags(html)}
        if len(unique_anchors) >= min(internal_count, 3):
            score += 20

        return _clamp(score)

    def score_images(self, cover_image: Optional[str], analysis: AnalysisResult) -> int:
        """Primary image, inline images, alt text coverage"""
        score = 0

        if cover_image:
            score += 30

        if analysis.images_total >= 1:
            score += 20
        if analysis.images_total >= 3:
            score += 10

        if analysis.images_total > 0 and analysis.images_without_alt == 0:
            score += 40
        elif analysis.images_with_alt > analysis.images_without_alt:
            score += 20

        return _clamp(score)

    def score_technical(self, slug: Optional[str], canonical_url: Optional[str],
                        has_category: bool) -> int:
        """Slug shape, canonical URL, category placement"""
        score = 0

        if slug:
            score += 25
            if 2 <= len(slug.split('-')) <= 6:
                score += 25

        score += 25 if canonical_url else 15

        if has_category:
            score += 25

        return _clamp(score)

    # Suggestions

    def generate_suggestions(self, item: ContentItem, analysis: AnalysisResult,
                             focus_keyword: Optional[str] = None) -> List[Suggestion]:
        """Independent rules, each emitting at most one suggestion"""
        suggestions = []
        title = item.meta_title or item.title or ''
        title_length = len(title)

        if title_length < TITLE_MIN_LENGTH:
            suggestions.append(Suggestion('error', 'title',
                                          'Title is too short. Aim for 50-60 characters.', 'high'))
        elif title_length > TITLE_MAX_LENGTH:
            suggestions.append(Suggestion('warning', 'title',
                                          'Title may be truncated in search results. Keep it under 60 characters.',
                                          'medium'))
        else:
            suggestions.append(Suggestion('success', 'title', 'Title length is good.', 'low'))

        if focus_keyword and focus_keyword.lower() not in title.lower():
            suggestions.append(Suggestion('error', 'title',
                                          f'Focus keyword "{focus_keyword}" is missing from the title.', 'high'))

        desc_length = len(item.meta_description or item.excerpt or '')
        if desc_length < META_MIN_LENGTH:
            suggestions.append(Suggestion('error', 'meta',
                                          'Meta description is missing or too short. Write 150-160 characters.',
                                          'high'))
        elif desc_length > META_MAX_LENGTH:
            suggestions.append(Suggestion('warning', 'meta',
                                          'Meta description may be truncated. Keep it under 160 characters.',
                                          'medium'))

        words = analysis.word_count
        if words < CONTENT_MIN_WORDS:
            suggestions.append(Suggestion('error', 'content',
                                          f'Content is too short ({words} words). Write at least 1000 words.',
                                          'high'))
        elif words < CONTENT_TARGET_WORDS:
            suggestions.append(Suggestion('warning', 'content',
                                          f'Content is fairly short ({words} words). Consider expanding it.',
                                          'medium'))
        else:
            suggestions.append(Suggestion('success', 'content',
                                          f'Content length is good ({words} words).', 'low'))

        if analysis.h2_count == 0:
            suggestions.append(Suggestion('warning', 'heading',
                                          'No H2 headings. Split the content into sections with H2s.', 'medium'))

        if not item.cover_image:
            suggestions.append(Suggestion('error', 'image', 'No featured image set.', 'high'))

        if analysis.images_without_alt > 0:
            suggestions.append(Suggestion('warning', 'image',
                                          f'{analysis.images_without_alt} image(s) missing alt text.', 'medium'))

        if analysis.internal_links == 0:
            suggestions.append(Suggestion('warning', 'links',
                                          'No internal links. Add 2-3 links to related content.', 'medium'))

        if focus_keyword:
            density = analysis.keyword_density
            if density == 0:
                suggestions.append(Suggestion('error', 'keyword',
                                              f'Focus keyword "{focus_keyword}" does not appear in the content.',
                                              'high'))
            elif density > DENSITY_HIGH:
                suggestions.append(Suggestion('warning', 'keyword',
                                              f'Keyword density is high ({density}%). This may read as keyword stuffing.',
                                              'medium'))
            elif density < DENSITY_LOW:
                suggestions.append(Suggestion('info', 'keyword',
                                              f'Keyword density is low ({density}%). Consider using it more.',
                                              'low'))

        if analysis.avg_words_per_sentence > SENTENCE_MAX_WORDS:
            suggestions.append(Suggestion('warning', 'readability',
                                          'Sentences are long. Break them up for easier reading.', 'low'))

        return suggestions
