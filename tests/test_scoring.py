"""
Tests for the scoring engine
"""
import pytest

from models import ContentItem, AnalysisResult, SubScores
from scoring import (
    ScoringEngine, WEIGHTS, NEUTRAL_KEYWORD_SCORE, score_band, weighted_overall
)


def long_body(paragraphs=8, words_per_paragraph=200, keyword="python", per_paragraph=3):
    chunks = []
    for _ in range(paragraphs):
        words = [keyword] * per_paragraph + ["alpha"] * (words_per_paragraph - per_paragraph)
        chunks.append("<p>" + " ".join(words) + "</p>")
    return "".join(chunks)


class TestWeights:
    """Tests for weights and the overall score"""

    def test_weights_sum_to_one(self):
        """Test the nine weights add up to 1.00"""
        assert len(WEIGHTS) == 9
        assert sum(WEIGHTS.values()) == pytest.approx(1.0)

    @pytest.mark.parametrize("values,expected", [
        ([100] * 9, 100),
        ([0] * 9, 0),
        ([50] * 9, 50),
        ([100, 0, 100, 0, 100, 0, 100, 0, 100], 63),
    ])
    def test_weighted_overall(self, values, expected):
        """Test overall score is the rounded weighted sum"""
        assert weighted_overall(SubScores(*values)) == expected

    def test_overall_always_in_range(self):
        """Test overall score stays in [0, 100] for mixed subscores"""
        for i in range(0, 101, 10):
            values = [(i + 13 * n) % 101 for n in range(9)]
            assert 0 <= weighted_overall(SubScores(*values)) <= 100

    @pytest.mark.parametrize("score,band", [
        (100, 'excellent'), (80, 'excellent'), (79, 'good'), (60, 'good'),
        (59, 'needs-improvement'), (40, 'needs-improvement'), (39, 'poor'), (0, 'poor'),
    ])
    def test_score_band(self, score, band):
        """Test band boundaries"""
        assert score_band(score) == band


class TestRubrics:
    """Tests for the individual rubrics"""

    def setup_method(self):
        self.engine = ScoringEngine()

    def test_title_full_marks(self):
        """Test an ideal title with leading keyword, number and power word"""
        title = ("Python packaging best guide 2024 " + "y" * 40)[:55]
        assert self.engine.score_title(title, None, "python packaging") == 100

    def test_title_one_character_no_keyword(self):
        """Test a one character title lands in the lowest band"""
        score = self.engine.score_title("A", None, None)
        assert score == 35
        assert score_band(score) == 'poor'

    def test_title_prefers_meta_title(self):
        """Test meta title is scored instead of the title when present"""
        assert self.engine.score_title("A", "", None) == self.engine.score_title("A", None, None)
        assert self.engine.score_title("", "B", None) == 35

    def test_title_empty(self):
        """Test empty title scores zero"""
        assert self.engine.score_title("", None, "python") == 0

    def test_meta_description_full_marks(self):
        """Test ideal meta description"""
        desc = ("Learn more about python packaging " + "x" * 200)[:154] + "."
        assert len(desc) == 155
        assert self.engine.score_meta_description(desc, None, "python packaging") == 100

    def test_meta_description_falls_back_to_excerpt(self):
        """Test the excerpt is used when meta description is missing"""
        assert self.engine.score_meta_description(None, "Short excerpt.", None) == 30
        assert self.engine.score_meta_description(None, None, None) == 0

    def test_content_scenario_top_band(self):
        """Test 1600 words at 1.5% density with early keyword scores excellent"""
        item = ContentItem(id=1, title="Python", body=long_body())
        snapshot = self.engine.score(item, "python")
        assert snapshot.analysis.word_count == 1600
        assert snapshot.analysis.focus_keyword_count == 24
        assert snapshot.analysis.keyword_density == pytest.approx(1.5)
        assert snapshot.scores.content >= 85
        assert score_band(snapshot.scores.content) == 'excellent'

    def test_content_without_keyword(self):
        """Test content rubric gives keyword credit when no keyword is set"""
        assert self.engine.score_content("", None) == 30
        assert self.engine.score_content("", "python") == 0

    def test_heading_scenario(self):
        """Test one H1, four H2s and two H3s gets every heading rule"""
        analysis = AnalysisResult(h1_count=1, h2_count=4, h3_count=2)
        score = self.engine.score_headings(analysis)
        assert score == 100
        assert score_band(score) == 'excellent'

    def test_heading_no_headings(self):
        """Test a body without headings only gets the implicit H1 credit"""
        assert self.engine.score_headings(AnalysisResult()) == 15

    def test_keyword_neutral_without_focus_keyword(self):
        """Test keyword subscore is the neutral value with no keyword"""
        assert self.engine.score_keyword("any text at all", None) == NEUTRAL_KEYWORD_SCORE
        assert self.engine.score_keyword("", "") == NEUTRAL_KEYWORD_SCORE

    def test_keyword_density_window(self):
        """Test presence, density and repetition bonuses"""
        text = " ".join(["python"] * 2 + ["alpha"] * 98)
        assert self.engine.score_keyword(text, "python") == 70

    def test_keyword_multi_term_coverage(self):
        """Test all terms of a multi word keyword add coverage credit"""
        text = " ".join(["python packaging"] * 2 + ["alpha"] * 96)
        # count 2, density 2% -> 20 + 40 + 10, plus full term coverage
        assert self.engine.score_keyword(text, "python packaging") == 90

    def test_keyword_absent(self):
        """Test a keyword missing from the text scores zero"""
        assert self.engine.score_keyword("alpha beta gamma", "python") == 0

    def test_readability_full_marks(self):
        """Test ideal sentence length, paragraphs and length"""
        analysis = AnalysisResult(avg_words_per_sentence=15, paragraph_count=5, word_count=600)
        assert self.engine.score_readability(analysis) == 100

    def test_internal_links(self):
        """Test internal link count and anchor variety"""
        html = '<a href="/a">One</a><a href="/b">Two</a><a href="/c">Three</a>'
        assert self.engine.score_internal_links(html, 3) == 100
        assert self.engine.score_internal_links("", 0) == 20

    def test_internal_link_variety_counts_whole_anchors(self):
        """Test links sharing anchor text but pointing elsewhere still count as varied"""
        html = '<a href="/a">Read</a><a href="/b">Read</a>'
        assert self.engine.score_internal_links(html, 2) == 80

        duplicate = '<a href="/a">Read</a><a href="/a">read</a>'
        assert self.engine.score_internal_links(duplicate, 2) == 60

    def test_images(self):
        """Test cover image, inline images and alt coverage"""
        full = AnalysisResult(images_total=3, images_with_alt=3, images_without_alt=0)
        assert self.engine.score_images("cover.jpg", full) == 100
        assert self.engine.score_images(None, AnalysisResult()) == 0
        partial = AnalysisResult(images_total=3, images_with_alt=2, images_without_alt=1)
        assert self.engine.score_images(None, partial) == 50

    def test_technical(self):
        """Test slug shape, canonical and category"""
        assert self.engine.score_technical("python-packaging-guide", "https://x.com/a", True) == 100
        assert self.engine.score_technical("python-packaging-guide", None, False) == 65
        assert self.engine.score_technical("", None, False) == 15


class TestScoringEngine:
    """Tests for full scoring runs"""

    def setup_method(self):
        self.engine = ScoringEngine()

    def test_no_keyword_neutral_subscore(self):
        """Test items without any focus keyword get the neutral keyword score"""
        item = ContentItem(id=3, title="Something", body=long_body(paragraphs=2))
        snapshot = self.engine.score(item)
        assert snapshot.scores.keyword == NEUTRAL_KEYWORD_SCORE
        assert snapshot.analysis.focus_keyword is None

    def test_stored_keyword_used_and_overridden(self):
        """Test the item's own keyword is used unless one is passed"""
        item = ContentItem(id=4, title="Python tips", body=long_body(paragraphs=2),
                           focus_keyword="python")
        assert self.engine.score(item).analysis.focus_keyword == "python"
        assert self.engine.score(item, "alpha").analysis.focus_keyword == "alpha"

    def test_deterministic(self):
        """Test scoring the same item twice gives identical snapshots"""
        item = ContentItem(id=5, title="Python packaging guide", slug="python-packaging",
                           body=long_body(paragraphs=3), cover_image="c.jpg")
        first = self.engine.score(item, "python", checked_at="2024-01-01T00:00:00")
        second = self.engine.score(item, "python", checked_at="2024-01-01T00:00:00")
        assert first == second
        assert first.to_dict() == second.to_dict()

    def test_overall_matches_weights(self):
        """Test overall score is derived from the subscores"""
        item = ContentItem(id=6, title="Python packaging guide", body=long_body(paragraphs=4))
        snapshot = self.engine.score(item, "python")
        assert snapshot.overall_score == weighted_overall(snapshot.scores)
        assert 0 <= snapshot.overall_score <= 100

    def test_title_scenario_suggestion(self):
        """Test a one character title yields an error/high title suggestion"""
        snapshot = self.engine.score(ContentItem(id=7, title="A"))
        assert snapshot.scores.title == 35
        assert any(s.type == 'error' and s.category == 'title' and s.priority == 'high'
                   for s in snapshot.suggestions)

    def test_empty_item_does_not_raise(self):
        """Test an item with nothing but an id scores without errors"""
        snapshot = self.engine.score(ContentItem(id=8, title=""))
        assert snapshot.scores.title == 0
        assert snapshot.analysis.word_count == 0
        assert 0 <= snapshot.overall_score <= 100


class TestSuggestions:
    """Tests for suggestion rules"""

    def setup_method(self):
        self.engine = ScoringEngine()

    def _suggestions(self, item, keyword=None):
        return self.engine.score(item, keyword).suggestions

    def _has(self, suggestions, type_, category, priority):
        return any(s.type == type_ and s.category == category and s.priority == priority
                   for s in suggestions)

    def test_good_title_length_success(self):
        """Test a title in the window gets a success entry"""
        item = ContentItem(id=1, title="A reasonably sized title for a blog post")
        assert self._has(self._suggestions(item), 'success', 'title', 'low')

    def test_keyword_missing_from_title(self):
        """Test a focus keyword absent from the title is an error"""
        item = ContentItem(id=1, title="A reasonably sized title for a blog post", body=long_body(2))
        assert self._has(self._suggestions(item, "python"), 'error', 'title', 'high')

    def test_missing_cover_image_and_h2(self):
        """Test missing cover image and missing H2 headings are flagged"""
        suggestions = self._suggestions(ContentItem(id=1, title="Title", body="<p>text</p>"))
        assert self._has(suggestions, 'error', 'image', 'high')
        assert self._has(suggestions, 'warning', 'heading', 'medium')
        assert self._has(suggestions, 'warning', 'links', 'medium')
        assert self._has(suggestions, 'error', 'content', 'high')

    def test_images_without_alt(self):
        """Test inline images without alt text are flagged"""
        item = ContentItem(id=1, title="Title", cover_image="c.jpg",
                           body='<p>text</p><img src="a.jpg">')
        assert self._has(self._suggestions(item), 'warning', 'image', 'medium')

    def test_keyword_absent_from_content(self):
        """Test zero density is an error"""
        item = ContentItem(id=1, title="python", body="<p>alpha beta</p>")
        assert self._has(self._suggestions(item, "python"), 'error', 'keyword', 'high')

    def test_keyword_stuffing(self):
        """Test density above the upper bound warns about stuffing"""
        item = ContentItem(id=1, title="python", body=long_body(paragraphs=1, per_paragraph=20))
        assert self._has(self._suggestions(item, "python"), 'warning', 'keyword', 'medium')

    def test_keyword_density_low(self):
        """Test density below the lower bound is informational"""
        item = ContentItem(id=1, title="python", body=long_body(paragraphs=2, per_paragraph=0) + "<p>python</p>")
        assert self._has(self._suggestions(item, "python"), 'info', 'keyword', 'low')

    def test_long_sentences(self):
        """Test long average sentence length warns"""
        item = ContentItem(id=1, title="Title", body="<p>" + " ".join(["word"] * 40) + ".</p>")
        assert self._has(self._suggestions(item), 'warning', 'readability', 'low')
