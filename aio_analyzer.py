import logging
import re
from typing import List, Optional, Sequence, Set

from bs4 import BeautifulSoup

from config import DEFAULT_LOCATION_KEYWORDS
from page_utils import (
    classify_links, content_tokens, count_words, extract_schema_types, meta_content,
    most_common, parse_markup, tokenize, visible_text,
)
from seo_types import AIOFindings, AIOMetrics, FetchedDocument, SubScore

logger = logging.getLogger(__name__)

QUESTION_WORDS = ("what", "why", "how", "when", "where", "who", "which")
CONVERSATIONAL_CONNECTIVES = (
    "however", "therefore", "for example", "in other words", "because",
    "first", "next", "finally", "in short", "let's", "here's",
)
FACTUAL_CUES = ("study", "data", "research", "survey", "statistics", "according to")
BUSINESS_WORDS = ("address", "phone", "contact", "directions", "opening hours", "call us")

ARTICLE_TYPES = {"Article", "NewsArticle", "BlogPosting", "TechArticle", "ScholarlyArticle"}
LOCAL_BUSINESS_TYPES = {"LocalBusiness", "Restaurant", "Store", "ProfessionalService", "MedicalBusiness"}

PHONE_RE = re.compile(r"(?:\+\d{1,3}[\s.-]?)?(?:\(\d{2,4}\)|\d{2,4})[\s.-]\d{3,4}[\s.-]\d{3,4}\b")
STREET_RE = re.compile(
    r"\b\d{1,5}\s+(?:[a-z]+\s+){1,3}(?:street|st|road|rd|avenue|ave|lane|ln|boulevard|blvd|drive|dr)\b", re.I
)
NUMBERED_TEXT_RE = re.compile(r"(?:^|\s)1[.)]\s+\S")

AUTHOR_CLASS_RE = re.compile(r"author|byline", re.I)
DATE_CLASS_RE = re.compile(r"date|published|posted", re.I)
UPDATED_CLASS_RE = re.compile(r"updated|modified", re.I)


def _contains_phrase(text: str, phrase: str) -> bool:
    return re.search(rf"\b{re.escape(phrase)}\b", text) is not None


class AIOAnalyzer:
    """Signals that make a page easy for AI answer engines to quote"""

    def __init__(self, location_keywords: Optional[Sequence[str]] = None):
        keywords = location_keywords if location_keywords is not None else DEFAULT_LOCATION_KEYWORDS
        self.location_keywords = tuple(k.lower() for k in keywords)

    def analyze(self, url: str, document: FetchedDocument) -> AIOFindings:
        soup = parse_markup(document.markup)
        text = visible_text(soup)
        lowered = text.lower()
        words = set(tokenize(text))
        schema_types, _ = extract_schema_types(soup)
        first_paragraph = self._first_paragraph(soup)
        list_items = len(soup.find_all("li"))

        question_types = tuple(w for w in QUESTION_WORDS if w in words)
        question_marks = text.count("?")

        # Content structure
        has_summary = 40 <= len(first_paragraph) <= 400
        section_count = len(soup.find_all(["h2", "h3"]))
        has_numbered = bool(soup.select("ol li")) or bool(NUMBERED_TEXT_RE.search(text))
        has_bulleted = bool(soup.select("ul li")) or "•" in text

        # Credibility
        _, external_links = classify_links(soup, url)
        has_author = self._has_author(soup)
        has_published = self._has_publish_date(soup, document.markup)
        has_updated = self._has_update_date(soup, document.markup)

        # Semantic keywords
        top = most_common(content_tokens(text, min_length=4), 10)
        primary_keyword = top[0][0] if top else ""
        related = tuple(word for word, count in top[1:] if count >= 2)
        total_words = count_words(text)
        semantic_density = sum(count for _, count in top) / total_words * 100 if total_words else 0.0

        # Local
        found_locations = tuple(k for k in self.location_keywords if _contains_phrase(lowered, k))
        has_business_info = any(_contains_phrase(lowered, w) for w in BUSINESS_WORDS)
        has_contact_pattern = (bool(PHONE_RE.search(text)) or bool(STREET_RE.search(text))
                               or soup.find("a", href=re.compile(r"^tel:", re.I)) is not None)

        # Readiness
        has_snippet_lead = 50 <= len(first_paragraph) <= 160
        connectives = [c for c in CONVERSATIONAL_CONNECTIVES if _contains_phrase(lowered, c)]
        has_conversational = len(connectives) >= 2
        has_factual = any(_contains_phrase(lowered, cue) for cue in FACTUAL_CUES)

        metrics = AIOMetrics(
            question_types=question_types,
            question_marks=question_marks,
            has_summary=has_summary,
            section_count=section_count,
            has_numbered_list=has_numbered,
            has_bulleted_list=has_bulleted,
            has_citations=bool(external_links),
            has_author=has_author,
            has_publish_date=has_published,
            has_update_date=has_updated,
            primary_keyword=primary_keyword,
            related_keywords=related,
            semantic_density=round(semantic_density, 2),
            schema_types=schema_types,
            location_keywords=found_locations,
            has_business_info=has_business_info,
            has_contact_pattern=has_contact_pattern,
            has_snippet_lead=has_snippet_lead,
            has_conversational_tone=has_conversational,
            list_item_count=list_items,
            has_factual_cues=has_factual,
        )

        return AIOFindings(
            question_answer=self._score_question_answer(question_types, question_marks),
            content_structure=self._score_structure(has_summary, section_count, has_numbered, has_bulleted),
            source_credibility=self._score_credibility(bool(external_links), has_author, has_published, has_updated),
            semantic_keywords=self._score_semantic(primary_keyword, related, semantic_density),
            schema_markup=self._score_schema(set(schema_types)),
            local_optimization=self._score_local(found_locations, has_business_info, has_contact_pattern),
            ai_readiness=self._score_readiness(has_snippet_lead, has_conversational, list_items, has_factual),
            metrics=metrics,
        )

    def _first_paragraph(self, soup: BeautifulSoup) -> str:
        for p in soup.find_all("p"):
            text = p.get_text(" ", strip=True)
            if text:
                return text
        return ""

    def _has_author(self, soup: BeautifulSoup) -> bool:
        if meta_content(soup, name="author"):
            return True
        if soup.find(attrs={"rel": "author"}) is not None:
            return True
        if soup.find(attrs={"itemprop": "author"}) is not None:
            return True
        return soup.find(class_=AUTHOR_CLASS_RE) is not None

    def _has_publish_date(self, soup: BeautifulSoup, markup: str) -> bool:
        if soup.find("time") is not None:
            return True
        if meta_content(soup, prop="article:published_time"):
            return True
        if soup.find(attrs={"itemprop": "datePublished"}) is not None or '"datePublished"' in markup:
            return True
        return soup.find(class_=DATE_CLASS_RE) is not None

    def _has_update_date(self, soup: BeautifulSoup, markup: str) -> bool:
        if meta_content(soup, prop="article:modified_time"):
            return True
        if soup.find(attrs={"itemprop": "dateModified"}) is not None or '"dateModified"' in markup:
            return True
        return soup.find(class_=UPDATED_CLASS_RE) is not None

    def _score_question_answer(self, question_types, question_marks: int) -> SubScore:
        score = 0
        issues: List[str] = []
        if question_types:
            score += 30
        else:
            issues.append("No question-style phrasing")
        if len(question_types) >= 3:
            score += 30
        elif question_types:
            issues.append(f"Only {len(question_types)} kinds of question covered")
        if question_marks:
            score += 40
        else:
            issues.append("No explicit questions in the text")
        recommendations = ("Add an FAQ section answering what/why/how questions",) if score < 60 else ()
        return SubScore(score, issues, recommendations)

    def _score_structure(self, has_summary: bool, sections: int, numbered: bool, bulleted: bool) -> SubScore:
        checks = (
            (has_summary, "Lead paragraph does not summarise the page"),
            (sections >= 2, f"Only {sections} H2/H3 sections"),
            (numbered, "No numbered list"),
            (bulleted, "No bulleted list"),
        )
        issues = [message for ok, message in checks if not ok]
        return SubScore(25 * sum(1 for ok, _ in checks if ok), issues)

    def _score_credibility(self, citations: bool, author: bool, published: bool, updated: bool) -> SubScore:
        checks = (
            (citations, "No outbound citations"),
            (author, "No author attribution"),
            (published, "No publish date"),
            (updated, "No last-updated date"),
        )
        issues = [message for ok, message in checks if not ok]
        recommendations = ("Show the author and publish/update dates near the headline",) if not (author and published) else ()
        return SubScore(25 * sum(1 for ok, _ in checks if ok), issues, recommendations)

    def _score_semantic(self, primary: str, related, density: float) -> SubScore:
        score = 0
        issues: List[str] = []
        if primary:
            score += 20
        else:
            issues.append("No topical keywords found")
        if len(related) >= 3:
            score += 30
        else:
            issues.append(f"Only {len(related)} related keywords")
        if 2 <= density <= 8:
            score += 50
        elif density < 2:
            issues.append(f"Topical vocabulary is unfocused ({density:.1f}%)")
        else:
            issues.append(f"Topical vocabulary is over-concentrated ({density:.1f}%)")
        return SubScore(score, issues)

    def _score_schema(self, types: Set[str]) -> SubScore:
        checks = (
            ("FAQPage" in types, "No FAQPage schema"),
            ("HowTo" in types, "No HowTo schema"),
            (bool(types & ARTICLE_TYPES), "No Article schema"),
            (bool(types & LOCAL_BUSINESS_TYPES), "No LocalBusiness schema"),
        )
        issues = [message for ok, message in checks if not ok]
        return SubScore(25 * sum(1 for ok, _ in checks if ok), issues)

    def _score_local(self, locations, business: bool, contact: bool) -> SubScore:
        score = 0
        issues: List[str] = []
        if locations:
            score += 30
        else:
            issues.append("No location keywords")
        if business:
            score += 35
        else:
            issues.append("No local business information")
        if contact:
            score += 35
        else:
            issues.append("No phone number or street address")
        return SubScore(score, issues)

    def _score_readiness(self, snippet: bool, conversational: bool, list_items: int, factual: bool) -> SubScore:
        checks = (
            (snippet, "Opening paragraph is not snippet-length (50-160 chars)"),
            (conversational, "Text lacks conversational connectives"),
            (list_items >= 3, "No list-based quick answers"),
            (factual, "No references to data or research"),
        )
        issues = [message for ok, message in checks if not ok]
        return SubScore(25 * sum(1 for ok, _ in checks if ok), issues)
