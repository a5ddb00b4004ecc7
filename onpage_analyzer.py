import logging
import re
from collections import Counter
from typing import List, Optional, Set

from bs4 import BeautifulSoup

from page_utils import (
    classify_links, content_tokens, count_syllables, count_words, meta_content, most_common,
    parse_markup, registered_domain, split_sentences, tokenize, visible_text,
)
from seo_types import FetchedDocument, Headings, OnPageFindings, OnPageMetrics, SubScore

logger = logging.getLogger(__name__)

TITLE_SEPARATORS = (" | ", " - ", " » ")
TITLE_CTA_WORDS = {
    "learn", "discover", "get", "find", "shop", "buy", "try", "start", "explore",
    "save", "download", "book", "compare", "join", "guide", "best", "top",
}
META_CTA_PHRASES = (
    "learn more", "discover", "find out", "get started", "shop now", "buy now", "try",
    "start", "explore", "contact us", "sign up", "book", "download", "see how", "read more",
)
BENEFIT_WORDS = {
    "free", "save", "best", "easy", "fast", "quick", "proven", "guaranteed",
    "exclusive", "expert", "complete", "ultimate", "simple",
}
EMOJI_RE = re.compile("[\U0001F300-\U0001FAFF\u2600-\u27BF]")
SPECIAL_CHARS = "!@#$%^&*()"


def _word_set(text: str, min_length: int = 3) -> Set[str]:
    return {w for w in tokenize(text) if len(w) >= min_length}


def _jaccard(a: Set[str], b: Set[str]) -> float:
    if not a or not b:
        return 0.0
    return len(a & b) / len(a | b)


class OnPageAnalyzer:
    """Scores the content-level signals of a single page"""

    def analyze(self, document: FetchedDocument) -> OnPageFindings:
        soup = parse_markup(document.markup)
        body_text = visible_text(soup)

        title = self._extract_title(soup)
        meta_description = meta_content(soup, name="description") or None
        h1_texts = [h.get_text(" ", strip=True) for h in soup.find_all("h1")]
        h2_texts = [h.get_text(" ", strip=True) for h in soup.find_all("h2")]
        h3_count = len(soup.find_all("h3"))

        images = soup.find_all("img")
        images_with_alt = sum(1 for img in images if (img.get("alt") or "").strip())

        internal_links, external_links = classify_links(soup, document.url)
        internal_links = list(dict.fromkeys(internal_links))
        external_links = list(dict.fromkeys(external_links))
        external_domains = tuple(sorted({registered_domain(link) for link in external_links}))

        tokens = content_tokens(body_text)
        top = most_common(tokens, 1)
        primary_keyword, occurrences = top[0] if top else ("", 0)
        density = occurrences / len(tokens) * 100 if tokens else 0.0
        word_count = count_words(body_text)
        sentences = split_sentences(body_text)
        words = tokenize(body_text)
        average_sentence_length = len(words) / len(sentences) if sentences else 0.0
        syllables_per_word = sum(count_syllables(w) for w in words) / len(words) if words else 0.0
        flesch = 206.835 - 1.015 * average_sentence_length - 84.6 * syllables_per_word if words else 0.0

        metrics = OnPageMetrics(
            title=title or "",
            title_length=len(title or ""),
            meta_description=meta_description or "",
            meta_description_length=len(meta_description or ""),
            h1_count=len(h1_texts),
            h2_count=len(h2_texts),
            h3_count=h3_count,
            image_count=len(images),
            images_with_alt=images_with_alt,
            internal_link_count=len(internal_links),
            external_link_count=len(external_links),
            external_domains=external_domains,
            primary_keyword=primary_keyword,
            keyword_occurrences=occurrences,
            keyword_density=round(density, 2),
            word_count=word_count,
            sentence_count=len(sentences),
            average_sentence_length=round(average_sentence_length, 1),
            flesch_reading_ease=round(flesch, 1),
        )

        findings = OnPageFindings(
            title=self._score_title(title),
            meta_description=self._score_meta_description(meta_description, title),
            headings=self._score_headings(h1_texts, h2_texts, h3_count, title, len(body_text)),
            images=self._score_images(len(images), images_with_alt),
            internal_links=self._score_internal_links(len(internal_links)),
            external_links=self._score_external_links(len(external_links), external_domains),
            keyword_density=self._score_keyword_density(primary_keyword, occurrences, density),
            content_length=self._score_content_length(word_count),
            readability=self._score_readability(len(sentences), average_sentence_length, flesch),
            metrics=metrics,
        )
        logger.debug(f"On-page analysis for {document.url}: {word_count} words, {len(h1_texts)} h1")
        return findings

    def _extract_title(self, soup: BeautifulSoup) -> Optional[str]:
        """Extract page title"""
        title_tag = soup.find("title")
        title = title_tag.get_text(strip=True) if title_tag else ""
        return title or None

    def _score_title(self, title: Optional[str]) -> SubScore:
        if not title:
            return SubScore(0, ("Missing title tag",),
                            ("Add a unique, descriptive <title> of 50-60 characters",))

        issues: List[str] = []
        recommendations: List[str] = []
        length = len(title)
        score = 40

        if 50 <= length <= 60:
            score += 40
        elif 40 <= length <= 70:
            score += 35
        elif 30 <= length <= 75:
            score += 25
        elif length >= 20:
            score += 15
        else:
            score += 5

        if length < 30:
            issues.append(f"Title is too short ({length} chars)")
            recommendations.append("Expand the title towards 50-60 characters")
        elif length > 75:
            issues.append(f"Title is too long ({length} chars) and will be truncated")
            recommendations.append("Shorten the title to 50-60 characters")
        elif not 50 <= length <= 60:
            issues.append(f"Title length ({length} chars) is outside the optimal 50-60 range")

        if any(sep in title for sep in TITLE_SEPARATORS):
            score += 5
        if re.search(r"\d", title):
            score += 3
        if _word_set(title) & TITLE_CTA_WORDS:
            score += 4

        repeated = [w for w, n in Counter(w for w in tokenize(title) if len(w) > 2).items() if n >= 3]
        if repeated:
            score -= 15
            issues.append(f"Keyword stuffing in title: '{sorted(repeated)[0]}' repeated 3+ times")
            recommendations.append("Use each keyword once in the title")

        if title.isupper() and length > 10:
            score -= 10
            issues.append("Title is written in all caps")

        if sum(title.count(c) for c in SPECIAL_CHARS) > 2:
            score -= 5
            issues.append("Title contains excessive special characters")

        return SubScore(score, issues, recommendations)

    def _score_meta_description(self, description: Optional[str], title: Optional[str]) -> SubScore:
        if not description:
            return SubScore(0, ("Missing meta description",),
                            ("Add a meta description of 140-160 characters",))

        issues: List[str] = []
        recommendations: List[str] = []
        length = len(description)
        lowered = description.lower()
        score = 30

        if 140 <= length <= 160:
            score += 40
        elif 120 <= length <= 170:
            score += 35
        elif 100 <= length <= 180:
            score += 25
        elif 50 <= length <= 200:
            score += 15
        else:
            score += 5

        if length < 120:
            issues.append(f"Meta description is too short ({length} chars)")
            recommendations.append("Expand the meta description towards 140-160 characters")
        elif length > 170:
            issues.append(f"Meta description is too long ({length} chars)")
            recommendations.append("Trim the meta description to 140-160 characters")

        if any(phrase in lowered for phrase in META_CTA_PHRASES):
            score += 8
        else:
            recommendations.append("Add a call to action such as 'Learn more'")
        if _word_set(description) & BENEFIT_WORDS:
            score += 6
        if re.search(r"\d", description):
            score += 4
        if description.rstrip()[-1:] in (".", "!", "?"):
            score += 3

        if title:
            title_words = _word_set(title)
            description_words = _word_set(description)
            if title_words and description_words:
                overlap = len(title_words & description_words) / min(len(title_words), len(description_words))
                if overlap > 0.8:
                    score -= 10
                    issues.append("Meta description nearly duplicates the title")
                elif overlap > 0.3:
                    score += 5

        repeated = [w for w, n in Counter(w for w in tokenize(description) if len(w) > 3).items() if n >= 4]
        if repeated:
            score -= 15
            issues.append(f"Keyword stuffing in meta description: '{sorted(repeated)[0]}'")

        if len(EMOJI_RE.findall(description)) > 3:
            score -= 5
            issues.append("Meta description contains too many emoji")

        return SubScore(score, issues, recommendations)

    def _score_headings(self, h1_texts: List[str], h2_texts: List[str], h3_count: int,
                        title: Optional[str], text_length: int) -> Headings:
        h1_count = len(h1_texts)
        h2_count = len(h2_texts)

        bonus = 0
        if h1_count == 1 and h2_count >= 2:
            bonus += 10
        if h2_count > 0 and h3_count > 0 and h3_count >= 0.5 * h2_count:
            bonus += 5
        total_headings = h1_count + h2_count + h3_count
        if text_length > 0:
            per_thousand = total_headings / (text_length / 1000)
            if 1 <= per_thousand <= 5:
                bonus += 5
        share = bonus // 3

        # H1
        if h1_count == 0:
            h1 = SubScore(0, ("Missing H1 heading",), ("Add exactly one H1 describing the page topic",))
        elif h1_count == 1:
            text = h1_texts[0]
            score = 60
            if 20 <= len(text) <= 70:
                score += 20
            elif 10 <= len(text) <= 100:
                score += 10
            similarity = _jaccard(_word_set(text), _word_set(title or ""))
            if 0.3 <= similarity <= 0.8:
                score += 15
            elif similarity > 0.8:
                score += 5
            if re.search(r"\d", text):
                score += 5
            issues = () if similarity >= 0.3 else ("H1 shares few words with the title",)
            h1 = SubScore(score + share, issues)
        else:
            h1 = SubScore(25 + share, (f"Page has multiple H1 headings ({h1_count})",),
                          ("Keep a single H1 and demote the others to H2",))

        # H2
        if h2_count == 0:
            h2 = SubScore(20 + share, ("No H2 subheadings",), ("Break the content into sections with H2s",))
        elif h2_count == 1:
            h2 = SubScore(50 + share, ("Only one H2 subheading",))
        elif h2_count <= 8:
            well_sized = sum(1 for text in h2_texts if 15 <= len(text) <= 80)
            h2 = SubScore(min(100, 80 + 2 * well_sized) + share)
        else:
            h2 = SubScore(60 + share, (f"Too many H2 headings ({h2_count})",))

        # H3
        if h3_count == 0:
            h3 = SubScore(40 + share, ("No H3 subheadings",))
        elif h3_count <= 15:
            h3 = SubScore(70 + min(3 * h3_count, 30) + share)
        else:
            h3 = SubScore(50 + share, (f"Too many H3 headings ({h3_count})",))

        return Headings(h1=h1, h2=h2, h3=h3)

    def _score_images(self, total: int, with_alt: int) -> SubScore:
        if total == 0:
            return SubScore(20, ("No images on the page",), ("Add relevant images with descriptive alt text",))
        coverage = with_alt / total
        missing = total - with_alt
        if coverage == 1:
            return SubScore(100)
        issues = (f"{missing} of {total} images missing alt text",)
        recommendations = ("Describe every meaningful image in its alt attribute",)
        if coverage >= 0.8:
            return SubScore(80, issues, recommendations)
        if coverage >= 0.5:
            return SubScore(50, issues, recommendations)
        return SubScore(20, issues, recommendations)

    def _score_internal_links(self, count: int) -> SubScore:
        if count >= 10:
            return SubScore(100)
        if count >= 5:
            return SubScore(80)
        recommendations = ("Link to related pages on the same site",)
        if count >= 3:
            return SubScore(60, (f"Only {count} internal links",), recommendations)
        if count >= 1:
            return SubScore(30, (f"Only {count} internal links",), recommendations)
        return SubScore(0, ("No internal links",), recommendations)

    def _score_external_links(self, count: int, domains) -> SubScore:
        issues: List[str] = []
        if count > 1 and len(domains) == 1:
            issues.append(f"All external links point to {domains[0]}")
        if count >= 8:
            score = 100
        elif count >= 5:
            score = 80
        elif count >= 3:
            score = 60
        elif count >= 1:
            score = 40
        else:
            score = 10
            issues.append("No external links to supporting sources")
        recommendations = ("Cite a few authoritative external sources",) if count < 3 else ()
        return SubScore(score, issues, recommendations)

    def _score_keyword_density(self, keyword: str, occurrences: int, density: float) -> SubScore:
        if not keyword:
            return SubScore(0, ("No indexable text to derive a keyword from",))
        label = f"'{keyword}' at {density:.1f}% ({occurrences} occurrences)"
        if 1 <= density <= 2.5:
            return SubScore(100)
        if 0.5 <= density < 1:
            return SubScore(80, (f"Primary keyword {label} is slightly sparse",))
        if 2.5 < density <= 4:
            return SubScore(60, (f"Primary keyword {label} is slightly dense",))
        if 4 < density <= 6:
            return SubScore(30, (f"Primary keyword {label} risks over-optimization",),
                            ("Replace some repetitions with synonyms",))
        if density > 6:
            return SubScore(10, (f"Primary keyword {label} looks like keyword stuffing",),
                            ("Reduce repetitions of the primary keyword below 2.5%",))
        if density >= 0.1:
            return SubScore(50, (f"Primary keyword {label} is too sparse",))
        return SubScore(0, (f"Primary keyword {label} is barely present",))

    def _score_content_length(self, words: int) -> SubScore:
        if words >= 1500:
            return SubScore(100)
        if words >= 800:
            return SubScore(80)
        if words >= 300:
            return SubScore(60, (f"Content is moderate ({words} words)",))
        recommendations = ("Expand the page to at least 300 words of useful content",)
        if words >= 100:
            return SubScore(30, (f"Thin content ({words} words)",), recommendations)
        return SubScore(0, (f"Content too short ({words} words)",), recommendations)

    def _score_readability(self, sentences: int, average_length: float, flesch: float) -> SubScore:
        """Flesch reading ease plus sentence-length bands"""
        if not sentences:
            return SubScore(0, ("No sentences to assess",), ("Write the page content as full sentences",))

        score = 100
        issues: List[str] = []
        recommendations: List[str] = []
        if flesch < 50:
            score -= 30
            issues.append(f"Text is hard to read (Flesch reading ease {flesch:.0f})")
            recommendations.append("Prefer shorter, plainer words")
        if average_length > 25:
            score -= 20
            issues.append(f"Sentences average {average_length:.0f} words")
            recommendations.append("Split long sentences; aim for 15-20 words")
        elif average_length > 20:
            score -= 10
            issues.append(f"Sentences average {average_length:.0f} words")
        elif average_length < 8:
            score -= 15
            issues.append(f"Sentences are very short ({average_length:.1f} words on average)")
        return SubScore(score, issues, recommendations)
