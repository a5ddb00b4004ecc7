"""Markup helpers shared by the analyzers."""
import json
import logging
import re
from collections import Counter
from typing import Any, Iterator, List, Optional, Tuple
from urllib.parse import urljoin, urlparse

import tldextract
from bs4 import BeautifulSoup
from bs4.element import Comment, Declaration, Doctype, ProcessingInstruction

logger = logging.getLogger(__name__)

# Offline extractor: uses the bundled public suffix snapshot, never the network
_extract = tldextract.TLDExtract(cache_dir=None, suffix_list_urls=())

NON_CONTENT_TAGS = ["script", "style", "noscript", "template", "head", "title"]
SKIPPED_LINK_PREFIXES = ("#", "javascript:", "mailto:", "tel:")

STOPWORDS = frozenset("""
a about above after again against all also am an and any are aren't as at be because been before
being below between both but by can can't cannot could couldn't did didn't do does doesn't doing
don't down during each few for from further get got had hadn't has hasn't have haven't having he
her here hers herself him himself his how i if in into is isn't it it's its itself just let me
more most much must my myself no nor not now of off on once only or other our ours ourselves out
over own same she should shouldn't so some such than that that's the their theirs them themselves
then there these they this those through to too under until up upon very was wasn't we were
weren't what when where which while who whom why will with won't would wouldn't you your yours
yourself yourselves one two new use used using via per may might like well many way
""".split())

_WORD_RE = re.compile(r"[a-z0-9]+(?:'[a-z]+)?")
_SENTENCE_END_RE = re.compile(r"[.!?]+")
_VOWEL_GROUP_RE = re.compile(r"[aeiouy]+")


def parse_markup(markup: str) -> BeautifulSoup:
    return BeautifulSoup(markup or "", "html.parser")


def visible_text(soup: BeautifulSoup) -> str:
    """Text a reader would see, with scripts, styles and head content removed"""
    chunks = []
    for string in soup.find_all(string=True):
        if isinstance(string, (Comment, Declaration, Doctype, ProcessingInstruction)):
            continue
        if string.find_parent(NON_CONTENT_TAGS) is not None:
            continue
        text = string.strip()
        if text:
            chunks.append(text)
    return " ".join(chunks)


def count_words(text: str) -> int:
    return len(text.split())


def tokenize(text: str) -> List[str]:
    return _WORD_RE.findall(text.lower())


def split_sentences(text: str) -> List[str]:
    return [s.strip() for s in _SENTENCE_END_RE.split(text) if tokenize(s)]


def count_syllables(word: str) -> int:
    """Vowel-group estimate; a trailing silent 'e' is dropped, every word has at least one"""
    word = word.lower()
    groups = len(_VOWEL_GROUP_RE.findall(word))
    if word.endswith("e") and not word.endswith("le") and groups > 1:
        groups -= 1
    return max(1, groups)


def content_tokens(text: str, min_length: int = 3) -> List[str]:
    """Lower-case tokens of at least min_length chars, minus stopwords and bare numbers"""
    return [
        token for token in tokenize(text)
        if len(token) >= min_length and token not in STOPWORDS and not token.isdigit()
    ]


def most_common(tokens: List[str], n: int) -> List[Tuple[str, int]]:
    """Top n tokens by frequency; ties are broken alphabetically so output is stable"""
    counts = Counter(tokens)
    return sorted(counts.items(), key=lambda item: (-item[1], item[0]))[:n]


def host_of(url: str) -> str:
    host = (urlparse(url).hostname or "").lower()
    return host[4:] if host.startswith("www.") else host


def registered_domain(url_or_host: str) -> str:
    """Registrable domain (example.co.uk) of a URL or bare host name"""
    ext = _extract(url_or_host)
    if ext.domain and ext.suffix:
        return f"{ext.domain}.{ext.suffix}"
    return ext.domain or host_of(url_or_host)


def classify_links(soup: BeautifulSoup, page_url: str) -> Tuple[List[str], List[str]]:
    """Split anchors into internal and external absolute URLs (duplicates kept)"""
    page_host = host_of(page_url)
    internal_links = []
    external_links = []

    for a_tag in soup.find_all("a", href=True):
        href = a_tag["href"].strip()
        if not href or href.lower().startswith(SKIPPED_LINK_PREFIXES):
            continue

        absolute = urljoin(page_url, href)
        parsed = urlparse(absolute)
        if parsed.scheme not in ("http", "https"):
            continue

        if host_of(absolute) == page_host:
            internal_links.append(absolute)
        else:
            external_links.append(absolute)

    return internal_links, external_links


def meta_content(soup: BeautifulSoup, name: Optional[str] = None, prop: Optional[str] = None) -> Optional[str]:
    """Content of a <meta name=...> or <meta property=...> tag, matched case-insensitively"""
    for tag in soup.find_all("meta"):
        if name and (tag.get("name") or "").lower() == name.lower():
            return (tag.get("content") or "").strip()
        if prop and (tag.get("property") or "").lower() == prop.lower():
            return (tag.get("content") or "").strip()
    return None


def is_absolute_url(value: Optional[str]) -> bool:
    if not value:
        return False
    parsed = urlparse(value)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def _short_type(value: str) -> str:
    value = value.strip().rstrip("/")
    if ":" in value and not value.startswith("http"):
        value = value.split(":", 1)[1]
    return value.split("/")[-1]


def type_names(value: Any) -> List[str]:
    """Short type names from an @type value (string or list of strings)"""
    if isinstance(value, str):
        return [_short_type(value)]
    if isinstance(value, list):
        return [_short_type(t) for t in value if isinstance(t, str)]
    return []


def _json_ld_types(item, found: List[str]) -> None:
    # Nested entities (mainEntity, publisher, author, @graph...) carry their own types
    if isinstance(item, list):
        for entry in item:
            _json_ld_types(entry, found)
        return
    if not isinstance(item, dict):
        return
    found.extend(type_names(item.get("@type")))
    for key, value in item.items():
        if key != "@type" and isinstance(value, (dict, list)):
            _json_ld_types(value, found)


def parse_json_ld(soup: BeautifulSoup) -> Tuple[List[Any], int]:
    """Parsed JSON-LD documents and the number of blocks that failed to parse"""
    documents = []
    invalid = 0
    for script in soup.find_all("script", type="application/ld+json"):
        raw = script.string or script.get_text()
        if not raw or not raw.strip():
            continue
        try:
            documents.append(json.loads(raw))
        except json.JSONDecodeError as e:
            invalid += 1
            logger.warning(f"Skipping unparseable JSON-LD block: {e}")
    return documents, invalid


def json_ld_entities(documents: List[Any]) -> Iterator[Tuple[Any, bool]]:
    """Top-level JSON-LD entities, each with whether an @context applies to it.

    Arrays and @graph wrappers are unpacked; their members inherit the wrapper's @context.
    """
    def walk(item, has_context):
        if isinstance(item, list):
            for entry in item:
                yield from walk(entry, has_context)
        elif isinstance(item, dict) and "@graph" in item:
            yield from walk(item["@graph"], has_context or "@context" in item)
        elif isinstance(item, dict):
            yield item, has_context or "@context" in item
        else:
            yield item, has_context

    for document in documents:
        yield from walk(document, False)


def schema_types(soup: BeautifulSoup, documents: List[Any]) -> Tuple[str, ...]:
    """Distinct, sorted structured-data types from parsed JSON-LD, microdata and RDFa"""
    found: List[str] = []
    _json_ld_types(documents, found)

    for el in soup.find_all(itemtype=True):
        for itemtype in el.get("itemtype", "").split():
            found.append(_short_type(itemtype))

    for el in soup.find_all(typeof=True):
        for typeof in el.get("typeof", "").split():
            found.append(_short_type(typeof))

    return tuple(sorted({t for t in found if t}))


def extract_schema_types(soup: BeautifulSoup) -> Tuple[Tuple[str, ...], int]:
    """Distinct structured-data types from JSON-LD, microdata and RDFa.

    Returns the sorted types and the number of JSON-LD blocks that failed to parse.
    """
    documents, invalid = parse_json_ld(soup)
    return schema_types(soup, documents), invalid
