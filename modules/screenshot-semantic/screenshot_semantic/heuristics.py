"""Deterministic fallbacks used when a remote analysis call is unusable.

Everything here is pure: same input, same output, no I/O.
"""

import re
from collections import Counter
from dataclasses import dataclass, field
from datetime import date
from typing import Optional, Sequence

DEFAULT_SUBJECT = "Screenshot"
MAX_KEYWORDS = 10
MIN_KEYWORD_LENGTH = 4
TITLE_MAX_CHARS = 50
OCR_EXCERPT_CHARS = 2000

STOP_WORDS = frozenset(
    {
        "the", "and", "or", "but", "in", "on", "at", "to", "for", "of", "with", "by",
        "this", "that", "these", "those", "is", "are", "was", "were", "be", "been",
        "have", "has", "had", "do", "does", "did", "will", "would", "could", "should",
        "may", "might", "must", "can", "from", "up", "about", "into", "through", "during",
    }
)

_NON_WORD = re.compile(r"[^\w\s]")
_TITLE_DISALLOWED = re.compile(r"[^\w\s\-.,!?]")
_WHITESPACE = re.compile(r"\s+")
_SYMBOLS_ONLY = re.compile(r"^[^\w\s]*$")

# Category patterns are matched against lowercased text.
CONTENT_PATTERNS: dict[str, tuple[re.Pattern, ...]] = {
    "code": tuple(
        re.compile(p, re.MULTILINE)
        for p in (
            r"function\s*\(",
            r"class\s+\w+",
            r"import\s+\{",
            r"export\s+",
            r"console\.log",
            r"return\s+",
            r"\{\s*\n",
            r"\}\s*;",
            r"/\*[\s\S]*?\*/",
            r"//.*$",
        )
    ),
    "webpage": tuple(
        re.compile(p)
        for p in (
            r"https?://",
            r"@\w+\.(com|org|net)",
            r"www\.",
            r"\.html?",
            r"\.css",
            r"\.js",
        )
    ),
    "chart": tuple(
        re.compile(p)
        for p in (r"chart", r"graph", r"diagram", r"axis", r"legend", r"plot", r"data")
    ),
    "diagram": tuple(
        re.compile(p) for p in (r"diagram", r"flowchart", r"workflow", r"process")
    ),
    "interface": tuple(
        re.compile(p)
        for p in (
            r"button",
            r"click",
            r"menu",
            r"dialog",
            r"window",
            r"tab",
            r"toolbar",
            r"sidebar",
        )
    ),
}

# The first category with any match decides the type.
TYPE_PRIORITY = ("code", "webpage", "chart", "diagram", "interface")

APP_PATTERNS = (
    (re.compile(r"vscode|visual studio code"), "VS Code"),
    (re.compile(r"xcode"), "Xcode"),
    (re.compile(r"terminal|bash|zsh"), "Terminal"),
    (re.compile(r"chrome|safari|firefox"), "Browser"),
)

LANGUAGE_PATTERNS = (
    (re.compile(r"typescript|tsx"), "typescript"),
    (re.compile(r"javascript|jsx"), "javascript"),
    (re.compile(r"python|def |import "), "python"),
    (re.compile(r"java|public class"), "java"),
    (re.compile(r"swift|func |var |let "), "swift"),
)


@dataclass
class ContentAnalysis:
    type: str
    votes: dict[str, int] = field(default_factory=dict)
    language: Optional[str] = None
    app: Optional[str] = None

    @property
    def is_code(self) -> bool:
        return self.votes.get("code", 0) > 0


def extract_keywords(text: str, limit: int = MAX_KEYWORDS) -> list[str]:
    """Most frequent non-stop-word tokens longer than three characters.

    Ties keep the order in which tokens first appear.
    """
    if not text or not text.strip():
        return []
    words = [
        word
        for word in _NON_WORD.sub(" ", text.lower()).split()
        if len(word) >= MIN_KEYWORD_LENGTH and word not in STOP_WORDS
    ]
    return [word for word, _ in Counter(words).most_common(limit)]


def clean_title(title: str) -> str:
    title = _TITLE_DISALLOWED.sub("", title)
    return _WHITESPACE.sub(" ", title).strip()


def default_title(today: Optional[date] = None) -> str:
    return f"{DEFAULT_SUBJECT} {(today or date.today()).isoformat()}"


def heuristic_title(text: str, max_chars: int = TITLE_MAX_CHARS) -> str:
    """First short, meaningful OCR line, else the first line truncated."""
    lines = [line.strip() for line in (text or "").split("\n")]
    lines = [line for line in lines if line]
    if not lines:
        return default_title()

    for line in lines:
        if len(line) < 3 or _SYMBOLS_ONLY.match(line):
            continue
        if len(line) <= max_chars:
            cleaned = clean_title(line)
            if cleaned:
                return cleaned

    first = lines[0]
    if len(first) > max_chars:
        first = first[: max_chars - 3] + "..."
    return clean_title(first) or default_title()


def analyze_content(text: str) -> ContentAnalysis:
    """Classify OCR text by category patterns and spot the originating app.

    Categories are checked in TYPE_PRIORITY order, so a single code match
    outranks any number of chart matches. No match at all means "document".
    """
    lowered = (text or "").lower()
    votes = {
        category: sum(1 for pattern in patterns if pattern.search(lowered))
        for category, patterns in CONTENT_PATTERNS.items()
    }

    content_type = next(
        (category for category in TYPE_PRIORITY if votes[category]), "document"
    )

    language = None
    if votes["code"]:
        language = next(
            (name for pattern, name in LANGUAGE_PATTERNS if pattern.search(lowered)),
            None,
        )
    app = next((name for pattern, name in APP_PATTERNS if pattern.search(lowered)), None)
    return ContentAnalysis(type=content_type, votes=votes, language=language, app=app)


def heuristic_description(text: str) -> str:
    analysis = analyze_content(text)
    description = f"{analysis.type} screenshot"
    if analysis.app:
        description += f" from {analysis.app}"
    if len(text) > 100:
        description += f" containing {len(text.split())} words"
    return description


def compose_comprehensive_description(
    *,
    description: Optional[str] = None,
    ocr_text: Optional[str] = None,
    title: Optional[str] = None,
    keywords: Optional[Sequence[str]] = None,
    excerpt_chars: int = OCR_EXCERPT_CHARS,
) -> str:
    """Stitch whatever analysis exists into one block of text for embedding."""
    parts = [description or DEFAULT_SUBJECT]
    if ocr_text:
        parts.append(f"Text content: {ocr_text[:excerpt_chars]}")
    if title:
        parts.append(f"Title: {title}")
    if keywords:
        parts.append(f"Keywords: {', '.join(keywords)}")
    return "\n\n".join(parts)
