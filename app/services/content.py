"""
Content pipeline for uploaded blog bodies.

Pure and synchronous: no network or storage access, so it can run inline in
the request path. Uploaded content is normalized to sanitized HTML once at
write time; reads return the stored bytes untouched.
"""

from dataclasses import dataclass
from math import ceil

from bs4 import BeautifulSoup, Doctype
from markdown import markdown

from app.configs.settings import DEFAULT_EXCERPT_LENGTH, WORDS_PER_MINUTE
from app.errors import ValidationError

HTML_TYPES = frozenset({"text/html", "application/xhtml+xml"})
MARKDOWN_TYPES = frozenset({"text/markdown", "text/x-markdown"})
PLAIN_TYPES = frozenset({"text/plain"})
MARKDOWN_SUFFIXES = (".md", ".markdown")

# Elements removed together with everything inside them
STRIPPED_ELEMENTS = ("script",)
URL_ATTRIBUTES = frozenset({"href", "src", "action", "formaction", "xlink:href"})
ELLIPSIS = "..."
MAX_SANITIZE_PASSES = 8


@dataclass(frozen=True, slots=True)
class ProcessedContent:
    html: str
    text: str
    word_count: int
    read_time: int


def _is_script_url(value: str | list[str]) -> bool:
    raw = " ".join(value) if isinstance(value, list) else value
    # Browsers ignore embedded whitespace and control characters in the scheme
    compact = "".join(ch for ch in raw if ch > " ").lower()
    return compact.startswith(("javascript:", "vbscript:"))


def _sanitize_pass(html: str) -> str:
    soup = BeautifulSoup(html, "html.parser")

    # Doctype serializes with a trailing newline, which would grow on every pass
    for doctype in soup.find_all(string=lambda node: isinstance(node, Doctype)):
        doctype.extract()

    for element in soup.find_all(STRIPPED_ELEMENTS):
        element.decompose()

    for tag in soup.find_all(True):
        for name in list(tag.attrs):
            lowered = name.lower()
            if lowered.startswith("on") or (
                lowered in URL_ATTRIBUTES and _is_script_url(tag.attrs[name])
            ):
                del tag.attrs[name]

    soup.smooth()
    return str(soup)


def sanitize(html: str) -> str:
    """
    Strip script elements and inline event handlers from untrusted HTML.

    Removes ``<script>`` elements with their content, doctype declarations,
    every ``on*`` attribute and ``javascript:``/``vbscript:`` URLs.

    Parsing malformed markup can rewrite it (stray end tags vanish, adjacent
    text merges), so passes repeat until the output stops changing. The result
    is therefore a fixed point: ``sanitize(sanitize(x)) == sanitize(x)``.

    Examples:
    --------
    >>> sanitize('<p onclick="x()">hi</p><script>alert(1)</script>')
    '<p>hi</p>'
    """
    current = _sanitize_pass(html)
    for _ in range(MAX_SANITIZE_PASSES):
        cleaned = _sanitize_pass(current)
        if cleaned == current:
            break
        current = cleaned
    return current


def optimize_images(html: str) -> str:
    """Mark every ``<img>`` for lazy loading and async decoding, keeping explicit values."""
    soup = BeautifulSoup(html, "html.parser")
    images = soup.find_all("img")
    if not images:
        return html
    for image in images:
        image.attrs.setdefault("loading", "lazy")
        image.attrs.setdefault("decoding", "async")
    return str(soup)


def render_markdown(text: str) -> str:
    return markdown(text, extensions=["extra", "sane_lists"])


def html_to_text(html: str) -> str:
    """Visible text of an HTML document, whitespace-collapsed."""
    soup = BeautifulSoup(html, "html.parser")
    for element in soup.find_all(("script", "style")):
        element.decompose()
    return " ".join(soup.get_text(" ").split())


def compute_read_time(text: str) -> int:
    """Minutes to read ``text`` at 200 words per minute, rounded up."""
    return ceil(len(text.split()) / WORDS_PER_MINUTE)


def excerpt(text: str, max_len: int = DEFAULT_EXCERPT_LENGTH) -> str:
    """
    Truncate plain text to ``max_len`` characters.

    A trailing ellipsis is appended only when the text was truncated.

    Examples:
    --------
    >>> excerpt("short", 10)
    'short'
    >>> excerpt("a longer sentence", 8)
    'a longer...'
    """
    if max_len < 1:
        msg = "max_len must be positive"
        raise ValueError(msg)
    if len(text) <= max_len:
        return text
    return text[:max_len].rstrip() + ELLIPSIS


def _media_type(content_type: str | None) -> str:
    return (content_type or "").split(";", 1)[0].strip().lower()


def prepare_content(
    raw: bytes,
    content_type: str | None,
    filename: str | None = None,
) -> ProcessedContent:
    """
    Decode an uploaded content file and turn it into sanitized HTML.

    Markdown uploads (by MIME type or ``.md`` suffix) are rendered first;
    HTML and plain text are sanitized as-is. Images are then marked for lazy
    loading.

    Raises:
        ValidationError: If the file is not UTF-8 text of a supported type
    """
    media_type = _media_type(content_type)
    is_markdown = media_type in MARKDOWN_TYPES or (filename or "").lower().endswith(MARKDOWN_SUFFIXES)
    if not is_markdown and media_type and media_type not in HTML_TYPES | PLAIN_TYPES:
        msg = f"Unsupported content type '{media_type}'. Use HTML, Markdown or plain text."
        raise ValidationError.for_field("content", msg)

    try:
        decoded = raw.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise ValidationError.for_field("content", "Content must be UTF-8 encoded") from e

    if not decoded.strip():
        raise ValidationError.for_field("content", "Content file is empty")

    html = optimize_images(sanitize(render_markdown(decoded) if is_markdown else decoded))
    text = html_to_text(html)
    return ProcessedContent(
        html=html,
        text=text,
        word_count=len(text.split()),
        read_time=compute_read_time(text),
    )
