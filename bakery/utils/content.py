"""Rich text normalisation for work item descriptions and comments."""

import re
from html.parser import HTMLParser

TEXT_ELEMENTS = frozenset(
    {"p", "div", "li", "span", "h1", "h2", "h3", "h4", "h5", "h6"}
)
HEADING_ELEMENTS = frozenset({"h1", "h2", "h3", "h4", "h5", "h6"})

# Void elements never get an end tag, so they must not be pushed on the stack
VOID_ELEMENTS = frozenset(
    {
        "area",
        "base",
        "br",
        "col",
        "embed",
        "hr",
        "img",
        "input",
        "link",
        "meta",
        "param",
        "source",
        "track",
        "wbr",
    }
)

# Tried in order; the first one producing a non-empty criterion wins
ACCEPTANCE_CRITERIA_PATTERNS = [
    r"(?is)Acceptance Criteria:(.*?)(?=\n\n|\n#|\Z)",
    r"(?is)AC:(.*?)(?=\n\n|\n#|\Z)",
    r"(?is)Requirements:(.*?)(?=\n\n|\n#|\Z)",
    r"(?is)User Story:(.*?)(?=\n\n|\n#|\Z)",
]

IMG_TAG_PATTERN = re.compile(
    r'<img\b[^>]*?\bsrc="([^"]+)"(?:[^>]*?\balt="([^"]*)")?[^>]*>',
    re.IGNORECASE,
)
TAG_PATTERN = re.compile(r"<[^>]*>")

# Images hosted anywhere else cannot be fetched with the PAT
DEVOPS_IMAGE_HOSTS = ("dev.azure.com", "visualstudio.com")


class _Element:
    __slots__ = ("tag", "parts")

    def __init__(self, tag: str) -> None:
        self.tag = tag
        self.parts: list[str] = []

    def text(self) -> str:
        return "".join(self.parts)


class _FragmentParser(HTMLParser):
    """Collects the text content of every text-bearing element.

    Elements are recorded in document (start tag) order and each one
    accumulates the text of all its descendants, like a CSS selector match.
    """

    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self.matched: list[_Element] = []
        self._stack: list[_Element] = []

    def handle_starttag(self, tag: str, attrs: list) -> None:
        if tag in VOID_ELEMENTS:
            return
        element = _Element(tag)
        if tag in TEXT_ELEMENTS:
            self.matched.append(element)
        self._stack.append(element)

    def handle_startendtag(self, tag: str, attrs: list) -> None:
        pass

    def handle_endtag(self, tag: str) -> None:
        # Close up to the nearest matching open tag; stray end tags are ignored
        for index in range(len(self._stack) - 1, -1, -1):
            if self._stack[index].tag == tag:
                del self._stack[index:]
                return

    def handle_data(self, data: str) -> None:
        for element in self._stack:
            element.parts.append(data)


def clean_html(html_content: str) -> str:
    """Convert an HTML fragment into readable plain text.

    Only ``p``, ``div``, ``li``, ``span`` and ``h1``-``h6`` elements contribute
    text. List items are prefixed with a bullet and headings are wrapped in
    ``**bold**`` markers. Text outside those elements is dropped.

    Args:
        html_content: HTML fragment (may be empty)

    Returns:
        Cleaned text with empty lines removed
    """
    if not html_content:
        return ""

    parser = _FragmentParser()
    parser.feed(html_content)
    parser.close()

    cleaned = []
    for element in parser.matched:
        text = element.text().strip()
        if not text:
            continue
        if element.tag == "li":
            cleaned.append(f"• {text}\n")
        elif element.tag in HEADING_ELEMENTS:
            cleaned.append(f"\n**{text}**\n")
        else:
            cleaned.append(f"{text}\n")

    lines = [line for line in "".join(cleaned).splitlines() if line.strip()]
    return "\n".join(lines).replace("\n\n\n", "\n\n").strip()


def clean_html_list(contents: list[str]) -> list[str]:
    """Apply :func:`clean_html` to each entry, keeping plain text entries."""
    cleaned = []
    for content in contents:
        if TAG_PATTERN.search(content):
            cleaned.append(clean_html(content))
        else:
            cleaned.append(content.strip())
    return cleaned


def extract_acceptance_criteria(description: str) -> list[str]:
    """Extract acceptance criteria lines from a free text description.

    Looks for a labelled section ("Acceptance Criteria:", "AC:",
    "Requirements:", "User Story:") terminated by a blank line, a markdown
    heading or the end of the text. Markup inside the block is removed and
    list markers are stripped from each line.

    Args:
        description: Raw work item description

    Returns:
        Criteria in order; empty when no labelled section has content
    """
    if not description:
        return []

    for pattern in ACCEPTANCE_CRITERIA_PATTERNS:
        match = re.search(pattern, description)
        if not match:
            continue

        block = TAG_PATTERN.sub("", match.group(1))
        criteria = []
        for line in block.splitlines():
            criterion = line.strip().lstrip("-").lstrip("*").lstrip("#").strip()
            if criterion:
                criteria.append(criterion)

        if criteria:
            return criteria

    return []


def is_devops_url(url: str) -> bool:
    """Return True for URLs served by Azure DevOps."""
    return any(host in url for host in DEVOPS_IMAGE_HOSTS)


def extract_image_references(text: str) -> list[tuple[str, str | None]]:
    """Find ``<img>`` tags pointing at Azure DevOps hosted images.

    Args:
        text: HTML text to scan

    Returns:
        List of ``(url, alt_text)`` tuples in document order
    """
    if not text:
        return []

    references = []
    for match in IMG_TAG_PATTERN.finditer(text):
        url, alt_text = match.group(1), match.group(2)
        if is_devops_url(url):
            references.append((url, alt_text))
    return references
