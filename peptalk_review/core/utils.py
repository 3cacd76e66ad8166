import re
import logging

from peptalk_review.core.constants import TRUNCATION_MARKER

logger = logging.getLogger(__name__)

TAG_PATTERN = re.compile(r'<[^>]+>')
WHITESPACE_PATTERN = re.compile(r'\s+')


def strip_markup(html: str) -> str:
    """
    Convert HTML fragments to plain prose.

    Every tag is replaced with a single space, then runs of whitespace are
    collapsed and the result is trimmed.

    Args:
        html: HTML content

    Returns:
        Plain text
    """
    if not html:
        return ""
    text = TAG_PATTERN.sub(' ', html)
    return WHITESPACE_PATTERN.sub(' ', text).strip()


def truncate_text(text: str, max_length: int) -> str:
    """
    Truncate text to max_length characters, appending an ellipsis marker when cut.

    Args:
        text: Text to truncate
        max_length: Maximum characters kept from the original text

    Returns:
        Original text, or the first max_length characters followed by "..."
    """
    if len(text) <= max_length:
        return text
    logger.debug(f"Truncating text from {len(text)} to {max_length} characters")
    return text[:max_length] + TRUNCATION_MARKER
