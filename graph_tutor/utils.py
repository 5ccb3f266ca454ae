"""
Utility functions and compiled regex patterns for Graph Tutor.

Contains exceptions, frontmatter parsing, id generation and validation utilities.
"""

import re

import yaml

from .config import settings

# Pre-compiled regex patterns for performance
FRONTMATTER_PATTERN = re.compile(r'^---\s*\n(.*?)\n---\s*\n', re.DOTALL)
CONCEPT_ID_PATTERN = re.compile(r'^[a-z0-9][a-z0-9-]*$')
UNSAFE_CHARS_PATTERN = re.compile(r'[^\w\s-]')
SEPARATOR_PATTERN = re.compile(r'[\s_-]+')

# Allowed characters in title (alphanumeric, spaces, common punctuation, accented chars)
TITLE_PATTERN = re.compile(r'^[\w\s\-.,:()/+&\'àâäéèêëïîôùûüçÀÂÄÉÈÊËÏÎÔÙÛÜÇ]+$', re.UNICODE)


# ============== Exceptions ==============

class NotFound(Exception):
    """Raised when a referenced concept or edge does not exist."""

    def __init__(self, concept_id: str, what: str = "Concept"):
        self.concept_id = concept_id
        super().__init__(f"{what} not found: {concept_id}")


class ConceptNotFound(NotFound):
    """Raised when the root concept of a context pack does not exist."""
    pass


class InvalidBudget(Exception):
    """Raised when a context pack budget is not a positive integer."""

    def __init__(self, budget: object):
        self.budget = budget
        super().__init__(f"Budget must be a positive integer, got {budget!r}")


class TitleValidationError(Exception):
    """Raised when title validation fails."""
    pass


class ConceptValidationError(Exception):
    """Raised when concept fields other than the title are invalid."""
    pass


class EdgeValidationError(Exception):
    """Raised when an edge write is invalid (self-loop, duplicate, bad kind)."""
    pass


# ============== Helper Functions ==============

def parse_frontmatter(content: str) -> tuple[dict, str]:
    """Extract YAML frontmatter and body from note content."""
    frontmatter = {}
    body = content

    match = FRONTMATTER_PATTERN.match(content)
    if match:
        try:
            frontmatter = yaml.safe_load(match.group(1)) or {}
        except yaml.YAMLError:
            pass
        body = content[match.end():]

    return frontmatter, body


def render_frontmatter(data: dict) -> str:
    """Render a dict as a YAML frontmatter block."""
    yaml_content = yaml.dump(data, allow_unicode=True, default_flow_style=False, sort_keys=False)
    return f"---\n{yaml_content}---\n\n"


def slugify(title: str) -> str:
    """Derive a concept id from a title: "KV Cache" -> "kv-cache"."""
    slug = UNSAFE_CHARS_PATTERN.sub('', title.lower())
    slug = SEPARATOR_PATTERN.sub('-', slug.strip())
    return slug.strip('-')


# ============== Validation ==============

def validate_title(title: str) -> str:
    """Validate and sanitize a concept title.

    Args:
        title: The title to validate

    Returns:
        The validated title

    Raises:
        TitleValidationError: If the title is invalid
    """
    if not title or not title.strip():
        raise TitleValidationError("Title cannot be empty")

    title = title.strip()

    if len(title) > settings.max_title_length:
        raise TitleValidationError(f"Title exceeds maximum length of {settings.max_title_length} characters")

    if not TITLE_PATTERN.match(title):
        raise TitleValidationError(
            "Title contains invalid characters. Only alphanumeric, spaces, common "
            "punctuation, and accented characters are allowed."
        )

    return title


def validate_concept_id(concept_id: str) -> str:
    """Validate a concept id (lowercase slug).

    Raises:
        ConceptValidationError: If the id is not a lowercase slug
    """
    if not concept_id or not CONCEPT_ID_PATTERN.match(concept_id):
        raise ConceptValidationError(
            f"Invalid concept id {concept_id!r}: use lowercase letters, digits and hyphens"
        )
    return concept_id


def validate_mastery(mastery: int) -> int:
    """Validate a mastery level against the configured range.

    Raises:
        ConceptValidationError: If mastery is outside 0..max_mastery
    """
    if isinstance(mastery, bool) or not isinstance(mastery, int):
        raise ConceptValidationError(f"Mastery must be an integer, got {mastery!r}")
    if not 0 <= mastery <= settings.max_mastery:
        raise ConceptValidationError(f"Mastery must be between 0 and {settings.max_mastery}")
    return mastery


def validate_notes_size(notes: str) -> str:
    """Validate notes size.

    Raises:
        ConceptValidationError: If the notes exceed size limits
    """
    notes_bytes = len(notes.encode('utf-8'))

    if notes_bytes > settings.max_notes_size:
        max_mb = settings.max_notes_size / (1024 * 1024)
        actual_mb = notes_bytes / (1024 * 1024)
        raise ConceptValidationError(
            f"Notes size ({actual_mb:.2f}MB) exceeds maximum allowed size ({max_mb}MB)"
        )

    return notes


def validate_budget(budget: object) -> int:
    """Validate a context pack budget.

    Raises:
        InvalidBudget: If budget is not an integer greater than zero
    """
    if isinstance(budget, bool) or not isinstance(budget, int) or budget <= 0:
        raise InvalidBudget(budget)
    return budget
