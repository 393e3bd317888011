"""
Domain validation rules for post and comment input.

Each check returns a list of ``FieldError`` (empty when the input passes);
services raise ``ValidationFailed`` with the collected errors.
"""
from app.errors import FieldError

POST_CONTENT_MAX_LENGTH = 2000
COMMENT_TEXT_MAX_LENGTH = 500


def _check_text(field: str, value, max_length: int, required_msg: str, too_long_msg: str) -> list[FieldError]:
    if value is None or not isinstance(value, str) or not value.strip():
        return [FieldError(field, required_msg)]
    if len(value.strip()) > max_length:
        return [FieldError(field, too_long_msg)]
    return []


def check_post_content(content) -> list[FieldError]:
    return _check_text(
        "content",
        content,
        POST_CONTENT_MAX_LENGTH,
        "Post content is required",
        f"Post cannot be more than {POST_CONTENT_MAX_LENGTH} characters",
    )


def check_comment_text(text) -> list[FieldError]:
    return _check_text(
        "text",
        text,
        COMMENT_TEXT_MAX_LENGTH,
        "Comment text is required",
        f"Comment cannot be more than {COMMENT_TEXT_MAX_LENGTH} characters",
    )


def clean_tags(tags) -> list[str]:
    """Trim every tag and drop the blank ones, keeping insertion order."""
    if not tags:
        return []
    cleaned = []
    for tag in tags:
        tag = str(tag).strip()
        if tag:
            cleaned.append(tag)
    return cleaned
