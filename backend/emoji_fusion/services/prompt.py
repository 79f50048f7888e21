"""Request Builder: validates fusion inputs and renders the model instruction."""
import binascii
import io

import regex
from PIL import Image, UnidentifiedImageError

from emoji_fusion.core.errors import FieldError, InputValidationError
from emoji_fusion.core.logging import setup_logging
from emoji_fusion.models.fusion import (
    EncodedImage,
    FusionItem,
    ItemKind,
    PromptPart,
    RenderedPrompt,
)

logger = setup_logging("prompt")

# Supported upload MIME types and the format name Pillow reports for each.
SUPPORTED_IMAGE_TYPES: dict[str, str] = {
    "image/png": "PNG",
    "image/jpeg": "JPEG",
    "image/gif": "GIF",
}

DEFAULT_MAX_IMAGE_BYTES = 4 * 1024 * 1024

_GRAPHEME_RE = regex.compile(r"\X")
# A pictograph, or a two-letter regional indicator pair (a flag).
_PICTOGRAPHIC_RE = regex.compile("\\p{Extended_Pictographic}|[\U0001F1E6-\U0001F1FF]{2}")
_ZWJ = "\u200d"
_BASE64_RE = regex.compile(r"[A-Za-z0-9+/]+={0,2}")

PREAMBLE = "You are an AI that can fuse two emojis together to create a new emoji.\n\n"

DIRECTIVE = (
    "\nCreate a new emoji that is a fusion of the two emojis. "
    "The output should be an image of the new emoji. "
    "It should still look like an emoji - a small, simple image with a transparent background. "
    "Do not include a border.\n"
)


def validate_emoji(value: str) -> str | None:
    """Return a rejection reason, or None if `value` is exactly one emoji."""
    if not value:
        return "must not be empty"
    if _GRAPHEME_RE.fullmatch(value) is None:
        return "must be a single emoji"
    if _PICTOGRAPHIC_RE.match(value) is None or value.endswith(_ZWJ):
        return "must be an emoji"
    return None


def validate_image(value: str, max_bytes: int = DEFAULT_MAX_IMAGE_BYTES) -> str | None:
    """Return a rejection reason, or None if `value` is a supported image data URI."""
    try:
        image = EncodedImage.from_data_uri(value)
    except ValueError:
        return "must be a base64 data URI"
    expected_format = SUPPORTED_IMAGE_TYPES.get(image.mime_type)
    if expected_format is None:
        return f"unsupported image type {image.mime_type}"
    if not image.data:
        return "image payload is empty"
    if _BASE64_RE.fullmatch(image.data) is None:
        return "image payload is not valid base64"
    try:
        raw = image.to_bytes()
    except (binascii.Error, ValueError):
        return "image payload is not valid base64"
    if len(raw) > max_bytes:
        return f"image exceeds {max_bytes} bytes"
    try:
        with Image.open(io.BytesIO(raw)) as img:
            actual_format = img.format
            img.verify()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, SyntaxError, ValueError):
        return "image payload could not be decoded"
    if actual_format != expected_format:
        return f"image data is {actual_format}, not {image.mime_type}"
    return None


def _validate_item(item: FusionItem, max_image_bytes: int) -> str | None:
    if item.kind is ItemKind.emoji:
        return validate_emoji(item.value)
    return validate_image(item.value, max_image_bytes)


def build_prompt(
    item1: FusionItem,
    item2: FusionItem,
    max_image_bytes: int = DEFAULT_MAX_IMAGE_BYTES,
) -> RenderedPrompt:
    """Validate both items and render the fusion instruction.

    Emoji items are embedded verbatim in the text. Image items become inline
    image parts placed where the emoji would appear, carrying the submitted
    MIME type and base64 body unchanged.

    Args:
        item1: First fusion input.
        item2: Second fusion input.
        max_image_bytes: Upper bound on the decoded size of image items.

    Returns:
        RenderedPrompt with text and image parts in order.

    Raises:
        InputValidationError: One entry per invalid item; both are checked.
    """
    errors: list[FieldError] = []
    for field, item in (("item1", item1), ("item2", item2)):
        reason = _validate_item(item, max_image_bytes)
        if reason is not None:
            errors.append(FieldError(field=field, reason=reason))
    if errors:
        logger.info("Rejected fusion input: %s", [e.model_dump() for e in errors])
        raise InputValidationError(errors)

    parts: list[PromptPart] = []
    text = PREAMBLE
    for ordinal, item in (("first", item1), ("second", item2)):
        if item.kind is ItemKind.emoji:
            text += f"The {ordinal} emoji is: {item.value}\n"
            continue
        text += f"The {ordinal} emoji is this image:\n"
        parts.append(PromptPart(text=text))
        parts.append(PromptPart(image=EncodedImage.from_data_uri(item.value)))
        text = "\n"
    text += DIRECTIVE
    parts.append(PromptPart(text=text))
    return RenderedPrompt(parts=parts)
