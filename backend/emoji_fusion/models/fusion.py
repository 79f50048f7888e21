"""Fusion request, prompt and result data models."""
import base64
import re
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from emoji_fusion.models.usage import UsageStatus

_DATA_URI_RE = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+);base64,(?P<data>.*)$", re.DOTALL)


class ItemKind(str, Enum):
    """Kinds of input a user can submit for fusion."""

    emoji = "emoji"
    image = "image"


class FusionItem(BaseModel):
    """One user-supplied fusion input: an emoji glyph or an image data URI."""

    kind: ItemKind = ItemKind.emoji
    value: str = Field(..., max_length=16 * 1024 * 1024)


class FusionRequest(BaseModel):
    """Request model for POST /api/fusion."""

    item1: FusionItem
    item2: FusionItem


class EncodedImage(BaseModel):
    """An image as MIME type plus base64 body."""

    mime_type: str
    data: str

    @classmethod
    def from_data_uri(cls, uri: str) -> "EncodedImage":
        """Split a `data:<mime>;base64,<body>` URI.

        Raises:
            ValueError: When the URI is not base64 data-URI framed.
        """
        match = _DATA_URI_RE.match(uri)
        if match is None:
            raise ValueError("not a base64 data URI")
        return cls(mime_type=match.group("mime"), data=match.group("data"))

    @classmethod
    def from_bytes(cls, raw: bytes, mime_type: str) -> "EncodedImage":
        return cls(mime_type=mime_type, data=base64.b64encode(raw).decode("ascii"))

    @property
    def data_uri(self) -> str:
        return f"data:{self.mime_type};base64,{self.data}"

    def to_bytes(self) -> bytes:
        return base64.b64decode(self.data, validate=True)


class PromptPart(BaseModel):
    """A single text or inline-image segment of a rendered prompt."""

    text: Optional[str] = None
    image: Optional[EncodedImage] = None


class RenderedPrompt(BaseModel):
    """Validated instruction ready to send to the model, in part order."""

    parts: list[PromptPart]

    @property
    def text(self) -> str:
        """Concatenated text segments, images omitted."""
        return "".join(p.text for p in self.parts if p.text is not None)

    @property
    def images(self) -> list[EncodedImage]:
        return [p.image for p in self.parts if p.image is not None]


class FusionResult(BaseModel):
    """The image produced by the Fusion Client."""

    encoded_image: str
    mime_type: str
    text: Optional[str] = None


class FusionResponse(BaseModel):
    """Response returned by POST /api/fusion."""

    encoded_image: str
    mime_type: str
    text: Optional[str] = None
    usage: UsageStatus


class DownloadRequest(BaseModel):
    """Request model for POST /api/fusion/download."""

    encoded_image: str = Field(..., min_length=1, max_length=16 * 1024 * 1024)
