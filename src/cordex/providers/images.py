from __future__ import annotations
import base64
import mimetypes
import re
from dataclasses import dataclass
from pathlib import Path

from cordex.core.errors import UnparseableImage

_DATA_URI = re.compile(r"^data:(image/[a-z]+);base64,(.+)$")
_DATA_URI_PREFIX = re.compile(r"^data:image/[a-z]+;base64,")


@dataclass(frozen=True)
class ImagePayload:
    media_type: str
    data: str

    @classmethod
    def from_data_uri(cls, uri: str) -> "ImagePayload":
        match = _DATA_URI.match(uri or "")
        if not match:
            raise UnparseableImage(f"Not a base64 image data-URI: {(uri or '')[:32]!r}")
        return cls(media_type=match.group(1), data=match.group(2))


def strip_data_uri_prefix(uri: str) -> str:
    # Strings without the prefix are passed through untouched
    return _DATA_URI_PREFIX.sub("", uri, count=1)


def image_to_data_uri(path: Path) -> str:
    """Read an image file into the data-URI form chat messages carry."""
    path = Path(path)
    mime, _ = mimetypes.guess_type(path.name)
    if not mime or not mime.startswith("image/"):
        raise UnparseableImage(f"Not an image file: {path.name}")
    b64 = base64.b64encode(path.read_bytes()).decode("ascii")
    return f"data:{mime};base64,{b64}"
