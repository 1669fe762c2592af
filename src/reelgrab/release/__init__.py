"""Release title parsing for reelgrab."""

from .models import (
    AudioFormat,
    BlockReason,
    Codec,
    Edition,
    HDRKind,
    ParsedRelease,
    Resolution,
    Source,
    SubtitleKind,
)
from .parser import parse

__all__ = [
    "AudioFormat",
    "BlockReason",
    "Codec",
    "Edition",
    "HDRKind",
    "ParsedRelease",
    "Resolution",
    "Source",
    "SubtitleKind",
    "parse",
]
