from dataclasses import dataclass
from typing import Iterator

ARTIFACT_FILENAME = "your-book.pdf"
ARTIFACT_MEDIA_TYPE = "application/pdf"


@dataclass(frozen=True)
class ArtifactKey:
    """Addresses the personalised copy of one book for one buyer.

    The storage key is built from the two integer ids only, so it cannot be
    steered into another directory by user supplied text.
    """

    buyer_id: int
    book_id: int

    def __post_init__(self):
        for name in ("buyer_id", "book_id"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                raise ValueError(f"{name} must be a positive integer, got {value!r}")

    @property
    def storage_key(self) -> str:
        return f"purchases/user_{self.buyer_id}/book_{self.book_id}.pdf"


@dataclass(frozen=True)
class ArtifactHandle:
    """A buyer's watermarked copy, ready to send.

    ``content`` holds the whole artifact in memory; its size is bounded by
    ``max_pdf_bytes`` plus the footer overlays. ``iter_bytes`` only slices
    that buffer into chunks for the response body.
    """

    filename: str
    media_type: str
    content: bytes

    @property
    def size(self) -> int:
        return len(self.content)

    def iter_bytes(self, chunk_size: int = 64 * 1024) -> Iterator[bytes]:
        for start in range(0, len(self.content), chunk_size):
            yield self.content[start:start + chunk_size]
