"""Models for navigation and scrape results."""

from dataclasses import dataclass
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

FieldValue = str | list[str] | None


class ScrapeState(str, Enum):
    """Per-request state machine."""

    PENDING = 'pending'
    ACQUIRING_SESSION = 'acquiring_session'
    NAVIGATING = 'navigating'
    EXTRACTING = 'extracting'
    RELEASING = 'releasing'
    SUCCEEDED = 'succeeded'
    FAILED = 'failed'


@dataclass
class NavigationOutcome:
    """Result of loading a page and running its navigation steps.

    Attributes:
        url: URL that was requested
        final_url: URL the session ended on after redirects and steps
        html: Rendered page content
        status_code: Status of the main document response, if the driver reported one
        elapsed: Seconds spent navigating

    """

    url: str
    final_url: str
    html: str
    status_code: int | None = None
    elapsed: float = 0.0


class ScrapeMetadata(BaseModel):
    """Bookkeeping attached to every successful scrape.

    Attributes:
        url: Requested URL
        session_id: Driver session that produced the content
        elapsed: Wall-clock seconds for the whole request
        attempts: Navigate-and-extract rounds used
        navigation_attempts: Total navigate calls across all rounds
        acquire_attempts: Attempts needed to obtain a session

    """

    url: str
    session_id: str
    elapsed: float = Field(ge=0)
    attempts: int = Field(ge=1)
    navigation_attempts: int = Field(ge=1)
    acquire_attempts: int = Field(ge=1)


class ScrapeResult(BaseModel):
    """Extracted fields plus metadata."""

    data: dict[str, FieldValue] = Field(default_factory=dict, description='Field name to value')
    metadata: ScrapeMetadata

    def to_dict(self) -> dict[str, Any]:
        """Serialize for a transport response, keeping rule order."""
        return {'data': dict(self.data), 'metadata': self.metadata.model_dump()}
