from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class WaitPolicy(str, Enum):
    """When navigation counts as finished."""

    LOAD = "load"
    DOMCONTENTLOADED = "domcontentloaded"
    NETWORK_IDLE = "network-idle"

    @property
    def wait_until(self) -> str:
        """The Playwright ``wait_until`` value for this policy."""
        return "networkidle" if self is WaitPolicy.NETWORK_IDLE else self.value


class CaptureRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    url: str
    width: int = Field(1200, ge=100, le=4000)
    height: int = Field(800, ge=100, le=4000)
    quality: int = Field(80, ge=1, le=100)
    full_page: bool = False
    wait_policy: WaitPolicy = WaitPolicy.NETWORK_IDLE
    navigation_timeout_ms: int = Field(30000, gt=0)
    overall_timeout_ms: int = Field(60000, gt=0)


@dataclass
class CompressedImage:
    data: bytes
    format: str
    width: int
    height: int
    source_size: int = 0

    @property
    def content_type(self) -> str:
        return f"image/{self.format}"

    @property
    def size(self) -> int:
        return len(self.data)


class HealthResponse(BaseModel):
    status: str = "OK"
    timestamp: str
    uptime: float
