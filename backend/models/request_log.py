from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from typing import Optional


class LogRecord(BaseModel):
    """One observed request/response exchange, as emitted by the proxy."""
    model_config = ConfigDict(frozen=True)

    id: str
    timestamp: int = 0              # ms since epoch, producer-assigned
    method: str = ""
    url: str = ""
    status: int = 0
    duration: int = Field(default=0, ge=0)   # ms
    model: Optional[str] = None
    error: Optional[str] = None
    request_body: Optional[str] = None
    response_body: Optional[str] = None
    input_tokens: Optional[int] = Field(default=None, ge=0)
    output_tokens: Optional[int] = Field(default=None, ge=0)

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value):
        # Some producers hand out integer row ids
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    @property
    def is_success(self) -> bool:
        return is_success(self.status)


class Stats(BaseModel):
    """Running request counters. Accepts the proxy's wire names too."""
    model_config = ConfigDict(populate_by_name=True)

    total: int = Field(default=0, ge=0, validation_alias=AliasChoices("total", "total_requests"))
    success: int = Field(default=0, ge=0, validation_alias=AliasChoices("success", "success_count"))
    error: int = Field(default=0, ge=0, validation_alias=AliasChoices("error", "error_count"))

    @property
    def consistent(self) -> bool:
        return self.total == self.success + self.error


class FeedView(BaseModel):
    """Filtered snapshot of the monitor, taken atomically."""
    query: str = ""
    recording: bool = False
    stats: Stats = Stats()
    total_records: int = 0
    records: list[LogRecord] = []


def is_success(status: int) -> bool:
    """2xx and 3xx count as success, everything else as an error."""
    return 200 <= status < 400
