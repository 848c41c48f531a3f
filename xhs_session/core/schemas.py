"""Core data models for the login/session subsystem."""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

SameSite = Literal["Strict", "Lax", "None"]

DEFAULT_COOKIE_DOMAIN = ".xiaohongshu.com"


class CookieRecord(BaseModel):
    """One persisted cookie.

    ``expires`` is unix seconds; ``<= 0`` means a session cookie that never
    expires. Optional attributes default to permissive values so that
    hand-pasted cookie lists load without every field present.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    name: str
    value: str
    domain: str = DEFAULT_COOKIE_DOMAIN
    path: str = "/"
    expires: float = -1
    secure: bool = False
    http_only: bool = Field(default=False, alias="httpOnly")
    same_site: SameSite = Field(default="Lax", alias="sameSite")

    @field_validator("name", "value")
    @classmethod
    def not_empty(cls, v: str) -> str:
        if not v.strip():
            msg = "cookie name and value must not be empty"
            raise ValueError(msg)
        return v

    @field_validator("expires", mode="before")
    @classmethod
    def expires_default(cls, v: Any) -> Any:
        # Browser exports use null for session cookies.
        return -1 if v is None else v

    @field_validator("same_site", mode="before")
    @classmethod
    def normalize_same_site(cls, v: Any) -> Any:
        if v is None:
            return "Lax"
        if isinstance(v, str):
            lowered = v.strip().lower()
            mapping = {"strict": "Strict", "lax": "Lax", "none": "None", "no_restriction": "None"}
            # Chrome's "unspecified" has no equivalent; fall back to Lax.
            return mapping.get(lowered, "Lax")
        return v

    def to_browser_dict(self) -> dict[str, Any]:
        """Shape expected by ``BrowserContext.add_cookies`` and the cookie file."""
        return self.model_dump(by_alias=True)


class CookieInfo(BaseModel):
    """Summary of the live cookie set for the status payload."""

    model_config = ConfigDict(frozen=True)

    count: int
    expires: float | None = None


class CookieScore(BaseModel):
    """Cookie Scorer output: the 0-10 login score plus the live subset."""

    model_config = ConfigDict(frozen=True)

    score: int = Field(ge=0, le=10)
    live_cookies: tuple[CookieRecord, ...] = ()


class PageSnapshot(BaseModel):
    """DOM signals sampled from a live page. Recomputed on every inspection."""

    model_config = ConfigDict(frozen=True)

    url: str = ""
    title: str = ""
    has_user_elements: bool = False
    has_login_prompt: bool = False
    has_navigation: bool = False
    has_search_results_or_content: bool = False


class LoginVerdict(BaseModel):
    """The resolver's answer to "is this session logged in?"."""

    model_config = ConfigDict(frozen=True)

    is_logged_in: bool
    score: int = 0
    cookie_score: int = 0
    page_signal: PageSnapshot | None = None
    cookie_info: CookieInfo | None = None
    computed_at: datetime = Field(default_factory=datetime.now)
    error: str | None = None

    def to_status(self) -> dict[str, Any]:
        """Project into the status payload consumed by UI layers."""
        return {
            "isLoggedIn": self.is_logged_in,
            "loginScore": self.score,
            "cookieInfo": self.cookie_info.model_dump() if self.cookie_info else None,
        }


class GateState(BaseModel):
    """Snapshot of the login-attempt gate (timestamps from the gate's clock)."""

    model_config = ConfigDict(frozen=True)

    is_reopening: bool = False
    owner_instance_id: str | None = None
    last_attempt_at: float | None = None
    last_reopen_at: float | None = None
    failed_attempts: int = 0


class BatchItemResult(BaseModel):
    """Outcome of a single keyword in a batch run."""

    keyword: str
    status: Literal["ok", "no_content", "not_authenticated", "failed"]
    url: str = ""
    has_content: bool = False
    error: str | None = None
    started_at: datetime = Field(default_factory=datetime.now)
    finished_at: datetime = Field(default_factory=datetime.now)
