import time
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class Tier(str, Enum):
    RENDER = "render"
    HTTP = "http"


class PayloadShape(str, Enum):
    TEXT = "text"
    CAPTURE = "capture"


class FetchOptions(BaseModel):
    """
    Per-call options. Unset fields fall back to FetchConfig.

    camelCase aliases are accepted so an option record coming from a JSON
    request can be validated as-is.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    timeout: int | None = Field(default=None, description="navigation deadline in ms")
    wait_for_selector: str | None = Field(default=None, alias="waitForSelector")
    enable_api_capture: bool = Field(default=False, alias="enableApiCapture")
    cookie_file_path: str | None = Field(default=None, alias="cookieFilePath")
    proxy: str | None = None
    block_resources: bool | None = Field(default=None, alias="blockResources")


@dataclass(frozen=True)
class FetchRequest:
    url: str
    options: FetchOptions = field(default_factory=FetchOptions)


@dataclass(frozen=True)
class CapturedJson:
    url: str
    value: Any

    def to_dict(self) -> dict:
        return {"url": self.url, "json": self.value}


@dataclass(frozen=True)
class CapturedText:
    url: str
    text: str

    def to_dict(self) -> dict:
        return {"url": self.url, "text": self.text}


Captured = CapturedJson | CapturedText


@dataclass(frozen=True)
class RenderResult:
    """Markup returned by the browser tier plus any captured API responses, in arrival order."""
    html: str
    captured: tuple[Captured, ...] = ()


@dataclass(frozen=True)
class FetchAttempt:
    """
    One physical fetch try.

    Fields:
        url       : URL actually requested (may be a transformed variant).
        tier      : Which strategy ran it, "render" or "http".
        success   : Whether this try produced usable content.
        error     : "<ErrorClass>: message" when the try failed.
        payload   : "text" or "capture" on success.
        state     : Fallback-chain state the try belonged to, if any.
        elapsed_s : Wall-clock time spent on this try.
    """
    url: str
    tier: Tier
    success: bool
    error: str | None = None
    payload: PayloadShape | None = None
    state: str | None = None
    elapsed_s: float = 0.0


class AttemptTrail:
    """
    Append-only, ordered log of every try within one run.

    `state` tags subsequent records with the fallback-chain state currently
    being walked.
    """

    def __init__(self):
        self._attempts: list[FetchAttempt] = []
        self.state: str | None = None

    def record(
        self,
        url: str,
        tier: Tier,
        *,
        error: str | None = None,
        payload: PayloadShape | None = None,
        elapsed_s: float = 0.0,
    ) -> FetchAttempt:
        attempt = FetchAttempt(
            url=url,
            tier=tier,
            success=error is None,
            error=error,
            payload=payload if error is None else None,
            state=self.state,
            elapsed_s=elapsed_s,
        )
        self._attempts.append(attempt)
        return attempt

    @property
    def last_error(self) -> str | None:
        for attempt in reversed(self._attempts):
            if attempt.error:
                return attempt.error
        return None

    def snapshot(self) -> tuple[FetchAttempt, ...]:
        return tuple(self._attempts)

    def __iter__(self):
        return iter(self._attempts)

    def __len__(self) -> int:
        return len(self._attempts)


@dataclass(frozen=True)
class FetchOutcome:
    """
    Terminal result of one fetch run, built once and never mutated.

    On failure `html` is None and `error` carries the last recorded error.
    `state` names the fallback-chain state that produced the content when the
    run went through the mirror chain.
    """
    source_url: str
    success: bool
    html: str | None
    attempts: tuple[FetchAttempt, ...]
    elapsed_s: float
    timestamp: str
    final_url: str | None = None
    error: str | None = None
    state: str | None = None
    captured: tuple[Captured, ...] = ()

    @property
    def raw_html_length(self) -> int:
        return len(self.html) if self.html is not None else 0

    @classmethod
    def finish(
        cls,
        source_url: str,
        trail: AttemptTrail,
        started: float,
        *,
        result: RenderResult | str | None = None,
        final_url: str | None = None,
        state: str | None = None,
    ) -> "FetchOutcome":
        """Build the outcome from the trail; `started` is a time.perf_counter() reading."""
        if isinstance(result, RenderResult):
            html, captured = result.html, result.captured
        else:
            html, captured = result, ()
        success = html is not None
        return cls(
            source_url=source_url,
            success=success,
            html=html,
            attempts=trail.snapshot(),
            elapsed_s=time.perf_counter() - started,
            timestamp=datetime.now(timezone.utc).isoformat(),
            final_url=final_url if success else None,
            error=None if success else (trail.last_error or "All fetch attempts failed"),
            state=state if success else None,
            captured=captured,
        )

    def to_dict(self, include_html: bool = False) -> dict:
        data = {
            "sourceUrl": self.source_url,
            "success": self.success,
            "finalAttemptUrl": self.final_url,
            "state": self.state,
            "error": self.error,
            "rawHtmlLength": self.raw_html_length,
            "durationMs": round(self.elapsed_s * 1000),
            "timestamp": self.timestamp,
            "attempts": [
                {k: (v.value if isinstance(v, Enum) else v) for k, v in asdict(a).items()}
                for a in self.attempts
            ],
            "captured": [c.to_dict() for c in self.captured],
        }
        if include_html:
            data["rawHtml"] = self.html
        return data
