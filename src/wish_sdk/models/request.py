"""Request model for prompt invocation and streaming."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

INVOKE_PATH = "/api/better-prompt/{slug}/invoke"
STREAM_PATH = "/api/better-prompt/{slug}/stream"
SCHEMA_PATH = "/api/prompts/schema"

TOKEN_HEADER = "x-platform-internal-call-token"
EVENT_STREAM_MEDIA_TYPE = "text/event-stream"


def build_url(base_url: str, path: str) -> str:
    """Join the API base URL and an absolute path."""
    return base_url.rstrip("/") + path


def build_headers(api_token: str | None, base_headers: dict[str, str]) -> dict[str, str]:
    """Attach the platform token header when a token is configured."""
    headers = dict(base_headers)
    if api_token:
        headers[TOKEN_HEADER] = api_token
    return headers


class StreamRequest(BaseModel):
    """Immutable description of one prompt call.

    Context variable values are sent as-is in the JSON body, so they should be
    strings or JSON scalars.
    """

    model_config = ConfigDict(frozen=True)

    slug: str = Field(min_length=1)
    context_variables: dict[str, Any] = Field(default_factory=dict)
    user_prompt: str | None = None
    api_url: str = Field(min_length=1)
    api_token: str | None = None
    timeout_seconds: float = Field(default=30.0, gt=0)
    stream_timeout_seconds: float | None = Field(default=None, gt=0)

    @field_validator("context_variables", mode="before")
    @classmethod
    def stringify_keys(cls, v):
        """Accept any mapping, keying variables by name."""
        if v is None:
            return {}
        return {str(key): value for key, value in dict(v).items()}

    def body(self) -> dict[str, Any]:
        """JSON body shared by the invoke and stream endpoints."""
        payload: dict[str, Any] = {"context_variables": dict(self.context_variables)}
        if self.user_prompt is not None:
            payload["user_prompt"] = self.user_prompt
        return payload

    @property
    def invoke_url(self) -> str:
        return build_url(self.api_url, INVOKE_PATH.format(slug=self.slug))

    @property
    def stream_url(self) -> str:
        return build_url(self.api_url, STREAM_PATH.format(slug=self.slug))

    def headers(self, stream: bool = False) -> dict[str, str]:
        """HTTP headers for this request."""
        base = {"content-type": "application/json"}
        if stream:
            base["accept"] = EVENT_STREAM_MEDIA_TYPE
        return build_headers(self.api_token, base)
