import hashlib
import json
from typing import Any, Dict, List, Optional
from fastapi import Response, status
from pydantic import BaseModel, Field

from lrems_backend.settings import settings


class FreshnessDirective(BaseModel):
    max_age: int = 120
    stale_while_revalidate: int = 600

    @classmethod
    def from_settings(cls) -> "FreshnessDirective":
        return cls(
            max_age=settings.RESPONSE_MAX_AGE,
            stale_while_revalidate=settings.RESPONSE_STALE_WHILE_REVALIDATE,
        )

    def header_value(self) -> str:
        return f"public, max-age={self.max_age}, stale-while-revalidate={self.stale_while_revalidate}"


class ConditionalResult(BaseModel):
    fingerprint: str
    not_modified: bool
    headers: Dict[str, str] = Field(default_factory=dict)


def serialize_body(payload: Any) -> bytes:
    """Deterministic JSON encoding; equal payloads give equal bytes"""
    if isinstance(payload, BaseModel):
        payload = payload.model_dump(mode="json")

    return json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str).encode("utf-8")


def compute_fingerprint(body: bytes) -> str:
    return f'W/"{hashlib.sha256(body).hexdigest()[:32]}"'


def _opaque_tag(tag: str) -> str:
    tag = tag.strip()
    if tag.startswith("W/"):
        tag = tag[2:]
    return tag


def parse_if_none_match(header: Optional[str]) -> List[str]:
    if header is None:
        return []
    return [t.strip() for t in header.split(",") if t.strip() != ""]


def evaluate_conditional(body: bytes, if_none_match: Optional[str], freshness: Optional[FreshnessDirective] = None) -> ConditionalResult:
    freshness = freshness or FreshnessDirective()
    fingerprint = compute_fingerprint(body)

    headers = {
        "ETag": fingerprint,
        "Cache-Control": freshness.header_value(),
    }

    tags = parse_if_none_match(if_none_match)

    # Weak comparison
    not_modified = "*" in tags or any(_opaque_tag(t) == _opaque_tag(fingerprint) for t in tags)

    return ConditionalResult(fingerprint=fingerprint, not_modified=not_modified, headers=headers)


def conditional_response(payload: Any, if_none_match: Optional[str], freshness: Optional[FreshnessDirective] = None) -> Response:
    body = serialize_body(payload)
    result = evaluate_conditional(body, if_none_match, freshness)

    if result.not_modified:
        return Response(status_code=status.HTTP_304_NOT_MODIFIED, headers=result.headers)

    return Response(content=body, status_code=status.HTTP_200_OK, media_type="application/json", headers=result.headers)
