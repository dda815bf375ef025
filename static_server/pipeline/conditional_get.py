"""Conditional GET support: answer 304 when the client copy is fresh."""

from email.utils import parsedate_to_datetime
from http import HTTPStatus
from typing import Mapping, Optional

from static_server.domain.http_types import RequestContext
from static_server.pipeline.base import NextStage, Stage

CONDITIONAL_METHODS = ("GET", "HEAD")


def _parse_http_date(value: Optional[str]):
    if not value:
        return None
    try:
        return parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None


def _strip_weak(tag: str) -> str:
    return tag[2:] if tag.startswith("W/") else tag


def _none_match_satisfied(if_none_match: str, etag: Optional[str]) -> bool:
    if if_none_match.strip() == "*":
        return True
    if etag is None:
        return False
    target = _strip_weak(etag)
    return any(
        _strip_weak(candidate.strip()) == target
        for candidate in if_none_match.split(",")
    )


def is_fresh(
    request_headers: Mapping[str, str],
    etag: Optional[str],
    last_modified: Optional[str],
) -> bool:
    """Compare request validators against the response validators.

    ``request_headers`` uses lowercase keys. Without any validator, or when
    the client sent ``Cache-Control: no-cache``, the response is stale.
    """
    if_none_match = request_headers.get("if-none-match")
    if_modified_since = request_headers.get("if-modified-since")
    if not if_none_match and not if_modified_since:
        return False

    cache_control = request_headers.get("cache-control", "")
    if "no-cache" in cache_control.lower():
        return False

    if if_none_match and not _none_match_satisfied(if_none_match, etag):
        return False

    if if_modified_since:
        modified = _parse_http_date(last_modified)
        since = _parse_http_date(if_modified_since)
        if modified is None or since is None:
            return False
        try:
            if modified > since:
                return False
        except TypeError:
            return False

    return True


class ConditionalGetStage(Stage):
    """Turn fresh GET/HEAD responses into ``304 Not Modified``."""

    def __call__(self, context: RequestContext, call_next: NextStage) -> None:
        call_next()

        if context.method not in CONDITIONAL_METHODS:
            return
        status = int(context.status)
        if not (200 <= status < 300 or status == HTTPStatus.NOT_MODIFIED):
            return

        if is_fresh(
            context.request.headers,
            context.get_header("ETag"),
            context.get_header("Last-Modified"),
        ):
            context.status = HTTPStatus.NOT_MODIFIED
            context.body = None
