from __future__ import annotations

from fastapi import Request


def is_hx(request: Request) -> bool:
    return (request.headers.get("hx-request") or "").lower() == "true"


def is_fetch_request(request: Request) -> bool:
    return (request.headers.get("x-requested-with") or "").lower() == "fetch"


def wants_json(request: Request) -> bool:
    if is_hx(request):
        return False
    accept = (request.headers.get("accept") or "").lower()
    return is_fetch_request(request) or "application/json" in accept


def wants_html(request: Request) -> bool:
    accept = (request.headers.get("accept") or "").lower()
    # HTMX partials are HTML
    if is_hx(request):
        return True
    # Browser pages
    return ("text/html" in accept) or (accept in ("", "*/*"))


def request_path_with_query(request: Request) -> str:
    path = request.url.path or "/"
    query = request.url.query or ""
    return f"{path}?{query}" if query else path
