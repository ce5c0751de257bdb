import time

from fastapi import Request


async def log_requests(request: Request, call_next):
    """Print one line per request: method, path, status, duration"""
    start = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - start) * 1000
    icon = "✅" if response.status_code < 400 else "⚠️"
    print(f"{icon} {request.method} {request.url.path} -> {response.status_code} ({elapsed_ms:.1f}ms)")
    return response


async def security_headers(request: Request, call_next):
    response = await call_next(request)
    response.headers.setdefault("X-Content-Type-Options", "nosniff")
    response.headers.setdefault("X-Frame-Options", "DENY")
    response.headers.setdefault("Referrer-Policy", "no-referrer")
    return response
