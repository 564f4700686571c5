"""Rate limiting for the AI-backed routes using slowapi."""

from slowapi import Limiter
from slowapi.util import get_remote_address

# Keyed on the peer address; behind a proxy, uvicorn's --proxy-headers with
# --forwarded-allow-ips rewrites it from trusted X-Forwarded-For only
limiter = Limiter(key_func=get_remote_address)
