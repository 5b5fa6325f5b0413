"""Rate limiting via slowapi.

Bulk decision routes carry ``@limiter.limit``; the limiter is attached to
the app in main.py.
"""

from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address


def actor_or_address(request: Request) -> str:
    """Bucket by approver login once auth has run, else by client IP."""
    actor = getattr(request.state, "actor", None)
    if actor is not None:
        return f"actor:{actor.login_id}"
    return get_remote_address(request)


limiter = Limiter(
    key_func=actor_or_address,
    default_limits=["60/minute"],
)
