"""
API routers package
"""
from votebeats.api import (
    system,
    rankings,
    requests
)

__all__ = [
    "system",
    "rankings",
    "requests"
]
