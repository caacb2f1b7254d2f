from .base import PlatformDataAccessor, envelope_timestamp, wrap_envelope
from .platforms import BilibiliAccessor, CsdnAccessor, GitHubAccessor, JuejinAccessor, LeetCodeAccessor

__all__ = [
    "BilibiliAccessor",
    "CsdnAccessor",
    "GitHubAccessor",
    "JuejinAccessor",
    "LeetCodeAccessor",
    "PlatformDataAccessor",
    "envelope_timestamp",
    "wrap_envelope",
]
