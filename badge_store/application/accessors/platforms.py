"""
Per-platform accessors.

Key layout:
    github:{username}
    LEETCODE:{username}:{cn|us}
    csdn:{user_id}
    juejin:{user_id}
    bilibili:{uid}
"""

from badge_store.application.accessors.base import PlatformDataAccessor
from badge_store.core.config.constants import NAMESPACE_GITHUB
from badge_store.core.models.key_scheme import CacheKeyGenerator


class GitHubAccessor(PlatformDataAccessor):
    platform = "github"

    def key_for(self, username: str) -> str:
        return CacheKeyGenerator.generate(NAMESPACE_GITHUB, username)


class LeetCodeAccessor(PlatformDataAccessor):
    """LeetCode has separate CN and US sites; each region is its own record."""

    platform = "leetcode"

    def key_for(self, username: str, cn: bool = False) -> str:
        return CacheKeyGenerator.leetcode(username, cn=cn)


class CsdnAccessor(PlatformDataAccessor):
    platform = "csdn"

    def key_for(self, user_id: str) -> str:
        return CacheKeyGenerator.csdn(user_id)


class JuejinAccessor(PlatformDataAccessor):
    platform = "juejin"

    def key_for(self, user_id: str) -> str:
        return CacheKeyGenerator.juejin(user_id)


class BilibiliAccessor(PlatformDataAccessor):
    platform = "bilibili"

    def key_for(self, uid: str) -> str:
        return CacheKeyGenerator.bilibili(uid)
