"""
Community Feed Storage  (Supabase)
==================================
Tables:
  - community_posts       – posts, with cached likes_count / comments_count
  - community_post_likes  – one row per (post, wallet)
  - community_comments    – comments on posts
  - community_shares      – one row per share, with the target platform
  - community_follows     – follower_wallet -> following_wallet
  - user_profiles         – read only, for author names and profile pages

Follow statistics are counted from ``community_follows`` directly.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Optional

from .base import SupabaseStore, iso_now, new_id

logger = logging.getLogger(__name__)

MAX_POST_LENGTH = 1000
FEED_TABS = ("latest", "popular", "ai", "following")
SHARE_PLATFORMS = ("internal", "twitter", "telegram", "discord", "link")
DEFAULT_AVATAR = "/placeholder.svg"


def display_handle(username: Optional[str], wallet_address: str) -> str:
    if username:
        return "@" + re.sub(r"\s+", "", username.lower())
    return f"@{wallet_address[:8]}"


def display_name(username: Optional[str], wallet_address: str) -> str:
    if username:
        return username
    return f"User {wallet_address[:4]}...{wallet_address[-4:]}"


class CommunityStore(SupabaseStore):

    POSTS = "community_posts"
    LIKES = "community_post_likes"
    COMMENTS = "community_comments"
    SHARES = "community_shares"
    FOLLOWS = "community_follows"
    PROFILES = "user_profiles"

    # ══════════════════════════════════════════════════════════════
    # Posts
    # ══════════════════════════════════════════════════════════════

    def list_posts(self, tab: str = "latest", wallet_address: Optional[str] = None) -> List[Dict[str, Any]]:
        if tab not in FEED_TABS:
            raise ValueError(f"Unknown feed tab '{tab}', expected one of {', '.join(FEED_TABS)}")

        query = self.sb.table(self.POSTS).select("*")
        if tab == "following":
            following = self._following_wallets(wallet_address) if wallet_address else []
            if not following:
                return []
            query = query.in_("wallet_address", following)

        if tab == "popular":
            query = query.order("likes_count", desc=True)
        else:
            if tab == "ai":
                query = query.eq("is_ai_generated", True)
            query = query.order("created_at", desc=True)

        posts = self.rows(query.execute())
        return self._decorate(posts)

    def _decorate(self, posts: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Attach author display info and engagement counts."""
        if not posts:
            return []
        post_ids = [p["id"] for p in posts]
        likes = self.rows(
            self.sb.table(self.LIKES).select("post_id").in_("post_id", post_ids).execute()
        )
        comments = self.rows(
            self.sb.table(self.COMMENTS).select("post_id").in_("post_id", post_ids).execute()
        )
        profiles = self._profiles({p["wallet_address"] for p in posts})

        out: List[Dict[str, Any]] = []
        for post in posts:
            wallet = post["wallet_address"]
            profile = profiles.get(wallet, {})
            username = profile.get("username")
            out.append({
                **post,
                "author": {
                    "username": display_name(username, wallet),
                    "avatar": profile.get("avatar_url") or DEFAULT_AVATAR,
                },
                "handle": display_handle(username, wallet),
                "engagement": {
                    "likes": sum(1 for like in likes if like["post_id"] == post["id"]),
                    "comments": sum(1 for c in comments if c["post_id"] == post["id"]),
                    "shares": post.get("shares_count") or 0,
                },
            })
        return out

    def _profiles(self, wallets) -> Dict[str, Dict[str, Any]]:
        if not wallets:
            return {}
        result = (
            self.sb.table(self.PROFILES)
            .select("wallet_address, username, avatar_url, bio")
            .in_("wallet_address", sorted(wallets))
            .execute()
        )
        return {p["wallet_address"]: p for p in self.rows(result)}

    def get_post(self, post_id: str) -> Optional[Dict[str, Any]]:
        row = self.first(self.sb.table(self.POSTS).select("*").eq("id", post_id).limit(1).execute())
        if row is None:
            return None
        return self._decorate([row])[0]

    def create_post(
        self,
        wallet_address: str,
        content: str,
        image_url: Optional[str] = None,
        tags: Optional[List[str]] = None,
        is_ai_generated: bool = False,
        accuracy_percentage: Optional[float] = None,
    ) -> Dict[str, Any]:
        content = (content or "").strip()
        if not wallet_address:
            raise ValueError("Wallet address is required")
        if not content:
            raise ValueError("Post content is required")
        if len(content) > MAX_POST_LENGTH:
            raise ValueError(f"Post content exceeds {MAX_POST_LENGTH} characters")

        row = {
            "id": new_id(),
            "wallet_address": wallet_address,
            "content": content,
            "image_url": image_url,
            "tags": tags or [],
            "is_ai_generated": is_ai_generated,
            "accuracy_percentage": accuracy_percentage,
            "likes_count": 0,
            "comments_count": 0,
            "shares_count": 0,
            "created_at": iso_now(),
            "updated_at": iso_now(),
        }
        stored = self.first(self.sb.table(self.POSTS).insert(row).execute()) or row
        return self._decorate([stored])[0]

    def delete_post(self, post_id: str, wallet_address: str) -> bool:
        """Only the author may delete; returns False when the post is missing."""
        row = self.first(
            self.sb.table(self.POSTS).select("id, wallet_address").eq("id", post_id).limit(1).execute()
        )
        if row is None:
            return False
        if row["wallet_address"] != wallet_address:
            raise PermissionError("Only the author can delete this post")
        self.sb.table(self.LIKES).delete().eq("post_id", post_id).execute()
        self.sb.table(self.COMMENTS).delete().eq("post_id", post_id).execute()
        self.sb.table(self.SHARES).delete().eq("post_id", post_id).execute()
        self.sb.table(self.POSTS).delete().eq("id", post_id).execute()
        return True

    def count_posts(self, wallet_address: str) -> int:
        result = (
            self.sb.table(self.POSTS)
            .select("id", count="exact")
            .eq("wallet_address", wallet_address)
            .execute()
        )
        return result.count or 0

    # ══════════════════════════════════════════════════════════════
    # Likes & comments
    # ══════════════════════════════════════════════════════════════

    def toggle_like(self, post_id: str, wallet_address: str) -> Dict[str, Any]:
        existing = self.first(
            self.sb.table(self.LIKES)
            .select("id")
            .eq("post_id", post_id)
            .eq("wallet_address", wallet_address)
            .limit(1)
            .execute()
        )
        if existing:
            self.sb.table(self.LIKES).delete().eq("id", existing["id"]).execute()
        else:
            self.sb.table(self.LIKES).insert({
                "id": new_id(),
                "post_id": post_id,
                "wallet_address": wallet_address,
                "created_at": iso_now(),
            }).execute()

        likes = self._count(self.LIKES, post_id)
        self.sb.table(self.POSTS).update({"likes_count": likes}).eq("id", post_id).execute()
        return {"liked": not existing, "likes": likes}

    def _count(self, table: str, post_id: str) -> int:
        result = self.sb.table(table).select("id", count="exact").eq("post_id", post_id).execute()
        return result.count or 0

    def list_comments(self, post_id: str) -> List[Dict[str, Any]]:
        comments = self.rows(
            self.sb.table(self.COMMENTS)
            .select("*")
            .eq("post_id", post_id)
            .order("created_at", desc=False)
            .execute()
        )
        profiles = self._profiles({c["wallet_address"] for c in comments})
        for comment in comments:
            username = profiles.get(comment["wallet_address"], {}).get("username")
            comment["handle"] = display_handle(username, comment["wallet_address"])
        return comments

    def add_comment(self, post_id: str, wallet_address: str, content: str) -> Dict[str, Any]:
        content = (content or "").strip()
        if not content:
            raise ValueError("Comment content is required")
        if len(content) > MAX_POST_LENGTH:
            raise ValueError(f"Comment exceeds {MAX_POST_LENGTH} characters")

        row = {
            "id": new_id(),
            "post_id": post_id,
            "wallet_address": wallet_address,
            "content": content,
            "created_at": iso_now(),
        }
        stored = self.first(self.sb.table(self.COMMENTS).insert(row).execute()) or row
        self._sync_comment_count(post_id)
        return stored

    def delete_comment(self, comment_id: str, wallet_address: str) -> bool:
        row = self.first(
            self.sb.table(self.COMMENTS).select("*").eq("id", comment_id).limit(1).execute()
        )
        if row is None:
            return False
        if row["wallet_address"] != wallet_address:
            raise PermissionError("Only the author can delete this comment")
        self.sb.table(self.COMMENTS).delete().eq("id", comment_id).execute()
        self._sync_comment_count(row["post_id"])
        return True

    def _sync_comment_count(self, post_id: str) -> None:
        count = self._count(self.COMMENTS, post_id)
        self.sb.table(self.POSTS).update({"comments_count": count}).eq("id", post_id).execute()

    def share_post(self, post_id: str, wallet_address: str, platform: str = "internal") -> Optional[Dict[str, Any]]:
        """Record a share and refresh ``shares_count``.  None when the post is missing."""
        if not wallet_address:
            raise ValueError("Wallet address is required")
        if platform not in SHARE_PLATFORMS:
            raise ValueError(f"Unknown share platform '{platform}'")
        post = self.first(self.sb.table(self.POSTS).select("id").eq("id", post_id).limit(1).execute())
        if post is None:
            return None

        self.sb.table(self.SHARES).insert({
            "id": new_id(),
            "post_id": post_id,
            "wallet_address": wallet_address,
            "platform": platform,
            "created_at": iso_now(),
        }).execute()
        shares = self._count(self.SHARES, post_id)
        self.sb.table(self.POSTS).update({"shares_count": shares}).eq("id", post_id).execute()
        return {"shared": True, "platform": platform, "shares": shares}

    # ══════════════════════════════════════════════════════════════
    # Follows
    # ══════════════════════════════════════════════════════════════

    def _following_wallets(self, wallet_address: str) -> List[str]:
        result = (
            self.sb.table(self.FOLLOWS)
            .select("following_wallet")
            .eq("follower_wallet", wallet_address)
            .execute()
        )
        return [r["following_wallet"] for r in self.rows(result)]

    def _is_following(self, follower: str, target: str) -> bool:
        result = (
            self.sb.table(self.FOLLOWS)
            .select("follower_wallet")
            .eq("follower_wallet", follower)
            .eq("following_wallet", target)
            .limit(1)
            .execute()
        )
        return bool(self.rows(result))

    def toggle_follow(self, target_wallet: str, follower_wallet: str) -> Dict[str, Any]:
        if not target_wallet or not follower_wallet:
            raise ValueError("Both wallet addresses are required")
        if target_wallet == follower_wallet:
            raise ValueError("Cannot follow yourself")

        if self._is_following(follower_wallet, target_wallet):
            (
                self.sb.table(self.FOLLOWS)
                .delete()
                .eq("follower_wallet", follower_wallet)
                .eq("following_wallet", target_wallet)
                .execute()
            )
            following = False
        else:
            self.sb.table(self.FOLLOWS).insert({
                "follower_wallet": follower_wallet,
                "following_wallet": target_wallet,
                "created_at": iso_now(),
            }).execute()
            following = True

        target = self.get_follow_stats(target_wallet)
        follower = self.get_follow_stats(follower_wallet)
        return {
            "following": following,
            "follower_count": target["follower_count"],
            "following_count": target["following_count"],
            "user_follower_count": follower["follower_count"],
            "user_following_count": follower["following_count"],
        }

    def get_follow_stats(self, wallet_address: str, current_wallet: Optional[str] = None) -> Dict[str, Any]:
        followers = (
            self.sb.table(self.FOLLOWS)
            .select("follower_wallet", count="exact")
            .eq("following_wallet", wallet_address)
            .execute()
        )
        following = (
            self.sb.table(self.FOLLOWS)
            .select("following_wallet", count="exact")
            .eq("follower_wallet", wallet_address)
            .execute()
        )
        is_following = bool(
            current_wallet
            and current_wallet != wallet_address
            and self._is_following(current_wallet, wallet_address)
        )
        return {
            "follower_count": followers.count or 0,
            "following_count": following.count or 0,
            "is_following": is_following,
        }

    def get_profile(self, wallet_address: str, current_wallet: Optional[str] = None) -> Dict[str, Any]:
        """
        Public profile card: display info, follower / following / post
        counts and whether *current_wallet* follows this wallet.  Wallets
        without a ``user_profiles`` row get the generated name and handle.
        """
        if not wallet_address:
            raise ValueError("Wallet address is required")
        [person] = self._people([wallet_address])
        stats = self.get_follow_stats(wallet_address, current_wallet)
        return {
            **person,
            "followers_count": stats["follower_count"],
            "following_count": stats["following_count"],
            "posts_count": self.count_posts(wallet_address),
            "is_following": stats["is_following"],
        }

    def list_followers(self, wallet_address: str) -> List[Dict[str, Any]]:
        result = (
            self.sb.table(self.FOLLOWS)
            .select("follower_wallet")
            .eq("following_wallet", wallet_address)
            .execute()
        )
        return self._people([r["follower_wallet"] for r in self.rows(result)])

    def list_following(self, wallet_address: str) -> List[Dict[str, Any]]:
        return self._people(self._following_wallets(wallet_address))

    def _people(self, wallets: List[str]) -> List[Dict[str, Any]]:
        profiles = self._profiles(set(wallets))
        people: List[Dict[str, Any]] = []
        for wallet in wallets:
            profile = profiles.get(wallet, {})
            username = profile.get("username")
            people.append({
                "wallet_address": wallet,
                "username": username,
                "bio": profile.get("bio"),
                "name": display_name(username, wallet),
                "handle": display_handle(username, wallet),
                "avatar": profile.get("avatar_url") or DEFAULT_AVATAR,
            })
        return people
