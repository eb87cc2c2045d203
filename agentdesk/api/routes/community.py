"""
Community Routes
================
Posts, likes, comments and follows for the social feed.

Posts
  GET    /api/v1/community/posts           – feed tab (latest | popular | ai | following)
  POST   /api/v1/community/posts           – create
  GET    /api/v1/community/posts/count     – posts by a wallet
  GET    /api/v1/community/posts/{id}      – one post
  DELETE /api/v1/community/posts/{id}      – author only
Likes / comments
  POST   /api/v1/community/likes           – toggle like
  POST   /api/v1/community/shares          – record a share
  GET    /api/v1/community/comments        – comments on a post
  POST   /api/v1/community/comments        – add
  DELETE /api/v1/community/comments/{id}   – author only
Follows
  POST   /api/v1/community/follow          – toggle follow
  GET    /api/v1/community/follow          – follow stats
  GET    /api/v1/community/followers       – who follows a wallet
  GET    /api/v1/community/following       – whom a wallet follows
  GET    /api/v1/community/profile         – profile card with counts
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from ..dependencies import get_community_store, verify_api_key
from ..error_handlers import BadRequestError, ForbiddenError, NotFoundError

router = APIRouter()


# ── Request Models ────────────────────────────────────────────────

class PostIn(BaseModel):
    wallet_address: str
    content: str
    image_url: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    is_ai_generated: bool = False
    accuracy_percentage: Optional[float] = None


class LikeIn(BaseModel):
    post_id: str
    wallet_address: str


class ShareIn(BaseModel):
    post_id: str
    wallet_address: str
    platform: str = "internal"


class CommentIn(BaseModel):
    post_id: str
    wallet_address: str
    content: str


class FollowIn(BaseModel):
    follow_id: str = Field(..., description="Wallet to follow or unfollow")
    follower_address: str


# ══════════════════════════════════════════════════════════════════
# Posts
# ══════════════════════════════════════════════════════════════════

@router.get("/community/posts", summary="Feed")
async def list_posts(
    tab: str = Query("latest"),
    wallet_address: Optional[str] = Query(None),
    community=Depends(get_community_store),
) -> List[Dict[str, Any]]:
    try:
        return community.list_posts(tab, wallet_address)
    except ValueError as exc:
        raise BadRequestError(str(exc))


@router.post("/community/posts", summary="Create a post")
async def create_post(
    body: PostIn,
    community=Depends(get_community_store),
    _api_key: str = Depends(verify_api_key),
) -> Dict[str, Any]:
    try:
        return community.create_post(
            body.wallet_address,
            body.content,
            image_url=body.image_url,
            tags=body.tags,
            is_ai_generated=body.is_ai_generated,
            accuracy_percentage=body.accuracy_percentage,
        )
    except ValueError as exc:
        raise BadRequestError(str(exc))


@router.get("/community/posts/count", summary="Post count for a wallet")
async def count_posts(
    wallet_address: str = Query(...),
    community=Depends(get_community_store),
) -> Dict[str, int]:
    return {"count": community.count_posts(wallet_address)}


@router.get("/community/posts/{post_id}", summary="One post")
async def get_post(post_id: str, community=Depends(get_community_store)) -> Dict[str, Any]:
    post = community.get_post(post_id)
    if post is None:
        raise NotFoundError("Post", post_id)
    return post


@router.delete("/community/posts/{post_id}", summary="Delete a post")
async def delete_post(
    post_id: str,
    wallet_address: str = Query(...),
    community=Depends(get_community_store),
    _api_key: str = Depends(verify_api_key),
) -> Dict[str, Any]:
    try:
        deleted = community.delete_post(post_id, wallet_address)
    except PermissionError as exc:
        raise ForbiddenError(str(exc))
    if not deleted:
        raise NotFoundError("Post", post_id)
    return {"success": True}


# ══════════════════════════════════════════════════════════════════
# Likes & comments
# ══════════════════════════════════════════════════════════════════

@router.post("/community/likes", summary="Toggle a like")
async def toggle_like(
    body: LikeIn,
    community=Depends(get_community_store),
    _api_key: str = Depends(verify_api_key),
) -> Dict[str, Any]:
    if community.get_post(body.post_id) is None:
        raise NotFoundError("Post", body.post_id)
    return community.toggle_like(body.post_id, body.wallet_address)


@router.post("/community/shares", summary="Share a post")
async def share_post(
    body: ShareIn,
    community=Depends(get_community_store),
    _api_key: str = Depends(verify_api_key),
) -> Dict[str, Any]:
    try:
        shared = community.share_post(body.post_id, body.wallet_address, body.platform)
    except ValueError as exc:
        raise BadRequestError(str(exc))
    if shared is None:
        raise NotFoundError("Post", body.post_id)
    return shared


@router.get("/community/comments", summary="Comments on a post")
async def list_comments(
    post_id: str = Query(...),
    community=Depends(get_community_store),
) -> List[Dict[str, Any]]:
    return community.list_comments(post_id)


@router.post("/community/comments", summary="Add a comment")
async def add_comment(
    body: CommentIn,
    community=Depends(get_community_store),
    _api_key: str = Depends(verify_api_key),
) -> Dict[str, Any]:
    if community.get_post(body.post_id) is None:
        raise NotFoundError("Post", body.post_id)
    try:
        return community.add_comment(body.post_id, body.wallet_address, body.content)
    except ValueError as exc:
        raise BadRequestError(str(exc))


@router.delete("/community/comments/{comment_id}", summary="Delete a comment")
async def delete_comment(
    comment_id: str,
    wallet_address: str = Query(...),
    community=Depends(get_community_store),
    _api_key: str = Depends(verify_api_key),
) -> Dict[str, Any]:
    try:
        deleted = community.delete_comment(comment_id, wallet_address)
    except PermissionError as exc:
        raise ForbiddenError(str(exc))
    if not deleted:
        raise NotFoundError("Comment", comment_id)
    return {"success": True}


# ══════════════════════════════════════════════════════════════════
# Follows
# ══════════════════════════════════════════════════════════════════

@router.post("/community/follow", summary="Toggle follow")
async def toggle_follow(
    body: FollowIn,
    community=Depends(get_community_store),
    _api_key: str = Depends(verify_api_key),
) -> Dict[str, Any]:
    try:
        return community.toggle_follow(body.follow_id, body.follower_address)
    except ValueError as exc:
        raise BadRequestError(str(exc))


@router.get("/community/follow", summary="Follow stats")
async def follow_stats(
    wallet_address: str = Query(...),
    current_wallet: Optional[str] = Query(None),
    community=Depends(get_community_store),
) -> Dict[str, Any]:
    return community.get_follow_stats(wallet_address, current_wallet)


@router.get("/community/followers", summary="Followers of a wallet")
async def list_followers(
    wallet_address: str = Query(...),
    community=Depends(get_community_store),
) -> List[Dict[str, Any]]:
    return community.list_followers(wallet_address)


@router.get("/community/following", summary="Wallets a wallet follows")
async def list_following(
    wallet_address: str = Query(...),
    community=Depends(get_community_store),
) -> List[Dict[str, Any]]:
    return community.list_following(wallet_address)


@router.get("/community/profile", summary="Profile card for a wallet")
async def get_profile(
    address: str = Query(...),
    current_wallet: Optional[str] = Query(None),
    community=Depends(get_community_store),
) -> Dict[str, Any]:
    try:
        return community.get_profile(address, current_wallet)
    except ValueError as exc:
        raise BadRequestError(str(exc))
