# In routers/posts.py

import logging
from fastapi import APIRouter, HTTPException, Request, Depends, status, Query
from typing import List, Optional

from domain.errors import ForumValidationError, PostNotFound
from domain.posts import Post, PostCreate, ReplyCreate
from services.post_service import PostService

logger = logging.getLogger('uvicorn.error')

router = APIRouter(
    prefix="/posts",
    tags=["posts", "replies"]
)


# --- Helper Functions ---
async def get_post_service(request: Request) -> PostService:
    if not hasattr(request.app.state, 'service') or not request.app.state.service:
        logger.error("Post service not initialized or unavailable.")
        raise HTTPException(status_code=503, detail="Service unavailable")
    return request.app.state.service


def _not_found(post_id: str, action: str) -> HTTPException:
    logger.warning(f"{action}: post '{post_id}' not found.")
    return HTTPException(status_code=404, detail="Post not found")


# --- Post API Routes ---
@router.post("", response_model=Post, status_code=status.HTTP_201_CREATED)
async def create_post(
    post_in: PostCreate,
    service: PostService = Depends(get_post_service)
):
    try:
        return await service.create_post(post_in.title, post_in.content, post_in.author)
    except ForumValidationError as ve:
        raise HTTPException(status_code=400, detail=str(ve))
    except Exception as e:
        logger.exception(f"Error creating post for author '{post_in.author}': {e}")
        raise HTTPException(status_code=500, detail="Internal server error while creating post")


@router.get("", response_model=List[Post])
async def get_all_posts(
    sortBy: str = Query("date", description="'date' (newest first) or 'votes' (most voted first)"),
    service: PostService = Depends(get_post_service)
):
    try:
        return await service.list_posts(sortBy)
    except Exception as e:
        logger.exception(f"Error fetching posts sorted by '{sortBy}': {e}")
        raise HTTPException(status_code=500, detail="Internal server error while fetching posts")


# Declared ahead of /{post_id} so the literal path always wins.
@router.get("/search/query", response_model=List[Post])
async def search_posts(
    q: Optional[str] = Query(None, description="Case-insensitive text to look for in title, content or author"),
    service: PostService = Depends(get_post_service)
):
    try:
        return await service.search_posts(q)
    except Exception as e:
        logger.exception(f"Error searching posts for '{q}': {e}")
        raise HTTPException(status_code=500, detail="Internal server error while searching posts")


@router.get("/{post_id}", response_model=Post)
async def get_post_by_id(
    post_id: str,
    service: PostService = Depends(get_post_service)
):
    try:
        return await service.get_post(post_id)
    except PostNotFound:
        raise _not_found(post_id, "Fetch")
    except Exception as e:
        logger.exception(f"Error retrieving post {post_id}: {e}")
        raise HTTPException(status_code=500, detail="Internal server error while fetching post")


@router.post("/{post_id}/reply", response_model=Post, status_code=status.HTTP_201_CREATED)
async def add_reply(
    post_id: str,
    reply_in: ReplyCreate,
    service: PostService = Depends(get_post_service)
):
    try:
        return await service.add_reply(post_id, reply_in.content, reply_in.author)
    except ForumValidationError as ve:
        raise HTTPException(status_code=400, detail=str(ve))
    except PostNotFound:
        raise _not_found(post_id, "Reply")
    except Exception as e:
        logger.exception(f"Error adding reply to post '{post_id}' by '{reply_in.author}': {e}")
        raise HTTPException(status_code=500, detail="Internal server error while adding reply")


@router.post("/{post_id}/upvote", response_model=Post)
async def upvote_post(
    post_id: str,
    service: PostService = Depends(get_post_service)
):
    try:
        return await service.upvote(post_id)
    except PostNotFound:
        raise _not_found(post_id, "Upvote")
    except Exception as e:
        logger.exception(f"Error upvoting post '{post_id}': {e}")
        raise HTTPException(status_code=500, detail="Internal server error while upvoting post")


@router.post("/{post_id}/mark-answered", response_model=Post)
async def mark_as_answered(
    post_id: str,
    service: PostService = Depends(get_post_service)
):
    try:
        return await service.toggle_answered(post_id)
    except PostNotFound:
        raise _not_found(post_id, "Mark answered")
    except Exception as e:
        logger.exception(f"Error marking post '{post_id}' as answered: {e}")
        raise HTTPException(status_code=500, detail="Internal server error while marking post as answered")
