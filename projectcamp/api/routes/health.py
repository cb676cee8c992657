"""Liveness routes."""

from fastapi import APIRouter

router = APIRouter(tags=["health"])


@router.get("/")
async def root():
    return {"message": "Server is running"}


@router.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


__all__ = ["router"]
