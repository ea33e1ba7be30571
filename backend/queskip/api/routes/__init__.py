"""API routes."""

from fastapi import APIRouter

from queskip.api.routes import auth, businesses, queues, reviews, subscriptions, users

api_router = APIRouter()

api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(businesses.router, prefix="/businesses", tags=["businesses"])
api_router.include_router(queues.router, prefix="/queues", tags=["queues"])
api_router.include_router(reviews.router, prefix="/reviews", tags=["reviews"])
api_router.include_router(subscriptions.router, prefix="/subscriptions", tags=["subscriptions"])
api_router.include_router(users.router, prefix="/users", tags=["users"])
