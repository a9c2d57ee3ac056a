# Router aggregator – import each route module here and expose ``api_router``
# for convenient inclusion in the FastAPI app.

from fastapi import APIRouter

from . import (
    routes_generation,
    routes_jobs,
)


api_router = APIRouter()
api_router.include_router(routes_generation.router, prefix="/admin/blog", tags=["blog-generation"])
api_router.include_router(routes_jobs.router, prefix="/admin/blog", tags=["blog-generation-jobs"])
