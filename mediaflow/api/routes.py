from fastapi import APIRouter
from .v1 import execution

api_router = APIRouter(prefix="/api", tags=["mediaflow"])

api_router.include_router(execution.router, prefix="/v1", tags=["execution"])

@api_router.get("/")
def read_root():
    return {"message": "mediaflow execution service"}
