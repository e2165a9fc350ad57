import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api.routes import api_router
from .config import MediaflowConfig
from .handlers.builtin import BUILTIN_NODE_CONFIGS
from .services.execution_manager import create_execution_manager
from .services.node_config_registry import InMemoryNodeConfigRegistry

logging.basicConfig(
    level=MediaflowConfig.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application lifespan: build the execution manager on startup.
    """
    logger.info("Starting mediaflow...")
    node_registry = InMemoryNodeConfigRegistry(BUILTIN_NODE_CONFIGS)
    app.state.node_registry = node_registry
    app.state.execution_manager = create_execution_manager(node_registry)
    logger.info(
        "Execution manager ready with %d dynamic node types",
        len(node_registry.get_all_registered_types()),
    )

    yield

    logger.info("Shutting down mediaflow...")


app = FastAPI(
    title="mediaflow",
    description="Routes AI media workflow nodes to legacy or configuration-driven executors and runs them through a uniform adapter pipeline.",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[],
    allow_origin_regex=r"^http:\/\/localhost:\d+$|^http:\/\/127\.0\.0\.1:\d+$",
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)

app.include_router(api_router)
