from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logging

from apiflow.api.routes import router
from apiflow.config import get_settings

settings = get_settings()

# Configure logging
logging.basicConfig(level=settings.log_level.upper())
logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    description="Compile node/edge workflow graphs and run them as APIs",
    version=settings.app_version
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router, prefix=settings.api_prefix)


@app.get("/")
async def root():
    """Root endpoint with API information"""
    prefix = settings.api_prefix
    return {
        "message": settings.app_name,
        "version": settings.app_version,
        "docs": "/docs",
        "endpoints": {
            "compile_graph": f"POST {prefix}/graph/compile",
            "create_graph": f"POST {prefix}/graph/create",
            "run_graph": f"POST {prefix}/graph/run",
            "execute_steps": f"POST {prefix}/execute",
            "publish_graph": f"POST {prefix}/graph/{{graph_id}}/publish",
            "run_published": f"POST {prefix}/run/{{graph_id}}/{{slug}}",
            "get_run": f"GET {prefix}/runs/{{run_id}}",
            "run_logs": f"GET {prefix}/runs/{{run_id}}/logs",
            "websocket_logs": f"WS {prefix}/ws/executions/{{run_id}}",
            "list_graphs": f"GET {prefix}/graphs",
            "list_steps": f"GET {prefix}/steps",
            "list_collections": f"GET {prefix}/collections",
            "memory_stats": f"GET {prefix}/memory/stats",
            "demo_signup": f"POST {prefix}/demo/signup"
        }
    }


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
