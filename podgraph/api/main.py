import uvicorn
from fastapi import FastAPI

from podgraph.api.models import HealthResponse
from podgraph.api.routes.episodes import router as episodes_router
from podgraph.config import settings

app = FastAPI(
    title="Podgraph API",
    description="Podcast transcript structuring and knowledge-graph ingestion",
    version="0.1.0",
)

app.include_router(episodes_router)


@app.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    return HealthResponse(status="healthy")


if __name__ == "__main__":
    uvicorn.run(
        app, host=settings.api_host, port=settings.api_port, log_level=settings.log_level.lower()
    )
