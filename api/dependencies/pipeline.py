"""FastAPI dependency returning the pipeline built during startup."""

from fastapi import HTTPException, Request

from viz_agent.pipeline import VisualizationPipeline


def get_pipeline(request: Request) -> VisualizationPipeline:
    pipeline = getattr(request.app.state, "pipeline", None)
    if pipeline is None:
        raise HTTPException(status_code=503, detail="Service is starting up")
    return pipeline
