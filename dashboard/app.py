from fastapi import FastAPI

from .routes import router

app = FastAPI(title="PlayPulse", description="Media play history analytics")

app.include_router(router)
