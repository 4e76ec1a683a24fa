from fastapi import FastAPI

from marketplace.api.v1.router import router as v1_router
from marketplace.core.telemetry import setup_telemetry

app = FastAPI(title="Marketplace API", version="0.1.0")

setup_telemetry(app)
app.include_router(v1_router)
