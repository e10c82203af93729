"""
Read-only HTTP API over the pipeline export.
"""
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.routes import node_providers

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="NP Ledger Reconciliation API",
    description="Node provider identity, reward and ledger activity export",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(node_providers.router, prefix="/api", tags=["Node Providers"])


@app.get("/api/health", tags=["Health"])
def health():
    return {"status": "ok", "service": "np-ledger-api", "version": "1.0.0"}
