"""
Entry point for the cvpn HTTP API.

Run locally:
    uvicorn cvpn.main:app --reload

Interactive docs available at:
    http://localhost:8000/docs  (Swagger UI)
"""

import logging

from fastapi import FastAPI

from cvpn.apis.auth import router as auth_router
from cvpn.apis.vpn import router as vpn_router
from cvpn.config import settings

# ── Logging ───────────────────────────────────────────────────────────────────
logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s  %(levelname)-8s  %(name)s  %(message)s",
)

# ── FastAPI app ───────────────────────────────────────────────────────────────
app = FastAPI(
    title="cvpn",
    description=(
        "Provision and tear down site-to-site VPN networks and gateways on AWS. "
        "All endpoints except `/auth/token` and `/health` require an operator "
        "Bearer token."
    ),
    version="1.0.0",
)

# ── Routers ───────────────────────────────────────────────────────────────────
app.include_router(auth_router)
app.include_router(vpn_router)


# ── Health check ──────────────────────────────────────────────────────────────
@app.get("/health", tags=["Health"], summary="Health check")
def health() -> dict:
    """Returns 200 OK when the service is running."""
    return {"status": "ok"}
