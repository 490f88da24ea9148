"""FastAPI entry point for the commission back office."""
from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse

from salesdesk import __version__
from salesdesk.database import init_db
from salesdesk.exceptions import SalesDeskError
from salesdesk.routers import clients, commissions, distributors, qualification

logging.basicConfig(
    level=os.getenv("SALESDESK_LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


@asynccontextmanager
async def lifespan(_: FastAPI):
    init_db()
    yield


app = FastAPI(title="Sales Desk", version=__version__, lifespan=lifespan)

app.include_router(distributors.router)
app.include_router(clients.router)
app.include_router(commissions.router)
app.include_router(qualification.router)


@app.get("/health")
def health() -> Response:
    """Simple health endpoint for load balancers and platform checks."""
    return Response(content='{"status":"ok"}', media_type="application/json")


@app.exception_handler(SalesDeskError)
async def sales_desk_error(_: Request, exc: SalesDeskError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"detail": str(exc)})
