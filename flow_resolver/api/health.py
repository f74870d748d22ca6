"""Liveness endpoint."""

from fastapi import APIRouter

from flow_resolver.routing.rail_catalog import RAIL_CATALOG

router = APIRouter(tags=["health"])


@router.get("/health")
async def health():
    return {"status": "ok", "rails": len(RAIL_CATALOG)}
