"""
Admin API endpoints.

All endpoints require the X-Admin-Token header.

Submodules:
    - tests: Test provisioning, placement preview and review
    - config: Finalizer section weights
"""
from fastapi import APIRouter

from . import config, tests

router = APIRouter()

router.include_router(tests.router, tags=["Admin - Tests"])
router.include_router(config.router, tags=["Admin - Config"])
