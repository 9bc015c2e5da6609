"""
Storage diagnostics endpoints
"""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from ...logging import get_logger
from ...storage.config import get_storage_info
from ...storage.factory import StorageFactory
from ...storage.validator import TOSConfigValidator
from ..deps import get_storage_factory, get_validator

logger = get_logger(__name__)
router = APIRouter()


@router.get("/info")
async def storage_info(factory: StorageFactory = Depends(get_storage_factory)):
    """Describe the configured storage backend without exposing credentials."""
    return {"success": True, "data": get_storage_info(factory.environ)}


@router.post("/validate")
async def validate_storage(validator: TOSConfigValidator = Depends(get_validator)):
    try:
        result = await validator.validate_configuration()
    except Exception as e:
        logger.error("Storage validation raised", error=str(e))
        return JSONResponse(
            status_code=500,
            content={
                "is_valid": False,
                "errors": [f"Validation error: {e}"],
                "warnings": [],
                "info": {},
            },
        )
    return result.to_dict()


@router.post("/test")
async def test_storage(validator: TOSConfigValidator = Depends(get_validator)):
    try:
        result = await validator.test_upload()
    except Exception as e:
        logger.error("Storage round-trip test raised", error=str(e))
        return JSONResponse(
            status_code=500,
            content={"success": False, "message": f"Test error: {e}"},
        )
    return result.to_dict()


@router.post("/reset")
async def reset_storage(factory: StorageFactory = Depends(get_storage_factory)):
    """Drop the cached provider so the next request reloads configuration."""
    factory.reset_instance()
    return {"success": True, "message": "Storage provider reset"}
