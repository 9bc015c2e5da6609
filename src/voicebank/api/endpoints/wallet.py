"""
Wallet endpoints: registration, sign-in, audio upload, recordings, reviews, batches and stats
"""

import time
from collections import Counter, defaultdict
from datetime import UTC, datetime
from typing import Annotated, Any

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Request, UploadFile
from pydantic import BaseModel, ConfigDict, Field

from ...config import settings
from ...database import WalletDatabase
from ...logging import get_logger
from ...storage.base import StorageFile
from ...storage.factory import StorageFactory
from ...storage.keys import build_recording_key, file_extension, is_valid_wallet_address
from ..deps import get_storage_factory, get_wallet_database

logger = get_logger(__name__)
router = APIRouter()

MAX_BATCH_ACTIVITIES = 100


def _bad_request(message: str) -> HTTPException:
    return HTTPException(status_code=400, detail={"success": False, "message": message})


def _server_error(message: str, error: Exception | str) -> HTTPException:
    return HTTPException(
        status_code=500, detail={"success": False, "message": message, "error": str(error)}
    )


def _require_wallet(wallet_address: str | None) -> str:
    if not wallet_address:
        raise _bad_request("Wallet address is required")
    if not is_valid_wallet_address(wallet_address):
        raise _bad_request("Invalid wallet address format")
    return wallet_address


def _client_ip(request: Request) -> str:
    return (
        request.headers.get("x-forwarded-for") or request.headers.get("x-real-ip") or "unknown"
    )


class WalletRegistration(BaseModel):
    """Wallet connect event; any extra fields are stored on the user record."""

    model_config = ConfigDict(extra="allow")

    wallet_address: str | None = None
    timestamp: str | None = None


class ClientInfo(BaseModel):
    browser: str | None = None
    language: str | None = None
    platform: str | None = None


class AuthRequest(BaseModel):
    model_config = ConfigDict(extra="allow")

    wallet_address: str | None = None
    user_info: ClientInfo | None = None


class BatchRequest(BaseModel):
    model_config = ConfigDict(extra="allow")

    wallet_address: str | None = None
    activities: list[dict[str, Any]] = Field(default_factory=list)


class RecordingData(BaseModel):
    sentence_id: str | None = None
    duration: float | None = None
    audio_quality: str = "medium"
    language: str | None = None


class RecordingRequest(BaseModel):
    wallet_address: str | None = None
    recording_data: RecordingData = Field(default_factory=RecordingData)
    metadata: dict[str, Any] = Field(default_factory=dict)


class ReviewData(BaseModel):
    review_type: str = "voice"
    items_reviewed: int = 1
    accuracy: float = 0


class ReviewRequest(BaseModel):
    wallet_address: str | None = None
    review_data: ReviewData = Field(default_factory=ReviewData)
    metadata: dict[str, Any] = Field(default_factory=dict)


@router.post("")
async def register_wallet(
    body: WalletRegistration,
    request: Request,
    database: WalletDatabase = Depends(get_wallet_database),
) -> dict:
    """Record a wallet connection, creating the user on first sight."""
    wallet_address = _require_wallet(body.wallet_address)
    user_info = {
        **(body.model_extra or {}),
        "last_access": body.timestamp or datetime.now(UTC).isoformat(),
        "ip_address": _client_ip(request),
    }

    try:
        rows = await database.upsert_user(wallet_address, user_info)
    except Exception as e:
        raise _server_error("Failed to record wallet", e) from e

    return {
        "success": True,
        "message": "Wallet recorded",
        "data": {
            "id": rows[0].get("id") if rows else None,
            "wallet_address": wallet_address,
            "timestamp": datetime.now(UTC).isoformat(),
        },
    }


@router.get("")
async def wallet_summary(
    wallet_address: str | None = None,
    database: WalletDatabase = Depends(get_wallet_database),
) -> dict:
    return await user_stats(wallet_address, database)


@router.post("/auth")
async def record_authentication(
    body: AuthRequest,
    request: Request,
    database: WalletDatabase = Depends(get_wallet_database),
) -> dict:
    """Store the client environment seen when a wallet signs in."""
    wallet_address = _require_wallet(body.wallet_address)
    extra = body.model_extra or {}
    client = body.user_info or ClientInfo()

    auth_info = {
        "browser": client.browser or extra.get("browser"),
        "language": client.language or extra.get("language"),
        "platform": client.platform or extra.get("platform"),
        "timestamp": datetime.now(UTC).isoformat(),
        "ip_address": _client_ip(request),
        "user_agent": request.headers.get("user-agent", "unknown"),
    }

    try:
        rows = await database.upsert_user(
            wallet_address, {"type": "authentication", "auth_info": auth_info, **extra}
        )
    except Exception as e:
        raise _server_error("Failed to record authentication", e) from e

    return {
        "success": True,
        "message": "Authentication recorded",
        "data": {
            "id": rows[0].get("id") if rows else None,
            "wallet_address": wallet_address,
            "auth_time": auth_info["timestamp"],
            "session_info": {
                "browser": auth_info["browser"],
                "language": auth_info["language"],
                "platform": auth_info["platform"],
            },
        },
    }


@router.post("/batch")
async def add_batch(
    body: BatchRequest,
    database: WalletDatabase = Depends(get_wallet_database),
) -> dict:
    """Insert up to ``MAX_BATCH_ACTIVITIES`` activities under one batch id."""
    wallet_address = _require_wallet(body.wallet_address)
    activities = body.activities
    if not activities:
        raise _bad_request("Activities must not be empty")
    if len(activities) > MAX_BATCH_ACTIVITIES:
        raise _bad_request(f"At most {MAX_BATCH_ACTIVITIES} activities per batch")

    now = datetime.now(UTC).isoformat()
    batch_id = f"batch_{int(time.time() * 1000)}_{wallet_address[-6:]}"
    rows = [
        {
            "wallet_address": wallet_address,
            "activity_type": activity.get("type") or "unknown",
            "activity_data": activity,
            "sequence_number": index,
            "metadata": {
                "type": "batch_activities",
                "batch_id": batch_id,
                "total_count": len(activities),
                **(body.model_extra or {}),
                "uploaded_at": now,
            },
        }
        for index, activity in enumerate(activities, start=1)
    ]

    try:
        inserted = await database.batch_add_activities(rows)
        await database.upsert_user(
            wallet_address,
            {"last_batch_upload": now, "total_batch_activities": len(activities)},
        )
    except Exception as e:
        raise _server_error("Batch upload failed", e) from e

    breakdown = Counter(row["activity_type"] for row in rows)
    logger.info("Batch activities recorded", batch_id=batch_id, count=len(rows))
    return {
        "success": True,
        "message": f"Uploaded {len(activities)} activities",
        "data": {
            "batch_id": batch_id,
            "wallet_address": wallet_address,
            "processed_count": len(inserted),
            "activity_breakdown": dict(breakdown),
            "upload_time": now,
        },
    }


@router.get("/batch")
async def list_batches(
    wallet_address: str | None = None,
    limit: Annotated[int, Query(ge=1, le=100)] = 10,
    offset: Annotated[int, Query(ge=0)] = 0,
    database: WalletDatabase = Depends(get_wallet_database),
) -> dict:
    _require_wallet(wallet_address)
    try:
        records = await database.list_batch_activities(wallet_address, limit, offset)
    except Exception as e:
        raise _server_error("Failed to fetch batch history", e) from e

    groups: dict[str, list[dict[str, Any]]] = defaultdict(list)
    for record in records:
        batch_id = (record.get("metadata") or {}).get("batch_id") or "unknown"
        groups[batch_id].append(record)

    return {
        "success": True,
        "message": "Batch history fetched",
        "data": {
            "batch_groups": dict(groups),
            "total_batches": len(groups),
            "pagination": {"limit": limit, "offset": offset, "total": len(records)},
        },
    }


@router.post("/upload-audio")
async def upload_audio(
    request: Request,
    audio_file: Annotated[UploadFile | None, File()] = None,
    wallet_address: Annotated[str | None, Form()] = None,
    sentence_id: Annotated[str | None, Form()] = None,
    sentence_text: Annotated[str, Form()] = "",
    duration: Annotated[float, Form()] = 0.0,
    audio_quality: Annotated[str, Form()] = "medium",
    factory: StorageFactory = Depends(get_storage_factory),
    database: WalletDatabase = Depends(get_wallet_database),
) -> dict:
    """Store a recorded sentence and register it as a contribution."""
    if audio_file is None or not wallet_address or not sentence_id:
        raise _bad_request("Missing required fields: audio_file, wallet_address, sentence_id")
    _require_wallet(wallet_address)

    content_type = audio_file.content_type or ""
    if content_type not in settings.allowed_audio_types:
        raise _bad_request(f"Unsupported audio format: {content_type or 'unknown'}")

    try:
        content = await audio_file.read()
    except Exception as e:
        logger.error("Failed to read uploaded file", error=str(e), filename=audio_file.filename)
        raise _bad_request("Failed to read uploaded file") from e

    if len(content) > settings.max_upload_size:
        raise _bad_request(
            f"File size exceeds the {settings.max_upload_size // (1024 * 1024)}MB limit"
        )

    key = build_recording_key(wallet_address, sentence_id, file_extension(audio_file.filename))
    storage_file = StorageFile(
        content=content, content_type=content_type, filename=audio_file.filename or ""
    )

    try:
        provider = factory.get_storage_provider()
    except Exception as e:
        logger.error("Storage provider unavailable", error=str(e))
        raise _server_error("Storage is not configured", e) from e

    upload_result = await provider.upload(storage_file, key)
    if not upload_result.success:
        logger.error("Audio upload failed", key=key, error=upload_result.error)
        raise _server_error("File upload failed", upload_result.error or "unknown error")

    uploaded_at = datetime.now(UTC).isoformat()
    recording = {
        "wallet_address": wallet_address,
        "sentence_id": sentence_id,
        "sentence_text": sentence_text,
        "duration": duration,
        "audio_quality": audio_quality,
        "file_path": upload_result.key,
        "file_url": upload_result.url,
        "file_size": upload_result.size,
        "file_type": content_type,
        "metadata": {
            "type": "audio_upload",
            "original_filename": audio_file.filename,
            "uploaded_at": uploaded_at,
            "user_agent": request.headers.get("user-agent", "unknown"),
            "storage_provider": provider.name,
        },
    }

    try:
        rows = await database.add_recording_contribution(recording)
    except Exception as e:
        raise _server_error("Failed to record contribution", e) from e

    logger.info("Audio uploaded", key=upload_result.key, size=upload_result.size)
    return {
        "success": True,
        "message": "Audio file uploaded",
        "data": {
            "id": rows[0].get("id") if rows else None,
            "wallet_address": wallet_address,
            "sentence_id": sentence_id,
            "file_name": upload_result.key,
            "file_url": upload_result.url,
            "file_size": upload_result.size,
            "duration": duration,
            "upload_time": uploaded_at,
            "storage_provider": provider.name,
        },
    }


@router.post("/recording")
async def add_recording(
    body: RecordingRequest,
    database: WalletDatabase = Depends(get_wallet_database),
) -> dict:
    wallet_address = _require_wallet(body.wallet_address)
    data = body.recording_data
    now = datetime.now(UTC).isoformat()

    contribution = {
        "wallet_address": wallet_address,
        "sentence_id": data.sentence_id,
        "duration": data.duration,
        "audio_quality": data.audio_quality,
        "language": data.language or settings.default_language,
        "metadata": {
            "type": "recording_contribution",
            **data.model_dump(exclude_none=True),
            **body.metadata,
            "uploaded_at": now,
        },
    }

    try:
        rows = await database.add_recording_contribution(contribution)
        await database.upsert_user(wallet_address, {"last_recording": now})
    except Exception as e:
        raise _server_error("Failed to record contribution", e) from e

    return {
        "success": True,
        "message": "Recording contribution recorded",
        "data": {
            "id": rows[0].get("id") if rows else None,
            "wallet_address": wallet_address,
            "contribution": {
                "sentence_id": contribution["sentence_id"],
                "duration": contribution["duration"],
                "quality": contribution["audio_quality"],
                "language": contribution["language"],
            },
            "timestamp": rows[0].get("created_at") if rows else None,
        },
    }


@router.get("/recording")
async def list_recordings(
    wallet_address: str | None = None,
    limit: Annotated[int, Query(ge=1, le=100)] = 10,
    offset: Annotated[int, Query(ge=0)] = 0,
    database: WalletDatabase = Depends(get_wallet_database),
) -> dict:
    _require_wallet(wallet_address)
    try:
        records = await database.list_recording_contributions(wallet_address, limit, offset)
    except Exception as e:
        raise _server_error("Failed to fetch recordings", e) from e

    return {
        "success": True,
        "message": "Recordings fetched",
        "data": {
            "records": records,
            "pagination": {"limit": limit, "offset": offset, "total": len(records)},
        },
    }


@router.post("/review")
async def add_review(
    body: ReviewRequest,
    database: WalletDatabase = Depends(get_wallet_database),
) -> dict:
    wallet_address = _require_wallet(body.wallet_address)
    data = body.review_data
    now = datetime.now(UTC).isoformat()

    activity = {
        "wallet_address": wallet_address,
        "review_type": data.review_type,
        "items_reviewed": data.items_reviewed,
        "accuracy": data.accuracy,
        "metadata": {
            "type": "review_activity",
            **data.model_dump(),
            **body.metadata,
            "uploaded_at": now,
        },
    }

    try:
        rows = await database.add_review_activity(activity)
        await database.upsert_user(wallet_address, {"last_review": now})
    except Exception as e:
        raise _server_error("Failed to record review activity", e) from e

    return {
        "success": True,
        "message": "Review activity recorded",
        "data": {
            "id": rows[0].get("id") if rows else None,
            "wallet_address": wallet_address,
            "activity": {
                "review_type": activity["review_type"],
                "items_reviewed": activity["items_reviewed"],
                "accuracy": activity["accuracy"],
            },
            "timestamp": rows[0].get("created_at") if rows else None,
        },
    }


@router.get("/stats")
async def user_stats(
    wallet_address: str | None = None,
    database: WalletDatabase = Depends(get_wallet_database),
) -> dict:
    _require_wallet(wallet_address)
    try:
        stats = await database.get_user_stats(wallet_address)
    except Exception as e:
        raise _server_error("Failed to fetch statistics", e) from e

    return {
        "success": True,
        "message": "Statistics fetched",
        "data": {**stats, "retrieved_at": datetime.now(UTC).isoformat()},
    }
