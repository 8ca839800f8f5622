"""
API routes for the ICC message stores
"""
import time
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from pydantic import BaseModel, Field, field_validator

from iccmirror.core.exceptions import UnsupportedOperationError
from iccmirror.core.logging_config import LoggingConfig
from iccmirror.core.request_router import IccRoute, match
from iccmirror.models.icc_message import Mailbox
from iccmirror.services.icc_mirror_service import (IccMirrorService,
                                                   get_icc_service)
from iccmirror.services.icc_write_service import (OutgoingMessage,
                                                  WriteOutcome, WriteStatus)

logger = LoggingConfig.get_logger(__name__)

router = APIRouter(prefix="/api/sms", tags=["icc"])


class IccMessageResponse(BaseModel):
    """Mirror row response model"""
    id: int = Field(serialization_alias="_id")
    service_center_address: Optional[str]
    address: Optional[str]
    message_class: Optional[str]
    body: Optional[str]
    date: int
    status: int
    read: int
    is_status_report: int
    transport_type: str
    type: int
    locked: int
    error_code: int
    sub_id: int
    index_on_icc: Optional[int]
    status_on_icc: Optional[int]

    class Config:
        from_attributes = True


class IccMessageCreate(BaseModel):
    """Message to store on the card"""
    address: str
    body: str = ""
    date: Optional[int] = None  # epoch millis, defaults to now
    type: int = int(Mailbox.DRAFT)
    read: bool = True
    service_center: Optional[str] = None

    @field_validator("type")
    @classmethod
    def validate_type(cls, v: int) -> int:
        try:
            return int(Mailbox(v))
        except ValueError:
            raise ValueError(f"Unknown mailbox type: {v}")


class WriteOutcomeResponse(BaseModel):
    """Result of a card write"""
    status: str
    uri: Optional[str] = None
    index_on_icc: Optional[int] = None
    row_id: Optional[int] = None
    remaining: Optional[int] = None
    reason: Optional[str] = None


class DeleteResponse(BaseModel):
    deleted: int


class ResyncResponse(BaseModel):
    imported: int


def _route(method: str, store: str, index: Optional[str] = None) -> IccRoute:
    return match(method, store if index is None else f"{store}/{index}")


def _outcome_response(outcome: WriteOutcome) -> WriteOutcomeResponse:
    return WriteOutcomeResponse(
        status=outcome.status.value,
        uri=outcome.uri,
        index_on_icc=outcome.index_on_icc,
        row_id=outcome.row_id,
        remaining=outcome.remaining,
        reason=outcome.reason,
    )


@router.get("/{store}", response_model=List[IccMessageResponse], response_model_by_alias=True)
def list_icc_messages(store: str, service: IccMirrorService = Depends(get_icc_service)):
    """List messages on an ICC store, importing them from the card on first access"""
    route = _route("GET", store)
    return service.list_messages(route.slot)


@router.get("/{store}/{index}", response_model=IccMessageResponse, response_model_by_alias=True)
def get_icc_message(store: str, index: str, service: IccMirrorService = Depends(get_icc_service)):
    """Get the message stored at a card index"""
    route = _route("GET", store, index)
    message = service.get_message(route.slot, route.index)
    if message is None:
        raise HTTPException(status_code=404, detail=f"No message at index {route.index} on {route.slot.value}")
    return message


@router.post("/{store}", response_model=WriteOutcomeResponse)
def insert_icc_message(
    store: str,
    payload: IccMessageCreate,
    response: Response,
    service: IccMirrorService = Depends(get_icc_service),
):
    """
    Write a message to the card

    201 when written (``written_last_slot`` if it filled the card), 200 with
    ``slot_full`` when the card had no room, 422 when the write was rejected.
    """
    route = _route("POST", store)
    message = OutgoingMessage(
        address=payload.address,
        body=payload.body,
        date=payload.date if payload.date is not None else int(time.time() * 1000),
        type=Mailbox(payload.type),
        read=payload.read,
        service_center=payload.service_center,
    )
    outcome = service.insert_message(route.slot, message)

    if outcome.status == WriteStatus.REJECTED:
        raise HTTPException(status_code=422, detail=outcome.reason)
    response.status_code = 200 if outcome.status == WriteStatus.SLOT_FULL else 201
    return _outcome_response(outcome)


@router.post("/{store}/resync", response_model=ResyncResponse)
def resync_icc_store(store: str, service: IccMirrorService = Depends(get_icc_service)):
    """Enumerate the card again and replace the mirrored messages"""
    route = _route("POST", store, "resync")
    return ResyncResponse(imported=service.resync(route.slot))


@router.delete("/{store}/{index}", response_model=DeleteResponse)
def delete_icc_message(store: str, index: str, service: IccMirrorService = Depends(get_icc_service)):
    """Delete the message at a card index from the card and the mirror"""
    route = _route("DELETE", store, index)
    if not service.delete_message(route.slot, route.index):
        raise HTTPException(
            status_code=422,
            detail=f"Card did not delete index {route.index} on {route.slot.value}",
        )
    return DeleteResponse(deleted=1)


@router.delete("/{store}", response_model=DeleteResponse)
def clear_icc_store(store: str, service: IccMirrorService = Depends(get_icc_service)):
    """Clear the mirrored messages of a store; the card keeps its records"""
    route = _route("DELETE", store)
    return DeleteResponse(deleted=service.delete_all(route.slot))


@router.api_route("/{store}", methods=["PUT", "PATCH"])
@router.api_route("/{store}/{index}", methods=["POST", "PUT", "PATCH"])
def unsupported_icc_operation(request: Request, store: str, index: Optional[str] = None):
    """Messages on the card cannot be updated in place"""
    _route(request.method, store, index)
    raise UnsupportedOperationError(f"{request.method} is not supported on {store}")
