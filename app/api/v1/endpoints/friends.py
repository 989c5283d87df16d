import logging
from typing import List
from fastapi import APIRouter, Depends, HTTPException, status

from app import schemas
from app.api.v1.deps import get_current_user_id, get_friend_service
from app.core.exceptions import FriendshipError
from app.schemas.enums import FriendErrorCodeEnum
from app.services.friend_service import FriendService

router = APIRouter()
logger = logging.getLogger(__name__)

_ERROR_STATUS_CODES = {
    FriendErrorCodeEnum.SELF_REFERENCE: status.HTTP_400_BAD_REQUEST,
    FriendErrorCodeEnum.NOT_AUTHORIZED: status.HTTP_403_FORBIDDEN,
    FriendErrorCodeEnum.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    FriendErrorCodeEnum.STALE_STATE: status.HTTP_409_CONFLICT,
    FriendErrorCodeEnum.CONFLICT: status.HTTP_409_CONFLICT,
    FriendErrorCodeEnum.INCONSISTENT_DATA: status.HTTP_409_CONFLICT,
    FriendErrorCodeEnum.STORE_UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def _error_exception(code: FriendErrorCodeEnum, detail: str) -> HTTPException:
    return HTTPException(
        status_code=_ERROR_STATUS_CODES.get(code, status.HTTP_500_INTERNAL_SERVER_ERROR),
        detail={"error": code.value, "message": detail},
    )


def _unwrap(result: schemas.FriendActionResult) -> schemas.FriendActionResult:
    if not result.success:
        raise _error_exception(result.error, result.detail)
    return result


@router.get("/", response_model=List[schemas.FriendRead], summary="List the current user's friends")
async def list_friends(
    current_user_id: str = Depends(get_current_user_id),
    friend_service: FriendService = Depends(get_friend_service),
):
    try:
        return await friend_service.list_friends(current_user_id)
    except FriendshipError as e:
        raise _error_exception(e.code, e.detail)


@router.get("/requests/received", response_model=List[schemas.FriendRequestRead], summary="List pending requests sent to me")
async def list_received_requests(
    current_user_id: str = Depends(get_current_user_id),
    friend_service: FriendService = Depends(get_friend_service),
):
    try:
        return await friend_service.list_received_requests(current_user_id)
    except FriendshipError as e:
        raise _error_exception(e.code, e.detail)


@router.get("/requests/sent", response_model=List[schemas.FriendRequestRead], summary="List pending requests I sent")
async def list_sent_requests(
    current_user_id: str = Depends(get_current_user_id),
    friend_service: FriendService = Depends(get_friend_service),
):
    try:
        return await friend_service.list_sent_requests(current_user_id)
    except FriendshipError as e:
        raise _error_exception(e.code, e.detail)


@router.get("/status/{target_user_id}", response_model=schemas.FriendStatusRead, summary="Relationship status with a user")
async def get_friend_status(
    target_user_id: str,
    current_user_id: str = Depends(get_current_user_id),
    friend_service: FriendService = Depends(get_friend_service),
):
    result = _unwrap(await friend_service.get_status(current_user_id, target_user_id))
    return schemas.FriendStatusRead(target_user_id=target_user_id, status=result.status)


@router.post(
    "/requests",
    response_model=schemas.FriendActionResult,
    summary="Send a friend request"
)
async def send_friend_request(
    request_in: schemas.FriendRequestCreate,
    current_user_id: str = Depends(get_current_user_id),
    friend_service: FriendService = Depends(get_friend_service),
):
    return _unwrap(await friend_service.send_request(current_user_id, request_in.target_user_id))


@router.post("/requests/{request_id}/accept", response_model=schemas.FriendActionResult, summary="Accept a friend request")
async def accept_friend_request(
    request_id: str,
    current_user_id: str = Depends(get_current_user_id),
    friend_service: FriendService = Depends(get_friend_service),
):
    return _unwrap(await friend_service.accept_request(current_user_id, request_id))


@router.post("/requests/{request_id}/reject", response_model=schemas.FriendActionResult, summary="Reject a friend request")
async def reject_friend_request(
    request_id: str,
    current_user_id: str = Depends(get_current_user_id),
    friend_service: FriendService = Depends(get_friend_service),
):
    return _unwrap(await friend_service.reject_request(current_user_id, request_id))


@router.post("/requests/{request_id}/cancel", response_model=schemas.FriendActionResult, summary="Cancel a friend request I sent")
async def cancel_friend_request(
    request_id: str,
    current_user_id: str = Depends(get_current_user_id),
    friend_service: FriendService = Depends(get_friend_service),
):
    return _unwrap(await friend_service.cancel_request(current_user_id, request_id))


@router.delete("/{target_user_id}", response_model=schemas.FriendActionResult, summary="Remove a friend")
async def remove_friend(
    target_user_id: str,
    current_user_id: str = Depends(get_current_user_id),
    friend_service: FriendService = Depends(get_friend_service),
):
    return _unwrap(await friend_service.remove_friend(current_user_id, target_user_id))
