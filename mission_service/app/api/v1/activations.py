"""미션 활성화 API 라우터.

X-Account-Id 헤더가 있으면 요청한 계정으로 보고 비즈니스 소유자와 일치하는지 확인한다.
"""

from __future__ import annotations

from typing import Annotated, NoReturn

from fastapi import APIRouter, Depends, Header, HTTPException, status

from ...catalog import MissionCatalog
from ...models.activation import (
    ActivationError,
    ActivationErrorCode,
    ActivationResult,
    MissionActivation,
)
from ...services.activation_service import (
    MissionActivationGate,
    get_mission_activation_gate,
    get_mission_catalog,
)
from ..schemas.activations import (
    ActivateMissionRequest,
    ActivateMissionResponse,
    ActiveMissionsResponse,
    CatalogResponse,
    EligibilityResponse,
)


router = APIRouter(tags=["activations"])

GateDep = Annotated[MissionActivationGate, Depends(get_mission_activation_gate)]
RequestedBy = Annotated[str | None, Header(alias="X-Account-Id")]


ERROR_STATUS: dict[ActivationErrorCode, int] = {
    ActivationErrorCode.MISSION_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ActivationErrorCode.BUSINESS_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ActivationErrorCode.ACTIVATION_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ActivationErrorCode.POOL_NOT_INITIALIZED: status.HTTP_404_NOT_FOUND,
    ActivationErrorCode.INVALID_CONFIG: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ActivationErrorCode.MISSING_BUSINESS_CONNECTION: status.HTTP_412_PRECONDITION_FAILED,
    ActivationErrorCode.ALREADY_ACTIVE: status.HTTP_409_CONFLICT,
    ActivationErrorCode.UNAUTHORIZED: status.HTTP_403_FORBIDDEN,
    ActivationErrorCode.INSUFFICIENT_ENERGY: status.HTTP_402_PAYMENT_REQUIRED,
}


def _raise_activation_error(error: ActivationError | None) -> NoReturn:
    if error is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"code": "UNKNOWN", "message": "activation failed"},
        )
    raise HTTPException(
        status_code=ERROR_STATUS.get(error.code, status.HTTP_400_BAD_REQUEST),
        detail=error.model_dump(mode="json", exclude_none=True),
    )


def _unwrap(result: ActivationResult) -> MissionActivation:
    if not result.success or result.activation is None:
        _raise_activation_error(result.error)
    return result.activation


@router.get("/missions/catalog", summary="활성화 가능한 미션 카탈로그")
def list_catalog(
    catalog: Annotated[MissionCatalog, Depends(get_mission_catalog)],
) -> CatalogResponse:
    items = catalog.list()
    return CatalogResponse(total=len(items), items=items)


@router.post(
    "/activations/{business_id}/{mission_id}",
    status_code=status.HTTP_201_CREATED,
    summary="미션 활성화",
)
def activate_mission(
    business_id: str,
    mission_id: str,
    req: ActivateMissionRequest,
    gate: GateDep,
    requested_by: RequestedBy = None,
) -> ActivateMissionResponse:
    result = gate.activate(business_id, mission_id, req.config, requested_by=requested_by)
    activation = _unwrap(result)
    return ActivateMissionResponse(
        activation=activation, user_requirements=result.user_requirements
    )


@router.delete("/activations/{business_id}/{mission_id}", summary="미션 비활성화")
def deactivate_mission(
    business_id: str,
    mission_id: str,
    gate: GateDep,
    requested_by: RequestedBy = None,
) -> MissionActivation:
    return _unwrap(gate.deactivate(business_id, mission_id, requested_by=requested_by))


@router.get("/activations/{business_id}", summary="활성 미션 목록")
def list_active_missions(business_id: str, gate: GateDep) -> ActiveMissionsResponse:
    items = gate.list_active_missions(business_id)
    return ActiveMissionsResponse(total=len(items), items=items)


@router.get("/activations/{business_id}/{mission_id}", summary="활성화 레코드 조회")
def get_activation(business_id: str, mission_id: str, gate: GateDep) -> MissionActivation:
    activation = gate.get_activation(business_id, mission_id)
    if activation is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={
                "code": ActivationErrorCode.ACTIVATION_NOT_FOUND,
                "message": "activation not found",
            },
        )
    return activation


@router.get(
    "/activations/{business_id}/{mission_id}/eligibility/{user_id}",
    summary="고객 미션 완료 가능 여부",
)
def check_eligibility(
    business_id: str, mission_id: str, user_id: str, gate: GateDep
) -> EligibilityResponse:
    check = gate.can_user_complete_mission(user_id, mission_id, business_id)
    instructions = None
    if check.missing_connection is not None:
        instructions = gate.get_connection_setup_instructions(check.missing_connection)
    return EligibilityResponse(check=check, setup_instructions=instructions)
