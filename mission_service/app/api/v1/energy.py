"""미션 에너지 내부 API 라우터.

비즈니스 대시보드/관리자 배치에서 호출한다. 월 초기화(reset-all)는 스케줄러가 호출한다.
"""

from __future__ import annotations

from typing import Annotated, NoReturn

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ...models.energy import (
    EnergyCheckResult,
    EnergyError,
    EnergyErrorCode,
    EnergyResetSummary,
    EnergyResult,
    EnergyUsageStats,
)
from ...services.energy_service import EnergyPoolManager, get_energy_pool_manager
from ..schemas.common import PaginatedResponse
from ..schemas.energy import (
    ConsumeEnergyRequest,
    EnergyChangeResponse,
    EnergyLedgerItem,
    EnergyPoolResponse,
    InitializePoolRequest,
    RefundEnergyRequest,
    UpdateTierRequest,
)


router = APIRouter(prefix="/energy", tags=["energy"])

EnergyManagerDep = Annotated[EnergyPoolManager, Depends(get_energy_pool_manager)]


def _raise_energy_error(error: EnergyError | None) -> NoReturn:
    if error is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"code": "UNKNOWN", "message": "energy operation failed"},
        )
    status_code = (
        status.HTTP_404_NOT_FOUND
        if error.code is EnergyErrorCode.POOL_NOT_INITIALIZED
        else status.HTTP_402_PAYMENT_REQUIRED
    )
    raise HTTPException(
        status_code=status_code,
        detail=error.model_dump(mode="json", exclude_none=True),
    )


def _to_change_response(result: EnergyResult) -> EnergyChangeResponse:
    if not result.success or result.pool is None:
        _raise_energy_error(result.error)
    return EnergyChangeResponse(
        amount=result.amount, pool=EnergyPoolResponse.from_domain(result.pool)
    )


@router.post("/reset-all", summary="전체 에너지 풀 월 초기화")
def reset_all_pools(manager: EnergyManagerDep) -> EnergyResetSummary:
    return manager.reset_all()


@router.get("/{business_id}", summary="에너지 풀 조회")
def get_pool(business_id: str, manager: EnergyManagerDep) -> EnergyPoolResponse:
    pool = manager.get(business_id)
    if pool is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={
                "code": EnergyErrorCode.POOL_NOT_INITIALIZED,
                "message": "Energy pool not initialized",
            },
        )
    return EnergyPoolResponse.from_domain(pool)


@router.get("/{business_id}/availability", summary="미션 타입 활성화 가능 여부")
def check_availability(
    business_id: str,
    manager: EnergyManagerDep,
    mission_type: str = Query(..., description="에너지 비용표의 미션 타입 (예: CHECK_IN)"),
) -> EnergyCheckResult:
    # 부족해도 200 으로 돌려준다. 읽기 전용 확인이기 때문.
    return manager.check_availability(business_id, mission_type)


@router.get("/{business_id}/stats", summary="이번 사이클 사용량 통계")
def get_usage_stats(business_id: str, manager: EnergyManagerDep) -> EnergyUsageStats:
    stats = manager.get_usage_stats(business_id)
    if stats is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={
                "code": EnergyErrorCode.POOL_NOT_INITIALIZED,
                "message": "Energy pool not initialized",
            },
        )
    return stats


@router.get("/{business_id}/history", summary="에너지 원장 이력")
def get_history(
    business_id: str,
    manager: EnergyManagerDep,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
) -> PaginatedResponse[EnergyLedgerItem]:
    items, total = manager.get_history(business_id, page, page_size)
    return PaginatedResponse(
        items=[EnergyLedgerItem.from_domain(record) for record in items],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.post("/{business_id}/initialize", summary="에너지 풀 생성/재생성")
def initialize_pool(
    business_id: str, req: InitializePoolRequest, manager: EnergyManagerDep
) -> EnergyPoolResponse:
    return EnergyPoolResponse.from_domain(manager.initialize(business_id, req.tier))


@router.post("/{business_id}/consume", summary="에너지 소비")
def consume_energy(
    business_id: str, req: ConsumeEnergyRequest, manager: EnergyManagerDep
) -> EnergyChangeResponse:
    """잔액 부족 시 402, 풀이 없으면 404."""
    result = manager.consume(business_id, req.mission_id, req.mission_type, req.mission_title)
    return _to_change_response(result)


@router.post("/{business_id}/refund", summary="에너지 환불")
def refund_energy(
    business_id: str, req: RefundEnergyRequest, manager: EnergyManagerDep
) -> EnergyChangeResponse:
    result = manager.refund(business_id, req.mission_id, req.mission_type)
    return _to_change_response(result)


@router.post("/{business_id}/reset", summary="단일 에너지 풀 초기화")
def reset_pool(business_id: str, manager: EnergyManagerDep) -> EnergyPoolResponse:
    result = manager.reset_one(business_id)
    if not result.success or result.pool is None:
        _raise_energy_error(result.error)
    return EnergyPoolResponse.from_domain(result.pool)


@router.put("/{business_id}/tier", summary="구독 등급 변경")
def update_tier(
    business_id: str, req: UpdateTierRequest, manager: EnergyManagerDep
) -> EnergyPoolResponse:
    return EnergyPoolResponse.from_domain(manager.update_tier(business_id, req.tier))
