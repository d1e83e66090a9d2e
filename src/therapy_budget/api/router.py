"""FastAPI router for the therapy budget API.

All routes are thin: they validate inputs, call services, and return
Pydantic response models. No business logic belongs here.

Endpoints:
  POST   /api/v1/plans                               Create a budget plan
  GET    /api/v1/clients/{client_id}/plans           List a client's plans
  GET    /api/v1/clients/{client_id}/plans/active    The client's active plan
  GET    /api/v1/plans/{plan_id}                     Get a plan
  POST   /api/v1/plans/{plan_id}/activate            Make a plan the active one
  PATCH  /api/v1/plans/{plan_id}/funds               Change available funds
  GET    /api/v1/plans/{plan_id}/utilization         Allocation and usage summary
  GET    /api/v1/plans/{plan_id}/items               List a plan's items
  POST   /api/v1/plans/{plan_id}/items/evaluate      Dry-run allocation decision
  POST   /api/v1/plans/{plan_id}/items               Submit an item
  POST   /api/v1/plans/{plan_id}/items/from-catalog  Submit a catalog item
  PATCH  /api/v1/items/{item_id}                     Change an item's quantity
  POST   /api/v1/items/{item_id}/usage               Record used units
  DELETE /api/v1/items/{item_id}                     Delete an item
  POST   /api/v1/catalog                             Add a catalog entry
  GET    /api/v1/catalog                             List/search the catalog
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from therapy_budget.adapters.repositories import (
    BudgetItemRepository,
    BudgetPlanRepository,
    CatalogRepository,
)
from therapy_budget.api.schemas import (
    AllocationCheckResponse,
    BudgetItemResponse,
    CatalogItemResponse,
    CreateCatalogItemRequest,
    CreatePlanRequest,
    EvaluateItemRequest,
    ItemSubmissionResponse,
    PlanPeriodResponse,
    PlanResponse,
    RecordUsageRequest,
    SubmitCatalogItemRequest,
    SubmitItemRequest,
    UpdateFundsRequest,
    UpdateItemQuantityRequest,
    UtilizationResponse,
)
from therapy_budget.core.services import (
    BudgetItemService,
    BudgetPlanService,
    CatalogService,
    ItemSubmission,
)
from therapy_budget.database import get_db_session
from therapy_budget.settings import Settings

router = APIRouter(tags=["budget"])
settings = Settings()


# ---------------------------------------------------------------------------
# Dependency factories
# ---------------------------------------------------------------------------


def get_plan_service(
    session: Annotated[AsyncSession, Depends(get_db_session)],
) -> BudgetPlanService:
    """Build BudgetPlanService with SQLAlchemy repositories."""
    return BudgetPlanService(
        plan_repo=BudgetPlanRepository(session),
        item_repo=BudgetItemRepository(session),
        settings=settings,
    )


def get_item_service(
    session: Annotated[AsyncSession, Depends(get_db_session)],
) -> BudgetItemService:
    """Build BudgetItemService with SQLAlchemy repositories."""
    return BudgetItemService(
        plan_repo=BudgetPlanRepository(session),
        item_repo=BudgetItemRepository(session),
        catalog_repo=CatalogRepository(session),
        settings=settings,
    )


def get_catalog_service(
    session: Annotated[AsyncSession, Depends(get_db_session)],
) -> CatalogService:
    """Build CatalogService with its SQLAlchemy repository."""
    return CatalogService(catalog_repo=CatalogRepository(session))


def _submission_response(submission: ItemSubmission, response: Response) -> ItemSubmissionResponse:
    response.status_code = status.HTTP_201_CREATED if submission.created else status.HTTP_200_OK
    return ItemSubmissionResponse.model_validate(submission)


# ---------------------------------------------------------------------------
# Plan endpoints
# ---------------------------------------------------------------------------


@router.post("/plans", response_model=PlanResponse, status_code=201, summary="Create a budget plan")
async def create_plan(
    request: CreatePlanRequest,
    service: Annotated[BudgetPlanService, Depends(get_plan_service)],
) -> PlanResponse:
    """Create a budget plan for a client.

    An active plan replaces the client's current active plan.
    """
    plan = await service.create_plan(
        client_id=request.client_id,
        available_funds=request.available_funds,
        plan_serial_number=request.plan_serial_number,
        plan_code=request.plan_code,
        end_of_plan=request.end_of_plan,
        is_active=request.is_active,
    )
    return PlanResponse.model_validate(plan)


@router.get(
    "/clients/{client_id}/plans",
    response_model=list[PlanResponse],
    summary="List a client's budget plans",
)
async def list_plans(
    client_id: int,
    service: Annotated[BudgetPlanService, Depends(get_plan_service)],
) -> list[PlanResponse]:
    """List all budget plans for a client, newest first."""
    plans = await service.list_plans(client_id)
    return [PlanResponse.model_validate(p) for p in plans]


@router.get(
    "/clients/{client_id}/plans/active",
    response_model=PlanResponse,
    summary="Get a client's active budget plan",
)
async def get_active_plan(
    client_id: int,
    service: Annotated[BudgetPlanService, Depends(get_plan_service)],
) -> PlanResponse:
    """Return the client's active plan, or 404 if it has none."""
    plan = await service.get_active_plan(client_id)
    return PlanResponse.model_validate(plan)


@router.get("/plans/{plan_id}", response_model=PlanResponse, summary="Get a budget plan")
async def get_plan(
    plan_id: int,
    service: Annotated[BudgetPlanService, Depends(get_plan_service)],
) -> PlanResponse:
    """Get a budget plan by id."""
    plan = await service.get_plan(plan_id)
    return PlanResponse.model_validate(plan)


@router.post(
    "/plans/{plan_id}/activate",
    response_model=PlanResponse,
    summary="Make a plan the client's active plan",
)
async def activate_plan(
    plan_id: int,
    service: Annotated[BudgetPlanService, Depends(get_plan_service)],
) -> PlanResponse:
    """Activate a plan and deactivate the client's other plans."""
    plan = await service.activate_plan(plan_id)
    return PlanResponse.model_validate(plan)


@router.patch(
    "/plans/{plan_id}/funds",
    response_model=PlanResponse,
    summary="Change a plan's available funds",
)
async def update_available_funds(
    plan_id: int,
    request: UpdateFundsRequest,
    service: Annotated[BudgetPlanService, Depends(get_plan_service)],
) -> PlanResponse:
    """Change a plan's funding ceiling. Existing items are not modified."""
    plan = await service.update_available_funds(plan_id, request.available_funds)
    return PlanResponse.model_validate(plan)


@router.get(
    "/plans/{plan_id}/utilization",
    response_model=UtilizationResponse,
    summary="Allocation and usage summary for a plan",
)
async def get_utilization(
    plan_id: int,
    service: Annotated[BudgetPlanService, Depends(get_plan_service)],
) -> UtilizationResponse:
    """Summarise allocation, usage and, when the plan has an end date, its period figures."""
    plan, summary = await service.get_utilization(plan_id)
    return UtilizationResponse(
        plan_id=plan.id,
        client_id=plan.client_id,
        available_funds=summary.available_funds,
        total_allocated=summary.total_allocated,
        used_amount=summary.used_amount,
        remaining_allocation=summary.remaining_allocation,
        unallocated_funds=summary.unallocated_funds,
        utilization_pct=summary.utilization_pct,
        percent_allocated=summary.percent_allocated,
        status=summary.status,
        item_count=summary.item_count,
        period=PlanPeriodResponse.model_validate(summary.period) if summary.period else None,
    )


# ---------------------------------------------------------------------------
# Item endpoints
# ---------------------------------------------------------------------------


@router.get(
    "/plans/{plan_id}/items",
    response_model=list[BudgetItemResponse],
    summary="List a plan's budget items",
)
async def list_items(
    plan_id: int,
    service: Annotated[BudgetItemService, Depends(get_item_service)],
) -> list[BudgetItemResponse]:
    """List the current items of a plan."""
    items = await service.list_items(plan_id)
    return [BudgetItemResponse.model_validate(i) for i in items]


@router.post(
    "/plans/{plan_id}/items/evaluate",
    response_model=AllocationCheckResponse,
    summary="Evaluate a candidate item against the plan's funds",
)
async def evaluate_item(
    plan_id: int,
    request: EvaluateItemRequest,
    service: Annotated[BudgetItemService, Depends(get_item_service)],
) -> AllocationCheckResponse:
    """Return the allocation decision and the largest affordable quantity without creating the item."""
    check = await service.evaluate_item(plan_id, request.unit_price, request.quantity)
    return AllocationCheckResponse.model_validate(check)


@router.post(
    "/plans/{plan_id}/items",
    response_model=ItemSubmissionResponse,
    summary="Submit a budget item",
    responses={201: {"description": "Item created"}, 200: {"description": "Item not created"}},
)
async def submit_item(
    plan_id: int,
    request: SubmitItemRequest,
    response: Response,
    service: Annotated[BudgetItemService, Depends(get_item_service)],
) -> ItemSubmissionResponse:
    """Submit an item to a plan under the allocation policy.

    Returns 201 with the created item, or 200 with ``created: false`` when the
    item would over-allocate the plan or leaves funds unallocated without
    ``confirmed: true``.
    """
    submission = await service.submit_item(
        plan_id=plan_id,
        item_code=request.item_code,
        description=request.description,
        unit_price=request.unit_price,
        quantity=request.quantity,
        name=request.name,
        category=request.category,
        confirmed=request.confirmed,
    )
    return _submission_response(submission, response)


@router.post(
    "/plans/{plan_id}/items/from-catalog",
    response_model=ItemSubmissionResponse,
    summary="Submit a catalog item",
)
async def submit_catalog_item(
    plan_id: int,
    request: SubmitCatalogItemRequest,
    response: Response,
    service: Annotated[BudgetItemService, Depends(get_item_service)],
) -> ItemSubmissionResponse:
    """Submit an item copied from the catalog under the allocation policy."""
    submission = await service.create_item_from_catalog(
        plan_id=plan_id,
        item_code=request.item_code,
        quantity=request.quantity,
        unit_price=request.unit_price,
        confirmed=request.confirmed,
    )
    return _submission_response(submission, response)


@router.patch(
    "/items/{item_id}",
    response_model=ItemSubmissionResponse,
    summary="Change an item's quantity",
)
async def update_item_quantity(
    item_id: int,
    request: UpdateItemQuantityRequest,
    service: Annotated[BudgetItemService, Depends(get_item_service)],
) -> ItemSubmissionResponse:
    """Change an item's allocated quantity. Only increases are checked against the budget."""
    submission = await service.update_item_quantity(
        item_id=item_id,
        quantity=request.quantity,
        confirmed=request.confirmed,
    )
    return ItemSubmissionResponse.model_validate(submission)


@router.post(
    "/items/{item_id}/usage",
    response_model=BudgetItemResponse,
    summary="Record used units of an item",
)
async def record_usage(
    item_id: int,
    request: RecordUsageRequest,
    service: Annotated[BudgetItemService, Depends(get_item_service)],
) -> BudgetItemResponse:
    """Consume units of an item, e.g. products used in a therapy session."""
    item = await service.record_usage(item_id, request.units)
    return BudgetItemResponse.model_validate(item)


@router.delete("/items/{item_id}", status_code=204, summary="Delete a budget item")
async def delete_item(
    item_id: int,
    service: Annotated[BudgetItemService, Depends(get_item_service)],
) -> Response:
    """Remove an item from its plan."""
    await service.delete_item(item_id)
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# Catalog endpoints
# ---------------------------------------------------------------------------


@router.post(
    "/catalog",
    response_model=CatalogItemResponse,
    status_code=201,
    summary="Add a catalog entry",
)
async def create_catalog_item(
    request: CreateCatalogItemRequest,
    service: Annotated[CatalogService, Depends(get_catalog_service)],
) -> CatalogItemResponse:
    """Add an item code with its default unit price to the catalog."""
    entry = await service.create_catalog_item(
        item_code=request.item_code,
        description=request.description,
        default_unit_price=request.default_unit_price,
        category=request.category,
        is_active=request.is_active,
    )
    return CatalogItemResponse.model_validate(entry)


@router.get("/catalog", response_model=list[CatalogItemResponse], summary="List the catalog")
async def list_catalog(
    service: Annotated[CatalogService, Depends(get_catalog_service)],
    category: Annotated[str | None, Query(description="Exact category filter")] = None,
    search: Annotated[str | None, Query(description="Match item code or description")] = None,
    active_only: Annotated[bool, Query()] = True,
) -> list[CatalogItemResponse]:
    """List catalog entries, optionally filtered by category or search text."""
    entries = await service.list_catalog(category=category, search=search, active_only=active_only)
    return [CatalogItemResponse.model_validate(e) for e in entries]
