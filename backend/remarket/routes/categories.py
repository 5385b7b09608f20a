"""
Remarket Backend - Category Routes
====================================

Public reads and admin writes for /api/v1/categories.
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from remarket.config import settings
from remarket.database import get_db_session
from remarket.routes.deps import require_admin
from remarket.schemas.category import CategoryCreate, CategoryPage, CategoryResponse, CategoryUpdate
from remarket.schemas.common import ErrorResponse, StatusMessage
from remarket.security import TokenIdentity
from remarket.services.category_service import category_service

router = APIRouter(prefix="/api/v1/categories", tags=["Categories"])


@router.get("", response_model=CategoryPage, summary="List categories")
async def list_categories(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=settings.default_page_size, ge=1, le=settings.max_page_size),
    search: str = Query(default="", max_length=100),
    db: AsyncSession = Depends(get_db_session),
) -> CategoryPage:
    return await category_service.list_categories(db, page=page, limit=limit, search=search)


@router.get(
    "/{category_id}",
    response_model=CategoryResponse,
    responses={404: {"description": "Category not found", "model": ErrorResponse}},
    summary="Category details",
)
async def get_category(
    category_id: str,
    db: AsyncSession = Depends(get_db_session),
) -> CategoryResponse:
    return CategoryResponse.model_validate(await category_service.get_category(db, category_id))


@router.post(
    "",
    response_model=CategoryResponse,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"description": "Code already in use", "model": ErrorResponse}},
    summary="(admin) Create a category",
)
async def create_category(
    payload: CategoryCreate,
    _: TokenIdentity = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
) -> CategoryResponse:
    return CategoryResponse.model_validate(await category_service.create_category(db, payload))


@router.put("/{category_id}", response_model=CategoryResponse, summary="(admin) Edit a category")
async def update_category(
    category_id: str,
    payload: CategoryUpdate,
    _: TokenIdentity = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
) -> CategoryResponse:
    category = await category_service.update_category(db, category_id, payload)
    return CategoryResponse.model_validate(category)


@router.delete("/{category_id}", response_model=StatusMessage, summary="(admin) Delete a category")
async def delete_category(
    category_id: str,
    _: TokenIdentity = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
) -> StatusMessage:
    await category_service.delete_category(db, category_id)
    return StatusMessage(message="Category deleted")
