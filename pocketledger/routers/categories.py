from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from pocketledger.db.dal import Database
from pocketledger.db.seed import get_default_category
from pocketledger.models import CategoryRecord, CategoryType
from .deps import get_db

router = APIRouter(prefix="/categories", tags=["categories"])


@router.get("", response_model=List[CategoryRecord], summary="List categories in display order")
async def list_categories(
    type: Optional[CategoryType] = Query(None, description="expense or income"),
    db: Database = Depends(get_db),
):
    return db.list_categories(type)


@router.get(
    "/default",
    response_model=Optional[CategoryRecord],
    summary="Category pre-selected for a new entry",
)
async def default_category(
    type: CategoryType = Query(CategoryType.EXPENSE),
    db: Database = Depends(get_db),
):
    return get_default_category(type, db.list_categories(type))
