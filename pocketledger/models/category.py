from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict


class CategoryType(str, Enum):
    EXPENSE = "expense"
    INCOME = "income"


class CategoryRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: Optional[int] = None
    name: str
    icon_name: str = ""
    type: CategoryType = CategoryType.EXPENSE
    sort_order: int = 0
