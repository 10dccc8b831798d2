from __future__ import annotations

from typing import List, Optional, Union

from pydantic import BaseModel, Field


class SelectionModel(BaseModel):
    site: Optional[Union[str, int]] = None
    months: List[Union[int, str]] = Field(default_factory=list)
    years: List[Union[int, str]] = Field(default_factory=list)


class MonthModel(BaseModel):
    code: int
    label: str


class MetaMonthsResponse(BaseModel):
    months: List[MonthModel]
