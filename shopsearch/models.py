"""Pydantic models for the HTTP response payloads."""
from __future__ import annotations

from typing import Any, Dict

from pydantic import BaseModel, Field


class ProductResult(BaseModel):
    id: str
    title: str
    price: str | None = None
    currency: str | None = None
    availability: str = "unknown"
    rating: float | None = None
    reviews: int | None = None
    seller: str | None = None
    domain: str
    url: str
    image: str | None = None
    description: str | None = None
    score: float | None = None


class Pagination(BaseModel):
    currentPage: int
    totalPages: int
    totalResults: int
    hasNextPage: bool
    hasPrevPage: bool


class SearchInfo(BaseModel):
    query: str
    searchTimeMs: float
    appliedFilters: Dict[str, Any] = Field(default_factory=dict)
    category: str | None = None


class SearchResultPage(BaseModel):
    products: list[ProductResult]
    pagination: Pagination
    searchInfo: SearchInfo


class SearchResponse(BaseModel):
    success: bool = True
    data: SearchResultPage


class ErrorResponse(BaseModel):
    success: bool = False
    message: str
    error: str | None = None


class SuggestionsData(BaseModel):
    suggestions: list[str]


class SuggestionsResponse(BaseModel):
    success: bool = True
    data: SuggestionsData


class TrendingData(BaseModel):
    trending: list[str]


class TrendingResponse(BaseModel):
    success: bool = True
    data: TrendingData
