"""Schemas for categorization and storage maintenance endpoints."""

from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from pocketledger.services.categorizer import CategoryLabel


class CategoryOut(BaseModel):
    id: CategoryLabel
    name: str
    emoji: str


class TransactionText(BaseModel):
    description: str = Field("", description="Free-text description from the bank feed.")
    merchant: Optional[str] = None


class CategorizeRequest(BaseModel):
    transactions: List[TransactionText] = Field(..., min_length=1)


class CategorizedTransaction(BaseModel):
    description: str
    merchant: Optional[str] = None
    category: CategoryLabel
    category_name: str


class CategorizeResponse(BaseModel):
    results: List[CategorizedTransaction]


class MigrationRunOut(BaseModel):
    success: bool
    migrations_run: List[str]
    errors: Dict[str, str]
    cleaned_keys: List[str]


class MigrationStatusOut(BaseModel):
    current_version: int
    target_version: int
    needs_migration: bool


__all__ = [
    "CategorizeRequest",
    "CategorizeResponse",
    "CategorizedTransaction",
    "CategoryOut",
    "MigrationRunOut",
    "MigrationStatusOut",
    "TransactionText",
]
