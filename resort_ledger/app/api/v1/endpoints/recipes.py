from __future__ import annotations

from decimal import Decimal

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from resort_ledger.app.api.deps import get_db
from resort_ledger.app.schemas.recipe import IngredientDeductionRead, RecipeCreate, RecipeRead
from resort_ledger.services import recipes as recipe_service

router = APIRouter(prefix="/recipes")


@router.get("", response_model=list[RecipeRead])
def list_recipes(db: Session = Depends(get_db)):
    return recipe_service.list_recipes(db)


@router.get("/{recipe_id}", response_model=RecipeRead)
def get_recipe(recipe_id: int, db: Session = Depends(get_db)):
    return recipe_service.get_recipe(db, recipe_id)


@router.post("", response_model=RecipeRead, status_code=201)
def create_recipe(payload: RecipeCreate, db: Session = Depends(get_db)):
    recipe = recipe_service.create_recipe(db, payload)
    db.commit()
    db.refresh(recipe)
    return recipe


@router.get("/{recipe_id}/expand", response_model=list[IngredientDeductionRead])
def expand_recipe(recipe_id: int, qty: Decimal = Query(gt=0), db: Session = Depends(get_db)):
    """Aperçu des déductions, sans effet stock."""
    recipe = recipe_service.get_recipe(db, recipe_id)
    return recipe_service.expand(recipe, qty)
