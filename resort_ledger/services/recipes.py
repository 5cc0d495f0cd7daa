from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from resort_ledger.app.db.models.models_v1 import Recipe, RecipeLine
from resort_ledger.app.schemas.recipe import RecipeCreate
from resort_ledger.services.exceptions import NotFound, ValidationError
from resort_ledger.services.inventory import ZERO, to_qty

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IngredientDeduction:
    item_id: str
    qty: Decimal


def scale_factor(yield_qty: Decimal | None, requested_qty: Decimal) -> Decimal:
    """
    factor = requested / yield si yield > 0, sinon requested tel quel
    (recette sans rendement = multiplicateur de batch direct).
    """
    if yield_qty is not None and Decimal(yield_qty) > ZERO:
        return requested_qty / Decimal(yield_qty)
    return requested_qty


def expand(recipe: Recipe, requested_qty) -> list[IngredientDeduction]:
    """Déductions arrondies au millième ; une déduction qui arrondit à 0 est omise."""
    factor = scale_factor(recipe.yield_qty, to_qty(requested_qty))
    deductions = []
    for ln in recipe.lines:
        qty = to_qty(factor * Decimal(ln.qty))
        if qty > ZERO:
            deductions.append(IngredientDeduction(item_id=ln.item_id, qty=qty))
        else:
            logger.debug("recipe %s: deduction of %s rounds to zero, skipped", recipe.id, ln.item_id)
    return deductions


class RecipeExpander:
    """
    Convertit une ligne "recette" en déductions d'ingrédients.

    Recette introuvable : la ligne est ignorée (compat historique), sauf si
    `strict_missing_recipe` est activé, auquel cas NotFound.
    """

    def __init__(self, db: Session, *, strict_missing_recipe: bool = False) -> None:
        self.db = db
        self.strict_missing_recipe = strict_missing_recipe

    def get_recipe(self, recipe_id: int) -> Recipe | None:
        return self.db.execute(
            select(Recipe).options(selectinload(Recipe.lines)).where(Recipe.id == recipe_id)
        ).scalar_one_or_none()

    def expand(self, recipe_id: int, requested_qty) -> list[IngredientDeduction]:
        recipe = self.get_recipe(recipe_id)
        if recipe is None:
            if self.strict_missing_recipe:
                raise NotFound("Recipe", recipe_id)
            logger.warning("recipe %s not found, consumption line skipped", recipe_id)
            return []
        return expand(recipe, requested_qty)


# ---------- Administration (lecture / création) ----------
def create_recipe(db: Session, payload: RecipeCreate) -> Recipe:
    if not payload.lines:
        raise ValidationError("Recipe must contain at least one ingredient line")

    recipe = Recipe(
        code=payload.code,
        name=payload.name,
        recipe_category=payload.recipe_category,
        yield_qty=payload.yield_qty,
        yield_uom=payload.yield_uom,
    )
    for pos, ln in enumerate(payload.lines):
        recipe.lines.append(RecipeLine(position=pos, item_id=ln.item_id, qty=ln.qty))

    db.add(recipe)
    db.flush()
    return recipe


def get_recipe(db: Session, recipe_id: int) -> Recipe:
    recipe = RecipeExpander(db).get_recipe(recipe_id)
    if recipe is None:
        raise NotFound("Recipe", recipe_id)
    return recipe


def list_recipes(db: Session) -> list[Recipe]:
    return list(
        db.execute(select(Recipe).options(selectinload(Recipe.lines)).order_by(Recipe.code)).scalars().all()
    )
