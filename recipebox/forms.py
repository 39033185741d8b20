"""The create/edit form as plain data, independent of how it is rendered."""

import logging
from typing import Any, Iterable, Protocol

from recipebox.models import DIFFICULTIES, Ingredient, Recipe


logger = logging.getLogger(__name__)


MISSING_TITLE = "Der Titel darf nicht leer sein."
SINGLE_ROW_WITHOUT_NAME = (
    "Mindestens eine Zutat muss einen Namen haben, oder die Zeile muss leer sein."
)
NO_NAMED_ROW = "Mindestens eine Zutat muss einen Namen haben."
ROW_WITHOUT_NAME = (
    "Eine Zutat ohne Namen wurde gefunden (aber mit Menge/Einheit). "
    "Bitte geben Sie einen Namen an oder leeren Sie die Zeile."
)
LAST_ROW = "Mindestens eine Zutatenzeile wird benötigt."


class FormError(Exception):
    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class MultiDict(Protocol):
    def get(self, key: str, default: Any = None) -> Any:
        ...

    def getlist(self, key: str) -> list[Any]:
        ...


class IngredientRow:
    def __init__(self, quantity: str = "", unit: str = "", name: str = "") -> None:
        self.quantity = quantity
        self.unit = unit
        self.name = name

    def __repr__(self) -> str:
        return f"<IngredientRow({self.quantity!r}, {self.unit!r}, {self.name!r})>"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, IngredientRow):
            return NotImplemented
        return (self.quantity, self.unit, self.name) == (other.quantity, other.unit, other.name)

    @property
    def is_empty(self) -> bool:
        return not (self.quantity.strip() or self.unit.strip() or self.name.strip())


class RecipeForm:
    def __init__(
        self,
        *,
        title: str = "",
        preparation_time: str = "",
        difficulty: str = "",
        instructions: str = "",
        notes: str = "",
        rows: Iterable[IngredientRow] | None = None,
    ) -> None:
        self.title = title
        self.preparation_time = preparation_time
        self.difficulty = difficulty
        self.instructions = instructions
        self.notes = notes
        self.rows = list(rows) if rows is not None else []
        if not self.rows:
            self.rows.append(IngredientRow())
        self.error: str | None = None

    def __repr__(self) -> str:
        return f"<RecipeForm(title={self.title!r}, rows={len(self.rows)})>"

    @property
    def difficulties(self) -> tuple[str, ...]:
        return DIFFICULTIES

    @classmethod
    def from_recipe(cls, recipe: Recipe | None) -> "RecipeForm":
        if recipe is None:
            return cls()
        minutes = recipe.preparation_time_minutes
        return cls(
            title=recipe.title,
            preparation_time="" if minutes is None else str(minutes),
            difficulty=recipe.difficulty,
            instructions=recipe.instructions,
            notes=recipe.notes,
            rows=[IngredientRow(i.quantity, i.unit, i.name) for i in recipe.ingredients],
        )

    @classmethod
    def from_form(cls, form: MultiDict) -> "RecipeForm":
        """Read a submitted form. Ingredient rows come as parallel lists."""
        quantities = [str(v) for v in form.getlist("quantity")]
        units = [str(v) for v in form.getlist("unit")]
        names = [str(v) for v in form.getlist("name")]
        n = max(len(quantities), len(units), len(names))

        def at(values: list[str], i: int) -> str:
            return values[i] if i < len(values) else ""

        return cls(
            title=str(form.get("title") or ""),
            preparation_time=str(form.get("preparation_time") or ""),
            difficulty=str(form.get("difficulty") or ""),
            instructions=str(form.get("instructions") or ""),
            notes=str(form.get("notes") or ""),
            rows=[IngredientRow(at(quantities, i), at(units, i), at(names, i)) for i in range(n)],
        )

    def with_empty_row(self) -> "RecipeForm":
        self.rows.append(IngredientRow())
        return self

    def without_row(self, index: int) -> "RecipeForm":
        """Remove a row. The last remaining row is cleared instead."""
        if not 0 <= index < len(self.rows):
            return self
        if len(self.rows) == 1:
            self.rows[0] = IngredientRow()
            self.error = LAST_ROW
        else:
            del self.rows[index]
        return self

    def preparation_time_minutes(self) -> int | None:
        text = self.preparation_time.strip()
        if not text:
            return None
        try:
            minutes = int(text)
        except ValueError:
            return None
        return minutes if minutes >= 0 else None

    def validate(self) -> None:
        if not self.title.strip():
            raise FormError(MISSING_TITLE)

        has_named_row = any(row.name.strip() for row in self.rows)
        if not has_named_row:
            if len(self.rows) == 1 and not self.rows[0].is_empty:
                raise FormError(SINGLE_ROW_WITHOUT_NAME)
            if len(self.rows) > 1:
                raise FormError(NO_NAMED_ROW)

        for row in self.rows:
            if not row.name.strip() and (row.quantity.strip() or row.unit.strip()):
                raise FormError(ROW_WITHOUT_NAME)

    def to_recipe(self, existing: Recipe | None = None) -> Recipe:
        """Validate and build the record. ``existing`` is updated in place."""
        try:
            self.validate()
        except FormError as e:
            self.error = e.message
            logger.info("Form rejected: %s", e.message)
            raise

        recipe = existing if existing is not None else Recipe(self.title.strip())
        recipe.title = self.title.strip()
        recipe.instructions = self.instructions.strip()
        recipe.notes = self.notes.strip()
        recipe.difficulty = self.difficulty if self.difficulty in DIFFICULTIES else ""
        recipe.preparation_time_minutes = self.preparation_time_minutes()
        recipe.ingredients = []
        for row in self.rows:
            if row.name.strip():
                recipe.add_ingredient(
                    Ingredient(row.name.strip(), row.quantity.strip(), row.unit.strip())
                )
        return recipe
