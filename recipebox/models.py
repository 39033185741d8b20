from typing import Iterable


DIFFICULTIES = ("Einfach", "Mittel", "Schwer")


def _text(value: str | None) -> str:
    return "" if value is None else value


class Ingredient:
    """One ingredient line of a recipe.

    ``id`` and ``recipe_id`` are 0 until the ingredient has been stored.
    ``quantity`` and ``unit`` are free text; ``None`` is stored as ``""``.
    """

    def __init__(
        self,
        name: str,
        quantity: str | None = "",
        unit: str | None = "",
        *,
        id: int = 0,
        recipe_id: int = 0,
    ) -> None:
        self.id = id
        self.recipe_id = recipe_id
        self.name = name
        self.quantity = quantity
        self.unit = unit

    @property
    def name(self) -> str:
        return self._name

    @name.setter
    def name(self, value: str) -> None:
        if value is None:
            raise ValueError("Ingredient name must not be None.")
        self._name = value

    @property
    def quantity(self) -> str:
        return self._quantity

    @quantity.setter
    def quantity(self, value: str | None) -> None:
        self._quantity = _text(value)

    @property
    def unit(self) -> str:
        return self._unit

    @unit.setter
    def unit(self, value: str | None) -> None:
        self._unit = _text(value)

    def _key(self) -> tuple[int, str, str, str]:
        return (self.recipe_id, self.name, self.quantity, self.unit)

    def __eq__(self, other: object) -> bool:
        if self is other:
            return True
        if not isinstance(other, Ingredient):
            return NotImplemented
        if self.id > 0 and other.id > 0:
            return self.id == other.id
        return self._key() == other._key()

    def __hash__(self) -> int:
        if self.id > 0:
            return hash(self.id)
        return hash(self._key())

    def __repr__(self) -> str:
        return (
            f"<Ingredient(id={self.id}, recipe_id={self.recipe_id}, "
            f"name={self.name!r}, quantity={self.quantity!r}, unit={self.unit!r})>"
        )

    def __str__(self) -> str:
        parts = (self.quantity.strip(), self.unit.strip(), self.name.strip())
        return " ".join(p for p in parts if p)


class Recipe:
    """A recipe and its ingredients.

    A *short* recipe (see `Recipe.short`) only carries ``id`` and ``title`` and
    is what list and search return. A *full* recipe carries everything.

    ``preparation_time_minutes`` is ``None`` when not specified, which is not
    the same as ``0``. The other optional text fields hold ``""`` instead of
    ``None``.
    """

    def __init__(
        self,
        title: str,
        instructions: str | None = "",
        preparation_time_minutes: int | None = None,
        difficulty: str | None = "",
        notes: str | None = "",
        ingredients: Iterable[Ingredient] | None = None,
        *,
        id: int = 0,
    ) -> None:
        self.id = id
        self.title = title
        self.instructions = instructions
        self.preparation_time_minutes = preparation_time_minutes
        self.difficulty = difficulty
        self.notes = notes
        self.ingredients = ingredients

    @classmethod
    def short(cls, id: int, title: str) -> "Recipe":
        return cls(title, id=id)

    @property
    def title(self) -> str:
        return self._title

    @title.setter
    def title(self, value: str) -> None:
        if value is None:
            raise ValueError("Recipe title must not be None.")
        self._title = value

    @property
    def instructions(self) -> str:
        return self._instructions

    @instructions.setter
    def instructions(self, value: str | None) -> None:
        self._instructions = _text(value)

    @property
    def difficulty(self) -> str:
        return self._difficulty

    @difficulty.setter
    def difficulty(self, value: str | None) -> None:
        self._difficulty = _text(value)

    @property
    def notes(self) -> str:
        return self._notes

    @notes.setter
    def notes(self, value: str | None) -> None:
        self._notes = _text(value)

    @property
    def ingredients(self) -> list[Ingredient]:
        return self._ingredients

    @ingredients.setter
    def ingredients(self, value: Iterable[Ingredient] | None) -> None:
        self._ingredients = [] if value is None else list(value)

    def add_ingredient(self, ingredient: Ingredient) -> None:
        if ingredient is None:
            raise ValueError("Cannot add None as an ingredient.")
        if self.id > 0:
            ingredient.recipe_id = self.id
        self._ingredients.append(ingredient)

    def remove_ingredient(self, ingredient: Ingredient) -> bool:
        try:
            self._ingredients.remove(ingredient)
        except ValueError:
            return False
        return True

    def __eq__(self, other: object) -> bool:
        if self is other:
            return True
        if not isinstance(other, Recipe):
            return NotImplemented
        if self.id > 0 and other.id > 0:
            return self.id == other.id
        return self.title == other.title and self.ingredients == other.ingredients

    def __hash__(self) -> int:
        if self.id > 0:
            return hash(self.id)
        return hash((self.title, tuple(self.ingredients)))

    def __repr__(self) -> str:
        return f"<Recipe(id={self.id}, title={self.title!r})>"

    def __str__(self) -> str:
        return self.title
