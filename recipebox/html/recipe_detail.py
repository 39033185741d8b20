from jinja2 import Environment
from markdown2 import (  # pyright: ignore[reportMissingTypeStubs]
    markdown,  # pyright: ignore[reportUnknownVariableType]
)
from markupsafe import Markup

from recipebox.models import Recipe


DIFFICULTY_STYLES = {
    "Einfach": "success",
    "Mittel": "warning",
    "Schwer": "danger",
}

NO_INGREDIENTS = "Keine Zutaten angegeben."
NO_INSTRUCTIONS = "Keine Anleitung vorhanden."


class RecipeDetail:
    def __init__(
        self,
        recipe: Recipe,
        *,
        environment: Environment,
        template_name: str = "recipe-detail.html",
    ) -> None:
        self.recipe = recipe
        self.env = environment
        self.name = template_name

    @property
    def id(self) -> int:
        return self.recipe.id

    @property
    def title(self) -> str:
        return self.recipe.title

    @property
    def time(self) -> str | None:
        minutes = self.recipe.preparation_time_minutes
        if minutes is None or minutes <= 0:
            return None
        return f"Zeit: {minutes} Min."

    @property
    def difficulty(self) -> str | None:
        return self.recipe.difficulty or None

    @property
    def difficulty_style(self) -> str:
        return DIFFICULTY_STYLES.get(self.recipe.difficulty, "accent")

    @property
    def ingredients(self) -> list[str]:
        return [f"✦ {ingredient}" for ingredient in self.recipe.ingredients]

    @property
    def no_ingredients(self) -> str:
        return NO_INGREDIENTS

    @property
    def instructions(self) -> str:
        if not self.recipe.instructions.strip():
            return Markup("<p>{}</p>").format(NO_INSTRUCTIONS)
        return Markup(markdown(self.recipe.instructions, safe_mode="escape"))

    @property
    def notes(self) -> str | None:
        return self.recipe.notes.strip() or None

    def render(self) -> str:
        return self.env.get_template(self.name).render(recipe=self)
