import pytest
from starlette.datastructures import FormData

from recipebox.forms import (
    MISSING_TITLE,
    NO_NAMED_ROW,
    ROW_WITHOUT_NAME,
    SINGLE_ROW_WITHOUT_NAME,
    FormError,
    IngredientRow,
    RecipeForm,
)
from recipebox.models import Ingredient, Recipe


def submitted(*rows: tuple[str, str, str], **fields: str) -> FormData:
    items = list(fields.items())
    for quantity, unit, name in rows:
        items += [("quantity", quantity), ("unit", unit), ("name", name)]
    return FormData(items)


def test_new_form_has_one_empty_row() -> None:
    form = RecipeForm.from_recipe(None)
    assert form.rows == [IngredientRow()]
    assert form.difficulties == ("Einfach", "Mittel", "Schwer")


def test_from_recipe() -> None:
    recipe = Recipe(
        "Tee",
        preparation_time_minutes=0,
        difficulty="Mittel",
        ingredients=[Ingredient("Zucker", "1", "TL")],
        id=3,
    )
    form = RecipeForm.from_recipe(recipe)
    assert form.title == "Tee"
    assert form.preparation_time == "0"
    assert form.difficulty == "Mittel"
    assert form.rows == [IngredientRow("1", "TL", "Zucker")]


def test_from_form_to_recipe() -> None:
    form = RecipeForm.from_form(
        submitted(
            ("1", "TL", " Zucker "),
            ("", "", ""),
            ("2", "", "Zitronen"),
            title="  Tee ",
            preparation_time=" 10 ",
            difficulty="Einfach",
            instructions=" Aufgießen. ",
            notes="",
        )
    )
    recipe = form.to_recipe()
    assert recipe.id == 0
    assert recipe.title == "Tee"
    assert recipe.preparation_time_minutes == 10
    assert recipe.difficulty == "Einfach"
    assert recipe.instructions == "Aufgießen."
    assert [(i.quantity, i.unit, i.name) for i in recipe.ingredients] == [
        ("1", "TL", "Zucker"),
        ("2", "", "Zitronen"),
    ]


@pytest.mark.parametrize(
    "text,expected",
    (("", None), ("  ", None), ("abc", None), ("-5", None), ("0", 0), ("90", 90)),
)
def test_preparation_time(text: str, expected: int | None) -> None:
    form = RecipeForm(title="Tee", preparation_time=text)
    assert form.to_recipe().preparation_time_minutes == expected


def test_unknown_difficulty_is_dropped() -> None:
    assert RecipeForm(title="Tee", difficulty="Extrem").to_recipe().difficulty == ""


def test_single_empty_row_means_no_ingredients() -> None:
    assert RecipeForm(title="Tee").to_recipe().ingredients == []


@pytest.mark.parametrize(
    "title,rows,message",
    (
        ("   ", [IngredientRow()], MISSING_TITLE),
        ("Tee", [IngredientRow("1", "TL", "")], SINGLE_ROW_WITHOUT_NAME),
        ("Tee", [IngredientRow(), IngredientRow()], NO_NAMED_ROW),
        ("Tee", [IngredientRow("", "", "Zucker"), IngredientRow("1", "", "")], ROW_WITHOUT_NAME),
    ),
)
def test_validation(title: str, rows: list[IngredientRow], message: str) -> None:
    form = RecipeForm(title=title, rows=rows)
    with pytest.raises(FormError) as e:
        form.to_recipe()
    assert e.value.message == message
    assert form.error == message


def test_to_recipe_updates_existing() -> None:
    existing = Recipe("Alt", ingredients=[Ingredient("Alt")], id=8)
    form = RecipeForm(title="Neu", rows=[IngredientRow("", "", "Minze")])
    recipe = form.to_recipe(existing)
    assert recipe is existing
    assert recipe.id == 8
    assert recipe.title == "Neu"
    assert [(i.name, i.recipe_id) for i in recipe.ingredients] == [("Minze", 8)]


def test_rows() -> None:
    form = RecipeForm(title="Tee", rows=[IngredientRow("", "", "Zucker")])
    form.with_empty_row()
    assert len(form.rows) == 2

    form.without_row(0)
    assert form.rows == [IngredientRow()]
    assert form.error is None

    form.without_row(0)
    assert form.rows == [IngredientRow()]
    assert form.error is not None

    form.without_row(5)
    assert len(form.rows) == 1
