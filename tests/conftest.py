from pathlib import Path
from typing import AsyncIterator

import pytest
import pytest_asyncio
from databases import Database

from recipebox.config import Config
from recipebox.db import RecipeStore
from recipebox.models import Ingredient, Recipe


@pytest.fixture
def db_url(tmp_path: Path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'recipes.db'}"


@pytest.fixture
def config(db_url: str) -> Config:
    return Config(db_url=db_url, env="local", worker_timeout=5)


@pytest_asyncio.fixture
async def store(db_url: str) -> AsyncIterator[RecipeStore]:
    store = RecipeStore(Database(db_url))
    await store.connect()
    await store.create_schema()
    yield store
    await store.disconnect()


@pytest.fixture
def tea() -> Recipe:
    return Recipe(
        "Tee",
        instructions="Wasser kochen.\n\nBeutel *3 Minuten* ziehen lassen.",
        preparation_time_minutes=5,
        difficulty="Einfach",
        notes="Schmeckt auch kalt.",
        ingredients=[Ingredient("Zucker", "1", "TL"), Ingredient("Teebeutel", "1")],
    )
