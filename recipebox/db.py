import asyncio
import contextlib
import logging
import unicodedata
from typing import AsyncIterator, Iterable

from databases import Database
from databases.core import Connection, Transaction

from recipebox.models import Ingredient, Recipe


logger = logging.getLogger(__name__)


CREATE_RECIPES_TABLE = {
    "sqlite": """
CREATE TABLE IF NOT EXISTS Recipes (
    recipe_id INTEGER PRIMARY KEY AUTOINCREMENT,
    title VARCHAR(255) NOT NULL,
    instructions TEXT,
    preparation_time_minutes INTEGER,
    difficulty VARCHAR(50),
    notes TEXT
)
""",
    "mysql": """
CREATE TABLE IF NOT EXISTS Recipes (
    recipe_id INT AUTO_INCREMENT PRIMARY KEY,
    title VARCHAR(255) NOT NULL,
    instructions TEXT,
    preparation_time_minutes INT NULL,
    difficulty VARCHAR(50) NULL,
    notes TEXT NULL
) ENGINE=InnoDB
""",
}


CREATE_INGREDIENTS_TABLE = {
    "sqlite": """
CREATE TABLE IF NOT EXISTS Ingredients (
    ingredient_id INTEGER PRIMARY KEY AUTOINCREMENT,
    recipe_id INTEGER NOT NULL REFERENCES Recipes(recipe_id) ON DELETE CASCADE,
    name VARCHAR(255) NOT NULL,
    quantity VARCHAR(50),
    unit VARCHAR(50)
)
""",
    "mysql": """
CREATE TABLE IF NOT EXISTS Ingredients (
    ingredient_id INT AUTO_INCREMENT PRIMARY KEY,
    recipe_id INT NOT NULL,
    name VARCHAR(255) NOT NULL,
    quantity VARCHAR(50) NULL,
    unit VARCHAR(50) NULL,
    FOREIGN KEY (recipe_id) REFERENCES Recipes(recipe_id) ON DELETE CASCADE
) ENGINE=InnoDB
""",
}


ENABLE_FOREIGN_KEYS = "PRAGMA foreign_keys = ON"


PING = "SELECT 1"


# SQLite's LOWER and default collation only know ASCII. On SQLite titles are
# matched with `casefold` and sorted with `sort_key`, which every session
# registers.
LIST_RECIPES_SHORT = {
    "sqlite": """
SELECT recipe_id, title FROM Recipes
ORDER BY sort_key(title) ASC, title ASC
""",
    "mysql": "SELECT recipe_id, title FROM Recipes ORDER BY title ASC",
}


SEARCH_RECIPES_BY_TITLE = {
    "sqlite": """
SELECT recipe_id, title FROM Recipes
WHERE casefold(title) LIKE casefold(:pattern)
ORDER BY sort_key(title) ASC, title ASC
""",
    "mysql": """
SELECT recipe_id, title FROM Recipes
WHERE LOWER(title) LIKE LOWER(:pattern)
ORDER BY title ASC
""",
}


GET_RECIPE = """
SELECT recipe_id, title, instructions, preparation_time_minutes, difficulty, notes
FROM Recipes WHERE recipe_id = :recipe_id
"""


RECIPE_EXISTS = "SELECT recipe_id FROM Recipes WHERE recipe_id = :recipe_id"


INSERT_RECIPE = """
INSERT INTO Recipes (title, instructions, preparation_time_minutes, difficulty, notes)
VALUES (:title, :instructions, :preparation_time_minutes, :difficulty, :notes)
"""


UPDATE_RECIPE = """
UPDATE Recipes
SET title = :title, instructions = :instructions,
    preparation_time_minutes = :preparation_time_minutes,
    difficulty = :difficulty, notes = :notes
WHERE recipe_id = :recipe_id
"""


DELETE_RECIPE = "DELETE FROM Recipes WHERE recipe_id = :recipe_id"


LIST_INGREDIENTS = """
SELECT ingredient_id, recipe_id, name, quantity, unit
FROM Ingredients WHERE recipe_id = :recipe_id
ORDER BY ingredient_id ASC
"""


INSERT_INGREDIENT = """
INSERT INTO Ingredients (recipe_id, name, quantity, unit)
VALUES (:recipe_id, :name, :quantity, :unit)
"""


DELETE_INGREDIENTS = "DELETE FROM Ingredients WHERE recipe_id = :recipe_id"


class RecipeStoreError(Exception):
    pass


class DatabaseConnectionError(RecipeStoreError):
    """The database could not be reached. Carries the driver's message."""


class QueryError(RecipeStoreError):
    """A statement failed, or a write found nothing to change."""


class PartialReadError(RecipeStoreError):
    """A recipe was read but its ingredients only partly or not at all."""


def _casefold(value: str | None) -> str | None:
    return None if value is None else value.casefold()


def _sort_key(value: str | None) -> str | None:
    """Fold case and drop accents so that 'Äpfel' sorts next to 'Apfel'."""
    if value is None:
        return None
    decomposed = unicodedata.normalize("NFKD", value)
    return "".join(c for c in decomposed if not unicodedata.combining(c)).casefold()


def _recipe_values(recipe: Recipe) -> dict[str, object]:
    return {
        "title": recipe.title,
        "instructions": recipe.instructions,
        "preparation_time_minutes": recipe.preparation_time_minutes,
        "difficulty": recipe.difficulty,
        "notes": recipe.notes,
    }


def _ingredient_values(
    recipe_id: int, ingredients: Iterable[Ingredient]
) -> list[dict[str, object]]:
    return [
        {
            "recipe_id": recipe_id,
            "name": ingredient.name,
            "quantity": ingredient.quantity,
            "unit": ingredient.unit,
        }
        for ingredient in ingredients
    ]


class RecipeStore:
    """Reads and writes recipes and their ingredients.

    The store is the only owner of its `Database`. Every operation goes
    through `_session`, which makes sure the database is connected, takes a
    scoped connection for the duration of the call and holds a lock so that
    only one operation runs at a time.

    Read operations never raise: failures are logged and give an empty result.
    Write operations report ``False`` after rolling back. In both cases the
    reason is available as `last_error` until the next operation starts.
    """

    def __init__(self, database: Database) -> None:
        self.database = database
        self.last_error: RecipeStoreError | None = None
        self._connected = False
        self._lock = asyncio.Lock()

    @property
    def dialect(self) -> str:
        return self.database.url.dialect

    @property
    def is_connected(self) -> bool:
        return self._connected

    async def connect(self) -> None:
        if self._connected:
            return
        try:
            await self.database.connect()
            async with self.database.connection() as connection:
                await connection.execute(PING)
        except Exception as e:
            logger.error("Could not connect to %s: %s", self.database.url, e)
            await self.disconnect()
            raise DatabaseConnectionError(str(e)) from e
        self._connected = True
        logger.info("Connected to %s", self.database.url)

    async def disconnect(self) -> None:
        self._connected = False
        if not self.database.is_connected:
            return
        try:
            await self.database.disconnect()
        except Exception as e:
            logger.error("Error while closing the database connection: %s", e)
        else:
            logger.info("Database connection closed.")

    async def create_schema(self) -> None:
        async with self._session() as connection:
            try:
                await connection.execute(CREATE_RECIPES_TABLE[self.dialect])
                await connection.execute(CREATE_INGREDIENTS_TABLE[self.dialect])
            except Exception as e:
                logger.error("Could not create the schema: %s", e)
                raise QueryError(str(e)) from e
        logger.info("Schema is ready (%s).", self.dialect)

    @contextlib.asynccontextmanager
    async def _session(self) -> AsyncIterator[Connection]:
        async with self._lock:
            await self.connect()
            async with self.database.connection() as connection:
                if self.dialect == "sqlite":
                    await connection.execute(ENABLE_FOREIGN_KEYS)
                    await connection.raw_connection.create_function(
                        "casefold", 1, _casefold, deterministic=True
                    )
                    await connection.raw_connection.create_function(
                        "sort_key", 1, _sort_key, deterministic=True
                    )
                yield connection

    def _fail(
        self, error: RecipeStoreError, cause: BaseException | None = None
    ) -> None:
        if cause is not None:
            error.__cause__ = cause
        self.last_error = error
        logger.error("%s", error, exc_info=error.__cause__)

    async def list_short(self) -> list[Recipe]:
        """All recipes with only id and title, ordered by title."""
        self.last_error = None
        try:
            async with self._session() as connection:
                rows = await connection.fetch_all(LIST_RECIPES_SHORT[self.dialect])
        except DatabaseConnectionError as e:
            self._fail(e)
            return []
        except Exception as e:
            self._fail(QueryError(f"Could not list recipes: {e}"), e)
            return []
        return [Recipe.short(row[0], row[1]) for row in rows]

    async def search(self, query: str) -> list[Recipe]:
        """Recipes whose title contains `query`, ignoring case.

        `query` is wrapped in ``%`` as is: any ``%`` or ``_`` it contains acts
        as a wildcard. Callers send blank queries to `list_short` instead.
        """
        self.last_error = None
        if query is None:
            self._fail(QueryError("Search query must not be None."))
            return []
        try:
            async with self._session() as connection:
                rows = await connection.fetch_all(
                    SEARCH_RECIPES_BY_TITLE[self.dialect],
                    values={"pattern": f"%{query}%"},
                )
        except DatabaseConnectionError as e:
            self._fail(e)
            return []
        except Exception as e:
            self._fail(QueryError(f"Could not search recipes for {query!r}: {e}"), e)
            return []
        return [Recipe.short(row[0], row[1]) for row in rows]

    async def get_details(self, recipe_id: int) -> Recipe | None:
        """The full recipe with its ingredients, or ``None`` if there is none.

        If the recipe row was read but reading its ingredients fails, the
        recipe is still returned with the ingredients read so far and
        `last_error` is a `PartialReadError`.
        """
        self.last_error = None
        try:
            async with self._session() as connection:
                row = await connection.fetch_one(
                    GET_RECIPE, values={"recipe_id": recipe_id}
                )
                if row is None:
                    logger.info("No recipe with id %s.", recipe_id)
                    return None
                recipe = Recipe(
                    row[1],
                    instructions=row[2],
                    preparation_time_minutes=row[3],
                    difficulty=row[4],
                    notes=row[5],
                    id=row[0],
                )
                try:
                    async for ingredient_row in connection.iterate(
                        LIST_INGREDIENTS, values={"recipe_id": recipe_id}
                    ):
                        recipe.add_ingredient(
                            Ingredient(
                                ingredient_row[2],
                                ingredient_row[3],
                                ingredient_row[4],
                                id=ingredient_row[0],
                                recipe_id=ingredient_row[1],
                            )
                        )
                except Exception as e:
                    self._fail(
                        PartialReadError(
                            f"Could not read all ingredients of recipe {recipe_id}: {e}"
                        ),
                        e,
                    )
                return recipe
        except DatabaseConnectionError as e:
            self._fail(e)
            return None
        except Exception as e:
            self._fail(QueryError(f"Could not read recipe {recipe_id}: {e}"), e)
            return None

    async def save(self, recipe: Recipe) -> bool:
        """Insert a new recipe and its ingredients in one transaction.

        On success ``recipe.id`` and every ``ingredient.recipe_id`` are set to
        the id the database assigned. On failure nothing is stored and the
        recipe is left untouched.
        """
        self.last_error = None
        if recipe is None or recipe.id > 0:
            self._fail(QueryError(f"Only unsaved recipes can be saved, got {recipe!r}."))
            return False
        try:
            async with self._session() as connection:
                transaction = await connection.transaction()
                try:
                    recipe_id = await connection.execute(
                        INSERT_RECIPE, values=_recipe_values(recipe)
                    )
                    if not recipe_id:
                        raise QueryError("Recipe was inserted but no id came back.")
                    if recipe.ingredients:
                        await connection.execute_many(
                            INSERT_INGREDIENT,
                            values=_ingredient_values(recipe_id, recipe.ingredients),
                        )
                    await transaction.commit()
                except Exception:
                    await self._rollback(transaction)
                    raise
        except DatabaseConnectionError as e:
            self._fail(e)
            return False
        except Exception as e:
            self._fail(QueryError(f"Could not save recipe {recipe.title!r}: {e}"), e)
            return False

        recipe.id = recipe_id
        for ingredient in recipe.ingredients:
            ingredient.recipe_id = recipe_id
        logger.info("Saved recipe %r with id %s.", recipe.title, recipe_id)
        return True

    async def update(self, recipe: Recipe) -> bool:
        """Replace a stored recipe and all of its ingredients in one transaction.

        The old ingredient rows are deleted and the current ones inserted, so
        the stored list ends up exactly like ``recipe.ingredients``. If the
        recipe does not exist the transaction is rolled back.
        """
        self.last_error = None
        if recipe is None or recipe.id <= 0:
            self._fail(QueryError(f"Only stored recipes can be updated, got {recipe!r}."))
            return False
        try:
            async with self._session() as connection:
                transaction = await connection.transaction()
                try:
                    await connection.execute(
                        DELETE_INGREDIENTS, values={"recipe_id": recipe.id}
                    )
                    exists = await connection.fetch_one(
                        RECIPE_EXISTS, values={"recipe_id": recipe.id}
                    )
                    if exists is None:
                        raise QueryError(f"Recipe {recipe.id} does not exist.")
                    await connection.execute(
                        UPDATE_RECIPE,
                        values={**_recipe_values(recipe), "recipe_id": recipe.id},
                    )
                    if recipe.ingredients:
                        await connection.execute_many(
                            INSERT_INGREDIENT,
                            values=_ingredient_values(recipe.id, recipe.ingredients),
                        )
                    await transaction.commit()
                except Exception:
                    await self._rollback(transaction)
                    raise
        except DatabaseConnectionError as e:
            self._fail(e)
            return False
        except Exception as e:
            self._fail(QueryError(f"Could not update recipe {recipe.id}: {e}"), e)
            return False

        for ingredient in recipe.ingredients:
            ingredient.recipe_id = recipe.id
        logger.info("Updated recipe %r (id %s).", recipe.title, recipe.id)
        return True

    async def delete(self, recipe_id: int) -> bool:
        """Delete a recipe. Its ingredients go with it through the foreign key.

        ``False`` means the delete failed or there was no such recipe.
        """
        self.last_error = None
        if recipe_id is None or recipe_id <= 0:
            self._fail(QueryError(f"Invalid recipe id {recipe_id!r}."))
            return False
        try:
            async with self._session() as connection:
                exists = await connection.fetch_one(
                    RECIPE_EXISTS, values={"recipe_id": recipe_id}
                )
                if exists is None:
                    logger.info("No recipe to delete with id %s.", recipe_id)
                    return False
                await connection.execute(DELETE_RECIPE, values={"recipe_id": recipe_id})
        except DatabaseConnectionError as e:
            self._fail(e)
            return False
        except Exception as e:
            self._fail(QueryError(f"Could not delete recipe {recipe_id}: {e}"), e)
            return False
        logger.info("Deleted recipe %s.", recipe_id)
        return True

    async def _rollback(self, transaction: Transaction) -> None:
        logger.warning("Rolling back.")
        try:
            await transaction.rollback()
        except Exception as e:
            logger.error("Rollback failed: %s", e)
