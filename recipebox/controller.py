import logging
from typing import Awaitable, Callable, TypeVar

from recipebox.db import PartialReadError, RecipeStore, RecipeStoreError
from recipebox.models import Recipe
from recipebox.worker import spawn


logger = logging.getLogger(__name__)


T = TypeVar("T")


class Notice:
    """A message for the user, shown once on the next rendered page."""

    def __init__(self, kind: str, title: str, message: str, details: str = "") -> None:
        self.kind = kind
        self.title = title
        self.message = message
        self.details = details

    def __repr__(self) -> str:
        return f"<Notice(kind={self.kind}, title={self.title!r}, message={self.message!r})>"

    @classmethod
    def info(cls, title: str, message: str) -> "Notice":
        return cls("info", title, message)

    @classmethod
    def warning(cls, title: str, message: str, details: str = "") -> "Notice":
        return cls("warning", title, message, details)

    @classmethod
    def error(cls, title: str, message: str, details: str = "") -> "Notice":
        return cls("error", title, message, details)


class Board:
    """What the window currently shows."""

    def __init__(self) -> None:
        self.recipes: list[Recipe] = []
        self.query = ""
        self.selected: Recipe | None = None
        self.actions_enabled = False
        self.notices: list[Notice] = []

    def show_list(self, recipes: list[Recipe]) -> None:
        self.recipes = list(recipes)
        self.clear_selection()

    def clear_selection(self) -> None:
        self.selected = None
        self.actions_enabled = False


class RecipeController:
    """Turns user actions into storage calls and their results into board state.

    Each storage call runs in its own `Worker`; the board is only touched from
    the worker callbacks. Failures never escape: they end up as notices.
    """

    def __init__(self, store: RecipeStore, *, timeout: float | None = None) -> None:
        self.store = store
        self.timeout = timeout
        self.board = Board()

    def pop_notices(self) -> list[Notice]:
        notices, self.board.notices = self.board.notices, []
        return notices

    def notify(self, notice: Notice) -> None:
        self.board.notices.append(notice)

    async def _run(
        self,
        name: str,
        operation: Callable[[], Awaitable[T]],
        on_succeeded: Callable[[tuple[T, RecipeStoreError | None]], None],
        on_failed: Callable[[BaseException], None],
    ) -> None:
        async def call() -> tuple[T, RecipeStoreError | None]:
            await self.store.connect()
            result = await operation()
            return result, self.store.last_error

        worker = spawn(call, name=name, on_succeeded=on_succeeded, on_failed=on_failed)
        await worker.wait(self.timeout)

    async def load_list(self, *, select_id: int | None = None) -> None:
        """Load all recipes. Optionally select ``select_id`` afterwards."""
        failure_message = (
            "Fehler beim Laden der Rezeptliste."
            if select_id is None
            else "Fehler beim Neuladen der Rezeptliste."
        )

        def succeeded(outcome: tuple[list[Recipe], RecipeStoreError | None]) -> None:
            recipes, error = outcome
            self.board.query = ""
            self.board.show_list(recipes)
            if error is not None:
                self.notify(Notice.error("Datenbankfehler", failure_message, str(error)))

        def failed(error: BaseException) -> None:
            self.board.show_list([])
            self.notify(Notice.error("Datenbankfehler", failure_message, str(error)))

        await self._run("load-list", self.store.list_short, succeeded, failed)

        if select_id is not None:
            if any(recipe.id == select_id for recipe in self.board.recipes):
                await self.select(select_id)
            else:
                self.board.clear_selection()

    async def search(self, query: str | None) -> None:
        query = (query or "").strip()

        def succeeded(outcome: tuple[list[Recipe], RecipeStoreError | None]) -> None:
            recipes, error = outcome
            self.board.query = query
            self.board.show_list(recipes)
            if error is not None:
                self.notify(Notice.error("Datenbankfehler", "Fehler bei der Suche.", str(error)))

        def failed(error: BaseException) -> None:
            self.board.query = query
            self.board.show_list([])
            self.notify(Notice.error("Datenbankfehler", "Fehler bei der Suche.", str(error)))

        if not query:
            operation = self.store.list_short
        else:
            async def operation() -> list[Recipe]:
                return await self.store.search(query)

        await self._run("search", operation, succeeded, failed)

    async def select(self, recipe_id: int | None) -> None:
        if recipe_id is None:
            self.board.clear_selection()
            return

        def succeeded(outcome: tuple[Recipe | None, RecipeStoreError | None]) -> None:
            recipe, error = outcome
            if recipe is None:
                logger.error("Details for recipe %s not found.", recipe_id)
                self.board.clear_selection()
                self.notify(
                    Notice.error(
                        "Fehler",
                        "Rezeptdetails nicht gefunden",
                        str(error) if error else
                        "Das ausgewählte Rezept konnte nicht vollständig geladen werden.",
                    )
                )
                return
            self.board.selected = recipe
            self.board.actions_enabled = True
            if isinstance(error, PartialReadError):
                self.notify(
                    Notice.warning(
                        "Unvollständig",
                        "Die Zutaten konnten nicht vollständig geladen werden.",
                        str(error),
                    )
                )

        def failed(error: BaseException) -> None:
            self.board.clear_selection()
            self.notify(
                Notice.error(
                    "Datenbankfehler", "Fehler beim Laden der Rezeptdetails.", str(error)
                )
            )

        async def operation() -> Recipe | None:
            return await self.store.get_details(recipe_id)

        await self._run("details", operation, succeeded, failed)

    async def load_for_edit(self, recipe_id: int) -> Recipe | None:
        """The full recipe to fill the edit form with, or ``None``."""
        loaded: list[Recipe] = []

        def succeeded(outcome: tuple[Recipe | None, RecipeStoreError | None]) -> None:
            recipe, _ = outcome
            if recipe is None:
                self.notify(
                    Notice.error(
                        "Fehler",
                        "Rezept nicht gefunden",
                        "Die Details des ausgewählten Rezepts konnten nicht geladen werden.",
                    )
                )
                return
            loaded.append(recipe)

        def failed(error: BaseException) -> None:
            self.notify(
                Notice.error(
                    "Datenbankfehler", "Fehler beim Laden der Rezeptdetails.", str(error)
                )
            )

        async def operation() -> Recipe | None:
            return await self.store.get_details(recipe_id)

        await self._run("load-for-edit", operation, succeeded, failed)
        return loaded[0] if loaded else None

    async def create(self, recipe: Recipe) -> bool:
        return await self._save(recipe, is_new=True)

    async def update(self, recipe: Recipe) -> bool:
        return await self._save(recipe, is_new=False)

    async def _save(self, recipe: Recipe, *, is_new: bool) -> bool:
        done = "gespeichert" if is_new else "aktualisiert"
        doing = "Speichern" if is_new else "Aktualisieren"
        saved: list[bool] = []

        def succeeded(outcome: tuple[bool, RecipeStoreError | None]) -> None:
            ok, error = outcome
            if ok:
                saved.append(True)
                self.notify(Notice.info("Erfolg", f"Rezept erfolgreich {done}."))
            else:
                self.notify(
                    Notice.error(
                        "Fehler",
                        "Speichern fehlgeschlagen",
                        f"Das Rezept konnte nicht {done} werden."
                        + (f"\n{error}" if error else ""),
                    )
                )

        def failed(error: BaseException) -> None:
            self.notify(
                Notice.error(
                    "Datenbankfehler", f"Fehler beim {doing} des Rezepts.", str(error)
                )
            )

        async def operation() -> bool:
            if is_new:
                return await self.store.save(recipe)
            return await self.store.update(recipe)

        await self._run("save" if is_new else "update", operation, succeeded, failed)

        if saved:
            await self.load_list(select_id=recipe.id)
        return bool(saved)

    async def delete(self, recipe_id: int) -> bool:
        deleted: list[bool] = []

        def succeeded(outcome: tuple[bool, RecipeStoreError | None]) -> None:
            ok, error = outcome
            if ok:
                deleted.append(True)
                self.notify(Notice.info("Erfolg", "Rezept erfolgreich gelöscht."))
            else:
                self.notify(
                    Notice.error(
                        "Fehler",
                        "Löschen fehlgeschlagen",
                        "Das Rezept konnte nicht gelöscht werden "
                        "(möglicherweise existiert es nicht mehr)."
                        + (f"\n{error}" if error else ""),
                    )
                )

        def failed(error: BaseException) -> None:
            self.notify(
                Notice.error("Datenbankfehler", "Fehler beim Löschen des Rezepts.", str(error))
            )

        async def operation() -> bool:
            return await self.store.delete(recipe_id)

        await self._run("delete", operation, succeeded, failed)

        if deleted:
            await self.load_list()
        return bool(deleted)
