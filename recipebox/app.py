import contextlib
import functools
import logging
from typing import Any, AsyncIterator, Awaitable, Callable

from databases import Database
from jinja2 import Environment, FileSystemLoader, select_autoescape
from markupsafe import Markup
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import FileResponse, HTMLResponse, RedirectResponse, Response
from starlette.routing import Route

from recipebox import config
from recipebox.controller import RecipeController
from recipebox.db import RecipeStore, RecipeStoreError
from recipebox.forms import FormError, RecipeForm
from recipebox.html.recipe_detail import RecipeDetail
from recipebox.models import Recipe


logger = logging.getLogger(__name__)


def templates(cfg: config.Config) -> Environment:
    return Environment(
        loader=FileSystemLoader(cfg.html_dir),
        autoescape=select_autoescape(),
    )


def aHTMLResponse(route: Callable[..., Awaitable[str | tuple[str, int]]]):
    @functools.wraps(route)
    async def wrapper(*args: Any, **kwargs: Any) -> HTMLResponse:
        resp = await route(*args, **kwargs)
        if not isinstance(resp, tuple):
            html, code = resp, 200
        else:
            html, code = resp
        return HTMLResponse(html, status_code=code)

    return wrapper


def _controller(request: Request) -> RecipeController:
    return request.app.state.controller


def _templates(request: Request) -> Environment:
    return request.app.state.templates


def render_board(request: Request) -> str:
    controller = _controller(request)
    env = _templates(request)
    board = controller.board
    detail = None
    if board.selected is not None:
        detail = Markup(RecipeDetail(board.selected, environment=env).render())
    return env.get_template("index.html").render(
        board=board, detail=detail, notices=controller.pop_notices()
    )


def render_form(request: Request, form: RecipeForm, *, recipe_id: int | None) -> str:
    if recipe_id is None:
        heading, action, cancel = "Neues Rezept erstellen", "/recipes/new", "/"
    else:
        heading = "Rezept bearbeiten"
        action = f"/recipes/{recipe_id}/edit"
        cancel = f"/recipes/{recipe_id}"
    return _templates(request).get_template("edit.html").render(
        form=form,
        heading=heading,
        action=action,
        cancel=cancel,
        notices=_controller(request).pop_notices(),
    )


async def favicon(request: Request) -> Response:
    path = request.app.state.config.images_dir / "favicon.ico"
    if path.is_file():
        return FileResponse(path)
    return Response(status_code=204)


@aHTMLResponse
async def homepage(request: Request) -> str:
    controller = _controller(request)
    query = request.query_params.get("q")
    if query is None:
        await controller.load_list()
    else:
        await controller.search(query)
    return render_board(request)


@aHTMLResponse
async def recipe_detail(request: Request) -> str:
    controller = _controller(request)
    if not controller.board.recipes:
        await controller.load_list()
    await controller.select(request.path_params["id"])
    return render_board(request)


async def _edit_action(request: Request) -> tuple[RecipeForm, str]:
    async with request.form() as data:
        form = RecipeForm.from_form(data)
        action = str(data.get("action") or "save")
    if action == "add-row":
        form.with_empty_row()
    elif action.startswith("remove-row:"):
        try:
            form.without_row(int(action.split(":", 1)[1]))
        except ValueError:
            logger.warning("Ignoring malformed form action %r.", action)
    return form, action


async def create(request: Request) -> Response:
    match request.method.lower():
        case "get":
            return HTMLResponse(render_form(request, RecipeForm(), recipe_id=None))
        case "post":
            form, action = await _edit_action(request)
            if action != "save":
                return HTMLResponse(render_form(request, form, recipe_id=None))
            try:
                recipe = form.to_recipe()
            except FormError:
                return HTMLResponse(render_form(request, form, recipe_id=None), 400)
            if not await _controller(request).create(recipe):
                return HTMLResponse(render_form(request, form, recipe_id=None), 500)
            return RedirectResponse(f"/recipes/{recipe.id}", status_code=303)
        case _:
            raise ValueError("Unsupported method.")


async def edit(request: Request) -> Response:
    recipe_id: int = request.path_params["id"]
    controller = _controller(request)
    match request.method.lower():
        case "get":
            recipe = await controller.load_for_edit(recipe_id)
            if recipe is None:
                return RedirectResponse("/", status_code=303)
            form = RecipeForm.from_recipe(recipe)
            return HTMLResponse(render_form(request, form, recipe_id=recipe_id))
        case "post":
            form, action = await _edit_action(request)
            if action != "save":
                return HTMLResponse(render_form(request, form, recipe_id=recipe_id))
            try:
                recipe = form.to_recipe(Recipe(form.title, id=recipe_id))
            except FormError:
                return HTMLResponse(render_form(request, form, recipe_id=recipe_id), 400)
            if not await controller.update(recipe):
                return HTMLResponse(render_form(request, form, recipe_id=recipe_id), 500)
            return RedirectResponse(f"/recipes/{recipe_id}", status_code=303)
        case _:
            raise ValueError("Unsupported method.")


async def delete(request: Request) -> Response:
    await _controller(request).delete(request.path_params["id"])
    return RedirectResponse("/", status_code=303)


@contextlib.asynccontextmanager
async def lifespan(app: Starlette) -> AsyncIterator[None]:
    store: RecipeStore = app.state.store
    try:
        await store.connect()
        await store.create_schema()
    except RecipeStoreError as e:
        logger.error("Starting without a usable database: %s", e)
    yield
    await store.disconnect()


def create_app(
    cfg: config.Config | None = None, store: RecipeStore | None = None
) -> Starlette:
    cfg = cfg or config.Config()
    store = store or RecipeStore(Database(cfg.db_url))

    app = Starlette(
        debug=cfg.debug,
        routes=[
            Route("/", homepage),
            Route("/recipes/new", create, methods=["GET", "POST"]),
            Route("/recipes/{id:int}", recipe_detail),
            Route("/recipes/{id:int}/edit", edit, methods=["GET", "POST"]),
            Route("/recipes/{id:int}/delete", delete, methods=["POST"]),
            Route("/favicon.ico", favicon),
        ],
        lifespan=lifespan,
    )

    app.state.config = cfg
    app.state.templates = templates(cfg)
    app.state.store = store
    app.state.controller = RecipeController(store, timeout=cfg.worker_timeout)
    return app
