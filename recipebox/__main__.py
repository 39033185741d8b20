import logging
import webbrowser

import uvicorn
from rich import print
from rich.logging import RichHandler

from recipebox import config
from recipebox.app import create_app


def main() -> None:
    cfg = config.Config()
    logging.basicConfig(
        level=cfg.log_level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True)],
    )

    url = f"http://{cfg.host}:{cfg.port}/"
    print(f"[bold]Rezeptverwaltung[/bold] on {url} ({cfg.env.value}, {cfg.db_url})")
    if cfg.open_browser:
        webbrowser.open(url)

    uvicorn.run(
        create_app(cfg),
        host=cfg.host,
        port=cfg.port,
        log_config=None,
        log_level=cfg.log_level.lower(),
    )


if __name__ == "__main__":
    main()
