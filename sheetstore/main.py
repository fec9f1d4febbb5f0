from __future__ import annotations

import uvicorn

from sheetstore.utils.config import load_server_config
from sheetstore.utils.logging import configure_logging


def run() -> None:
    configure_logging()
    config = load_server_config()
    uvicorn.run(
        "sheetstore.api.router:create_app",
        factory=True,
        host=config.host,
        port=config.port,
    )


if __name__ == "__main__":
    run()
