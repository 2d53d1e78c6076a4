from __future__ import annotations

import os

import uvicorn

from inventario.logging_config import configure_logging


def main() -> None:
    configure_logging()
    uvicorn.run(
        "inventario.main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("APP_PORT", "10000")),
        reload=os.getenv("RELOAD", "0") == "1",
        log_level=os.getenv("LOG_LEVEL", "info").lower(),
    )


if __name__ == "__main__":
    main()
