import logging
import os

import uvicorn

from voicebridge.backend.web import app


def main() -> None:
    log_level = os.getenv("LOG_LEVEL", "info").strip().lower() or "info"
    logging.basicConfig(level=log_level.upper())
    uvicorn.run(
        app,
        host=os.getenv("HOST", "127.0.0.1"),
        port=int(os.getenv("PORT", "8000")),
        log_level=log_level,
    )


if __name__ == "__main__":
    main()
