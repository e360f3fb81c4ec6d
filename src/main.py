"""Application entry point: `python -m src.main`"""

import uvicorn

from src.api.app import create_app
from src.core.config import Settings
from src.core.logging import setup_logging


def main() -> None:
    settings = Settings()
    setup_logging(settings.debug)
    app = create_app(settings)
    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
