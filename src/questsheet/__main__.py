"""Run the QuestSheet API with uvicorn: ``python -m questsheet``."""

import uvicorn

from questsheet.config import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run(
        "questsheet.main:app",
        host="0.0.0.0",
        port=settings.port,
        log_level=settings.app_log_level.lower(),
    )


if __name__ == "__main__":
    main()
