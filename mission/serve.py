# mission/serve.py
from __future__ import annotations

import uvicorn

from mission.settings import get_settings


def main() -> None:
    """Run the relay and registry with the HOST/PORT/LOG_LEVEL settings."""
    settings = get_settings()
    uvicorn.run(
        "mission.main:app",
        host=settings.HOST,
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    main()
