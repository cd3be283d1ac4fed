"""
Run the API with uvicorn.

Usage:
    python -m api
"""

import uvicorn

from api.settings import load_settings


def main() -> None:
    settings = load_settings()
    uvicorn.run(
        "api.main:create_app_from_env",
        factory=True,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
