"""
Development entry point: `python -m trashtag` or the `trashtag` script.
"""

import uvicorn

from trashtag.config import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run(
        "trashtag.app:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
