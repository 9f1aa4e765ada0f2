# =======================================================================================
# access_station/__main__.py - Server Entry Point
# =======================================================================================
import uvicorn

from .config import config


def main() -> None:
    uvicorn.run(
        "access_station.main:app",
        host=config.API_HOST,
        port=config.API_PORT,
        log_level="debug" if config.API_DEBUG else "info",
    )


if __name__ == "__main__":
    main()
