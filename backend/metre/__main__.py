"""Run the Métré API with uvicorn: ``python -m metre``."""
import uvicorn

from metre.config import get_config


def main() -> None:
    config = get_config()
    uvicorn.run(
        "metre.main:app",
        host=config.server.host,
        port=config.server.port,
        log_level=config.logging.level.lower(),
    )


if __name__ == "__main__":
    main()
