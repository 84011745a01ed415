"""Console entry point: ``promptify-server``."""

import uvicorn

from server.settings import ServerSettings


def main() -> None:  # pragma: no cover
    settings = ServerSettings()
    uvicorn.run(
        "server.app:get_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        log_config=None,
    )


if __name__ == "__main__":  # pragma: no cover
    main()
