"""
Process entry point: python -m rbx_tracker / rbx-tracker.
"""

from __future__ import annotations

import uvicorn

from rbx_tracker.config import load_config
from rbx_tracker.logging import get_logger, setup_logging
from rbx_tracker.web.app import create_app

logger = get_logger(__name__)


def main(argv: list[str] | None = None) -> None:
    """Load configuration, then serve the API and run the pollers."""
    config = load_config(cli_args=argv)
    setup_logging(config.logging)

    app = create_app(config)
    logger.info(
        f"Roblox analytics server is running on http://{config.server.host}:{config.server.port}",
        extra={
            "universe_ids": config.tracker.universe_ids,
            "data_dir": config.storage.data_dir,
        },
    )
    uvicorn.run(
        app,
        host=config.server.host,
        port=config.server.port,
        log_level=config.server.log_level,
    )


if __name__ == "__main__":
    main()
