"""
knotulus_api.api.__main__

`python -m knotulus_api.api` / `knotulus-api`: serve the API with uvicorn.
"""

from __future__ import annotations

import uvicorn

from knotulus_api.api.app import create_app
from knotulus_api.settings import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run(
        create_app(settings=settings),
        host=settings.api_host,
        port=settings.api_port,
        # Anonymous callers are rate limited by client IP, so trust
        # X-Forwarded-For only from the configured proxies.
        proxy_headers=True,
        forwarded_allow_ips=settings.forwarded_allow_ips,
        server_header=False,
        log_config=None,
    )


if __name__ == "__main__":
    main()
