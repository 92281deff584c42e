"""
Serve the billing API with uvicorn.

    python -m billing_api --host 0.0.0.0 --port 8000 --init-db
"""

import argparse

import uvicorn

from billing_api.app import create_app
from billing_config import get_active_config


def main() -> None:
    parser = argparse.ArgumentParser(description="Serve the construction billing API")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8000)
    parser.add_argument(
        "--init-db",
        action="store_true",
        help="Create missing tables before serving",
    )
    args = parser.parse_args()

    app = create_app(get_active_config(), init_db=args.init_db)
    uvicorn.run(app, host=args.host, port=args.port, log_config=None)


if __name__ == "__main__":
    main()
