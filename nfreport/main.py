"""Main entry point for the nfreport application."""

import os

from nfreport import create_app
from nfreport.config import DEBUG_MODE
from nfreport.core.app_state import add_app_log


def main():
    app = create_app()
    host = os.getenv("NFREPORT_HOST", "0.0.0.0")
    port = int(os.getenv("NFREPORT_PORT", "8080"))
    add_app_log(f"Starting nfreport on {host}:{port}", "INFO")
    app.run(host=host, port=port, debug=DEBUG_MODE, threaded=True)


if __name__ == "__main__":
    main()
