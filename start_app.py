#!/usr/bin/env python
"""Start the FastAPI application with the port taken from the environment."""
import os
import uvicorn

if __name__ == "__main__":
    port = int(os.environ.get("PORT", 8000))

    print(f"Starting ledgersync on port {port}")

    uvicorn.run(
        "ledgersync.main:app",
        host="0.0.0.0",
        port=port,
        log_level=os.environ.get("LOG_LEVEL", "info").lower(),
        proxy_headers=True,
    )
