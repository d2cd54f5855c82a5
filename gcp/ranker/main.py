"""Cloud Run entrypoint for the ranking service.

Cloud Scheduler POSTs /ingest every 15 minutes; clients GET /regions.
"""

from __future__ import annotations

import os

from quake_rank.config import Settings
from quake_rank.logging_config import configure_logging
from quake_rank.service import create_app

settings = Settings.from_env()
configure_logging(settings.log_level_value)

app = create_app(settings=settings)


if __name__ == "__main__":
    port = int(os.environ.get("PORT", 8080))
    app.run(host="0.0.0.0", port=port, debug=False)
