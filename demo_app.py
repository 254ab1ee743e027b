"""Demo server for the cleankiss student API.

Run with: python demo_app.py
Then try:

    TOKEN=$(printed below)
    curl -X POST localhost:8000/api/v1/students \
        -H "Authorization: Bearer $TOKEN" \
        -H "X-Idempotency-Key: order-123" \
        -H "Content-Type: application/json" \
        -d '{"name": "Ada Lovelace", "email": "ada@example.com"}'

Repeating the same command replays the first response with
``X-Idempotent-Replayed: true``. Dropping the key and repeating answers 409.
"""

import uvicorn

from cleankiss.api.app import create_app
from cleankiss.auth.permissions import Permissions
from cleankiss.auth.tokens import issue_token
from cleankiss.config import AppConfig
from cleankiss.observability.logging import configure_logging

config = AppConfig.from_env()
configure_logging(level=config.log_level, json_output=config.json_logs)

app = create_app(config)


if __name__ == "__main__":
    token = issue_token(
        config.auth,
        subject="demo-admin",
        permissions=[
            Permissions.Students.VIEW,
            Permissions.Students.CREATE,
            Permissions.Students.DELETE,
        ],
        roles=["Admin"],
    )
    print("=" * 60)
    print("cleankiss demo")
    print("=" * 60)
    print(f"Bearer token (valid {config.auth.expiration_minutes} min):")
    print(token)
    print("=" * 60)

    uvicorn.run(app, host="0.0.0.0", port=8000, log_level=config.log_level.lower())
