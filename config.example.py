# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
Use a local, gitignored .env for anything machine-specific.

This file exists to make the repo self-documenting without opening src/plant_todo/config.py.
"""

ENV_VARS = {
    # App / logging
    "PLANT_APP_NAME": "App display name (default: plant-todo).",
    "PLANT_LOG_LEVEL": "Console logging level (default: INFO).",
    # Remote store
    "PLANT_API_BASE_URL": "Sync server base URL (default: http://localhost:3000).",
    "PLANT_PROFILE_ID": "Profile key for snapshot/history/image (default: default).",
    "PLANT_HTTP_TIMEOUT_SECONDS": "HTTP timeout per request (default: 10).",
    "PLANT_SYNC_ENABLED": "Talk to the remote store at all (true/false, default: true).",
    # Paths (gitignored)
    "PLANT_DATA_DIR": "Local data directory (default: .local/plant_todo).",
    "PLANT_STATE_PATH": "Local state copy (default: <data_dir>/plant_todo_app_state_v3.json).",
    # Loop timing
    "PLANT_SYNC_INTERVAL_SECONDS": "Pull polling interval (default: 15).",
    "PLANT_PUSH_DEBOUNCE_SECONDS": "Quiet time after the last edit before a push (default: 2).",
    "PLANT_PULL_COOLDOWN_SECONDS": "No pull is applied this soon after a local edit (default: 5).",
    "PLANT_SCHEDULER_INTERVAL_SECONDS": "Recurring rule evaluation interval (default: 60).",
    "PLANT_SURVIVAL_INTERVAL_SECONDS": "Plant death check interval (default: 10).",
    "PLANT_CONVERSION_GRACE_SECONDS": "Delay before a converted todo leaves the list (default: 1.5).",
    # Viewport (headless client)
    "PLANT_VIEWPORT_WIDTH": "Viewport width in px; below 1024 means mobile layout (default: 1280).",
    "PLANT_VIEWPORT_HEIGHT": "Viewport height in px (default: 800).",
    # Connectors
    "PLANT_CONSOLE_ENABLED": "Enable the interactive console (true/false, default: true).",
}
