import json
import os

from carpet_inventory.api.main import app

# Get the OpenAPI schema (note: all REST routes are under /api/v1)
openapi_schema = app.openapi()

# Inject non-standard extension with WebSocket endpoint docs
openapi_schema["x-websocket-endpoints"] = [
    {
        "path": "/ws/inventory",
        "summary": "Low-stock and restock notifications for products and raw materials",
        "messages": {
            "client_to_server": ["ping"],
            "server_to_client": ["connected", "stock.low", "stock.restocked", "pong"],
        },
    },
]

# Write to file
output_dir = "interfaces"
os.makedirs(output_dir, exist_ok=True)
output_path = os.path.join(output_dir, "openapi.json")

with open(output_path, "w") as f:
    json.dump(openapi_schema, f, indent=2)
