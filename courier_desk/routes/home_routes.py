from flask import Blueprint, current_app, jsonify


home_bp = Blueprint("home", __name__)


@home_bp.route("/")
def home():
    return jsonify(
        {
            "service": "courier-desk",
            "provider_mode": current_app.config.get("PROVIDER_MODE"),
            "endpoints": {
                "users": "/api/users",
                "items": "/api/items",
                "quotes": "/api/quotes",
                "deliveries": "/api/deliveries",
                "webhook_events": "/api/webhook-events",
                "webhook": "/webhook/uber",
                "health": "/health",
                "metrics": "/metrics",
            },
        }
    )
