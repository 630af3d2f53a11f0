from flask import Blueprint, jsonify

from models import db

health_bp = Blueprint("health", __name__)

@health_bp.get("/health")
def health():
    db.session.execute(db.text("SELECT 1"))
    return jsonify(status="ok"), 200
