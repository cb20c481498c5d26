from flask import Blueprint, g, jsonify

from ..auth import login_required
from ..serializers import user_to_dict
from ..services.catalog import get_owned_salon

auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.route("/user", methods=["GET"])
@login_required
def get_current_user():
    """
    Get the signed-in user
    ---
    tags:
      - Authentication
    security:
      - Bearer: []
    responses:
      200:
        description: Current user with the id of the salon they own (if any)
        schema:
          type: object
          properties:
            id:
              type: string
            email:
              type: string
            first_name:
              type: string
            last_name:
              type: string
            role:
              type: string
            salon_id:
              type: string
      401:
        description: Missing or invalid token
    """
    user = user_to_dict(g.user)
    salon = get_owned_salon(g.user_id)
    user["salon_id"] = salon.id if salon else None
    return jsonify(user), 200
