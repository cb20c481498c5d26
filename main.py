from salonbook.api.booking.appointments import appointments_bp
from salonbook.api.booking.public import public_bp
from salonbook.api.customer.clients import clients_bp
from salonbook.api.payments.stripe_payments import payments_bp
from salonbook.api.salons.details import salon_bp
from salonbook.api.salons.metrics import metrics_bp
from salonbook.api.salons.reviews import reviews_bp
from salonbook.api.salons.services import services_bp
from salonbook.api.salons.stylists import stylists_bp
from salonbook.api.voice.assistant import voice_bp
from salonbook.routes.auth import auth_bp
from flask import Flask
from flask_cors import CORS
from dotenv import load_dotenv
from flasgger import Swagger
from swagger__config import SWAGGER_CONFIG, SWAGGER_TEMPLATE
import logging
import os

load_dotenv()
from salonbook.config import Config  # noqa: E402
from salonbook.extensions import db  # noqa: E402

logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO"),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


def create_app(config_object=Config):
    print("Starting create_app()")
    app = Flask(__name__)
    try:
        app.config.from_object(config_object)
        print(f"Config loaded: {len(app.config)} items")

        CORS(app)
        db.init_app(app)
        print("CORS and database initialized")

        host = os.environ.get("API_HOST", "127.0.0.1:5000")
        swagger_template = SWAGGER_TEMPLATE.copy()
        swagger_template["host"] = host

        Swagger(app, config=SWAGGER_CONFIG, template=swagger_template)
        print("Swagger initialized - Access at /api/docs")

        blueprints = [
            auth_bp,
            salon_bp,
            services_bp,
            stylists_bp,
            clients_bp,
            reviews_bp,
            metrics_bp,
            public_bp,
            appointments_bp,
            payments_bp,
            voice_bp,
        ]

        for bp in blueprints:
            app.register_blueprint(bp)
            print(f"  ✓ {bp.name} registered")

        @app.route("/")
        def home():
            """
            Root endpoint - API status
            ---
            tags:
              - Utility
            responses:
              200:
                description: API is running
                schema:
                  type: object
                  properties:
                    status:
                      type: string
                    message:
                      type: string
            """
            return {"status": "ok", "message": "Backend is running!"}, 200

        print(f"Total routes registered: {len(list(app.url_map.iter_rules()))}")

    except Exception as e:
        print(f"Error during app creation: {e}")
        raise

    print("create_app() completed successfully")
    return app


app = create_app()


if __name__ == "__main__":
    # Create a .env containing:
    #       DATABASE_URL=mysql+pymysql://<USER>:<PASSWORD>@<HOST>:<PORT>/salon_booking
    #       STRIPE_SECRET_KEY=..., OPENAI_API_KEY=..., AUTH_JWT_SECRET=...
    port = int(os.environ.get("PORT", 5000))
    app.run(
        host="0.0.0.0", port=port, debug=os.environ.get("FLASK_ENV") != "production"
    )
