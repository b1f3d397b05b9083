import os
import logging
import firebase_admin
from firebase_admin import credentials
from dotenv import load_dotenv

load_dotenv()
logger = logging.getLogger(__name__)

def initialize_firebase():
    if firebase_admin._apps:
        return firebase_admin.get_app()

    cred_path = os.getenv("FIREBASE_CREDENTIALS")
    if not cred_path:
        logger.warning("FIREBASE_CREDENTIALS is not set, token verification will reject every request")
        return None

    cred = credentials.Certificate(cred_path)
    app = firebase_admin.initialize_app(cred)
    logger.info("Firebase app initialized")
    return app
