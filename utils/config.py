import os
import json
from pathlib import Path
import firebase_admin
from firebase_admin import credentials
import logging

logger = logging.getLogger(__name__)

DEFAULT_ANTHROPIC_MODEL = "claude-3-7-sonnet-20250219"
DEFAULT_GEMINI_MODEL = "gemini-2.0-flash-exp"
DEFAULT_DATABASE_URL = "sqlite:///copilot_memory.db"

def is_replit():
    """Check if we're running on Replit"""
    return os.getenv('REPL_ID') is not None

def get_env_var(var_name: str, default: str = None) -> str:
    """Get environment variable from either Replit secrets or local .env file"""
    if is_replit():
        # In Replit, get from secrets
        return os.getenv(var_name, default)
    else:
        # Locally, try to load from .env.local or .env
        from dotenv import load_dotenv

        # Try these paths in order
        paths_to_try = [
            Path('./.env.local'),   # In current directory
            Path('./.env'),
            Path('../.env.local'),  # In parent directory
            Path('../.env'),
        ]

        # Try each path
        for path in paths_to_try:
            if path.exists():
                load_dotenv(dotenv_path=path)
                break

        # Return the value
        return os.getenv(var_name, default)

def get_api_keys():
    """Get all API keys"""
    return {
        "ANTHROPIC_API_KEY": get_env_var("ANTHROPIC_API_KEY"),
        # The browser build reads the Gemini key from API_KEY
        "GEMINI_API_KEY": get_env_var("GEMINI_API_KEY") or get_env_var("API_KEY"),
        "TAVILY_API_KEY": get_env_var("TAVILY_API_KEY"),
    }

def get_copilot_settings(default_provider: str = "anthropic"):
    """Get model and storage settings for the copilot"""
    return {
        "provider": (get_env_var("COPILOT_PROVIDER") or default_provider).lower(),
        "anthropic_model": get_env_var("ANTHROPIC_MODEL", DEFAULT_ANTHROPIC_MODEL),
        "gemini_model": get_env_var("GEMINI_MODEL", DEFAULT_GEMINI_MODEL),
        "database_url": get_env_var("DATABASE_URL", DEFAULT_DATABASE_URL),
    }

def get_firebase_credentials():
    """Get Firebase credentials from environment or file"""
    # First try to get from environment variable
    creds_json = get_env_var("FIREBASE_CREDENTIALS")
    if creds_json:
        try:
            return json.loads(creds_json)
        except json.JSONDecodeError:
            # If it's not valid JSON, assume it's a filepath
            if os.path.exists(creds_json):
                with open(creds_json, 'r') as f:
                    return json.load(f)
            # Otherwise, fall through to other methods

    # Try to use environment variables to construct credentials
    project_id = get_env_var("FIREBASE_PROJECT_ID")
    private_key = get_env_var("FIREBASE_PRIVATE_KEY")
    client_email = get_env_var("FIREBASE_CLIENT_EMAIL")

    if project_id and private_key and client_email:
        # Replace escaped newlines with actual newlines if present
        if "\\n" in private_key:
            private_key = private_key.replace("\\n", "\n")

        return {
            "type": "service_account",
            "project_id": project_id,
            "private_key": private_key,
            "client_email": client_email,
            "client_id": get_env_var("FIREBASE_CLIENT_ID", ""),
            "auth_uri": get_env_var("FIREBASE_AUTH_URI", "https://accounts.google.com/o/oauth2/auth"),
            "token_uri": get_env_var("FIREBASE_TOKEN_URI", "https://oauth2.googleapis.com/token"),
            "auth_provider_x509_cert_url": get_env_var("FIREBASE_AUTH_PROVIDER_CERT_URL", "https://www.googleapis.com/oauth2/v1/certs"),
            "client_x509_cert_url": get_env_var("FIREBASE_CLIENT_CERT_URL", "")
        }

    # Finally, try to read from file
    backend_dir = Path(__file__).parent.parent.absolute()
    cred_path = backend_dir / "firebase-credentials.json"
    if cred_path.exists():
        with open(cred_path, 'r') as f:
            return json.load(f)

    raise ValueError(
        "Firebase credentials not found. Please either:\n"
        "1. Add a firebase-credentials.json file to the project root, or\n"
        "2. Add FIREBASE_CREDENTIALS as JSON in your .env.local file, or\n"
        "3. Add individual Firebase credential environment variables: FIREBASE_PROJECT_ID, FIREBASE_PRIVATE_KEY, FIREBASE_CLIENT_EMAIL"
    )

def initialize_environment():
    """Check the environment and report what is missing.

    Missing model credentials are not fatal here; they surface as a
    ConfigError when the chat session is created.
    """
    optional_vars = [
        "ANTHROPIC_API_KEY",
        "GEMINI_API_KEY",
        "TAVILY_API_KEY",
        "DATABASE_URL",
    ]

    missing_vars = [var for var in optional_vars if not get_env_var(var)]
    if missing_vars:
        logger.warning(f"Environment variables not set: {', '.join(missing_vars)}")

    logger.debug("Environment initialized successfully")
    return missing_vars

def initialize_firebase():
    """Initialize Firebase if it hasn't been already."""
    if not firebase_admin._apps:
        try:
            cred = credentials.Certificate(get_firebase_credentials())
            firebase_admin.initialize_app(cred, {
                'projectId': get_env_var('FIREBASE_PROJECT_ID'),
            })
            logger.info("Firebase initialized")
        except Exception as e:
            logger.error(f"Error initializing Firebase: {e}")
            raise
