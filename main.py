import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logging

# Import our config so .env files are loaded before anything reads them
from utils.config import initialize_environment

# First initialize the environment to ensure all variables are loaded
try:
    initialize_environment()
except Exception as e:
    print(f"Warning: Failed to initialize environment: {e}")

from copilot import app as copilot_app, initialize_app

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[logging.StreamHandler()]
)

# Initialize copilot app
initialize_app()

# Create main FastAPI app
app = FastAPI()

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Allow all origins for development
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Mount the copilot app
# This means copilot_app routes are accessible at:
# - /copilot/ for the POST endpoint
# - /copilot/health for the health check
app.mount("/copilot", copilot_app)

@app.get("/")
async def root():
    return {
        "status": "ok",
        "message": "IT Copilot Backend API is running",
        "endpoints": {
            "copilot": "/copilot",
        }
    }

if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8080)
