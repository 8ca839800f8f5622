"""Run script with proper environment loading"""
import os
import sys
from pathlib import Path

# Add backend directory to path for imports
BASE_DIR = Path(__file__).resolve().parent
sys.path.insert(0, str(BASE_DIR))

from dotenv import load_dotenv

load_dotenv(BASE_DIR.parent / ".env", override=True)

# Relative database and log paths resolve against backend/
os.chdir(BASE_DIR)

if __name__ == "__main__":
    import uvicorn
    from iccmirror.core.config import get_settings

    settings = get_settings()

    from main import app

    uvicorn.run(
        app,
        host=settings.api_host,
        port=settings.api_port,
        reload=False,
    )
