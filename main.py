"""
Main entry point for the Village Carbon Ledger API.
"""
import uvicorn
from village_carbon.api.main import app
from village_carbon.core.settings import settings

if __name__ == "__main__":
    uvicorn.run(
        "village_carbon.api.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.is_development,
        log_level=settings.log_level.lower()
    )
