"""
DealDesk FastAPI Application
============================
Main entry point for the DealDesk API.

This file serves as a simple entry point for running the application.
The actual FastAPI application is built by dealdesk.app_factory.
"""

from dealdesk.app_factory import create_application

app = create_application()

# This enables uvicorn to run the application when specified as 'main:app'
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
