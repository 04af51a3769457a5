"""
asgi.py -- Application assembly for AccountHub.

This is the ONLY file that imports from both api/ and live/routes. The REST
app and the event-stream router stay independent; this module joins them
into the single ASGI app uvicorn serves.

Run with:  uvicorn asgi:app --reload
           python main.py serve
"""

from api.main import app
from live.routes import router as live_router

app.include_router(live_router, tags=["Live"])
