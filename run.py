#!/usr/bin/env python3
"""
Helper script to run the CalDAV bridge with uvicorn.
"""

import uvicorn

from caldav_bridge.utils.config import settings

if __name__ == "__main__":
    # The app factory builds a fresh application with its collaborators
    uvicorn.run(
        "caldav_bridge.main:create_app",
        factory=True,
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG
    )
