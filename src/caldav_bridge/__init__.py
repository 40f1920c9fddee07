"""REST bridge between an automation platform and a CalDAV/CardDAV server"""

__version__ = "1.0.0"
