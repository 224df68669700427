"""
Taskdeck package.

Task and category stores, the filtering and reordering engines, and the
FastAPI application serving them. The app lives in taskdeck.main and is
not imported here so the stores can be used without FastAPI settings
being read at import time.
"""
