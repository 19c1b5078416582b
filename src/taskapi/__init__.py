"""
Study task backend package.

The FastAPI application lives in `src.taskapi.main` (`app`, `create_app`).
It is not imported here: building the app reads and validates the
environment, which should only happen when the server actually starts.
"""
