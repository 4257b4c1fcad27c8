"""
FastAPI task manager backend package.

The application object lives in ``src.api.main`` (``app`` for the environment
configuration, ``create_app()`` for explicit settings). It is not imported
here so that importing a submodule does not build an application.
"""
