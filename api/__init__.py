"""api/ -- FastAPI application, transport models and REST routes.

api/ is the only layer that imports from both auth/ and loans/.
"""
