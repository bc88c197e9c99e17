"""
V1 API router aggregator — wires all endpoint modules together.
"""

from fastapi import APIRouter

from app.api.v1.endpoints import employees, expenses, health, projects, users

api_router = APIRouter()

# Registration, login, password reset, user management
api_router.include_router(users.router)

# Employees (search listing + Admin CRUD)
api_router.include_router(employees.router)

# Projects and expenses
api_router.include_router(projects.router)
api_router.include_router(expenses.router)

# Liveness
api_router.include_router(health.router)
