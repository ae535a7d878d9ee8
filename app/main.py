from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.v1.batches.router import router as batches_router
from app.api.v1.departments.department_router import router as departments_router
from app.api.v1.students.router import router as students_router
from app.api.v1.wash_allowances.router import router as wash_allowances_router
from app.api.v1.wash_policies.router import router as wash_policies_router
from app.api.v1.wash_requests.router import router as wash_requests_router
from app.core.logging import setup_logging


def create_app() -> FastAPI:
    setup_logging()
    app = FastAPI(title="Laundry Service Backend")

    # CORS: allow frontend to call this API
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Routers
    app.include_router(departments_router)
    app.include_router(batches_router)
    app.include_router(students_router)
    app.include_router(wash_policies_router)
    app.include_router(wash_allowances_router)
    app.include_router(wash_requests_router)

    return app


app = create_app()
