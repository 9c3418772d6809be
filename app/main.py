from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.v1.auth.router import router as auth_router
from app.api.v1.departments.department_router import router as departments_router
from app.api.v1.marks.router import router as marks_router
from app.api.v1.promotions.router import router as promotions_router
from app.api.v1.sections.sections_router import router as sections_router
from app.api.v1.staff.router import router as staff_router
from app.api.v1.students.router import router as students_router
from app.core.config import settings
from app.core.logging import setup_logging


def create_app() -> FastAPI:
    setup_logging(settings.log_level)
    app = FastAPI(title="CampusConnect Backend")

    # CORS: comma-separated CORS_ORIGINS, or any origin when unset
    origins = [o.strip() for o in (settings.cors_origins or "").split(",") if o.strip()] or ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Routers
    app.include_router(auth_router)
    app.include_router(departments_router)
    app.include_router(staff_router)
    app.include_router(sections_router)
    app.include_router(students_router)
    app.include_router(promotions_router)
    app.include_router(marks_router)

    return app


app = create_app()
