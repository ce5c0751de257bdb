import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from learnsy.accounts.auth_router import router as auth_router
from learnsy.accounts.service import create_user_indexes
from learnsy.accounts.signup_router import router as signup_router
from learnsy.ai_tools.ai_router import router as ai_tools_router
from learnsy.ai_tools.summary_service import create_ai_indexes
from learnsy.core.config import settings
from learnsy.core.database import get_db_instance
from learnsy.core.errors import register_exception_handlers
from learnsy.core.middleware import log_requests, security_headers
from learnsy.courses.course_router import router as course_router
from learnsy.courses.database import create_course_indexes
from learnsy.courses.quiz_router import router as quiz_router
from learnsy.dashboards.admin_router import router as admin_dashboard_router
from learnsy.dashboards.faculty_router import router as faculty_dashboard_router
from learnsy.dashboards.student_router import router as student_dashboard_router
from learnsy.enrollments.enrollment_router import router as enrollment_router
from learnsy.enrollments.service import create_enrollment_indexes
from learnsy.materials.material_router import router as material_router
from learnsy.materials.service import create_material_indexes
from learnsy.progress.progress_router import router as progress_router
from learnsy.study_sessions.service import create_session_indexes
from learnsy.study_sessions.session_router import router as session_router
from learnsy.subscriptions.payment_router import router as payment_router
from learnsy.subscriptions.qr_router import router as qr_router
from learnsy.subscriptions.service import create_subscription_indexes
from learnsy.subscriptions.subscription_router import router as subscription_router
from learnsy.system.health_router import router as health_router

app = FastAPI(title="Learnsy API", version=settings.VERSION)

INDEX_BUILDERS = (
    create_user_indexes,
    create_course_indexes,
    create_enrollment_indexes,
    create_material_indexes,
    create_session_indexes,
    create_subscription_indexes,
    create_ai_indexes,
)


@app.on_event("startup")
async def startup_event():
    settings.require_secrets()
    os.makedirs(settings.materials_dir, exist_ok=True)
    os.makedirs(settings.ai_uploads_dir, exist_ok=True)

    db = get_db_instance()
    for build in INDEX_BUILDERS:
        try:
            await build(db)
        except Exception as e:
            print(f"⚠️  {build.__name__} failed: {e}")
    print(f"🚀 Learnsy API {settings.VERSION} started")


app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.middleware("http")(security_headers)
app.middleware("http")(log_requests)

register_exception_handlers(app)


# ==================== ROUTER REGISTRATION ====================
app.include_router(signup_router)
app.include_router(auth_router)
app.include_router(course_router)
app.include_router(quiz_router)
app.include_router(material_router)
app.include_router(enrollment_router)
app.include_router(progress_router)
app.include_router(session_router)
app.include_router(student_dashboard_router)
app.include_router(faculty_dashboard_router)
app.include_router(admin_dashboard_router)
app.include_router(subscription_router)
app.include_router(payment_router)
app.include_router(qr_router)
app.include_router(ai_tools_router)
app.include_router(health_router)
# ============================================================

app.mount("/uploads", StaticFiles(directory=settings.UPLOAD_DIR, check_dir=False), name="uploads")
