from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from supabase import Client
from app.core.config import configure_logging
from app.db.supabase import get_supabase
from app.db.models import ASSIGNMENTS
from app.modules.assignments.router import router as assignments_router
from app.modules.submissions.router import router as submissions_router
from app.modules.sections.router import router as sections_router
from app.modules.events.router import router as events_router
from app.modules.grades.router import router as grades_router
from app.modules.realtime.router import router as realtime_router

configure_logging()

app = FastAPI(
    title="Classroom Sync",
    description="Authoritative record store and class room relay for collaborative classroom editing",
    version="1.0.0"
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Allow all origins for development
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Root route (test)
@app.get("/")
def root():
    return {"message": "Classroom Sync is running"}

# Health check route
@app.get("/health")
def health_check(supabase: Client = Depends(get_supabase)):
    """Check if the service and record store connection are healthy"""
    try:
        supabase.table(ASSIGNMENTS).select('id').limit(1).execute()
        return {
            "status": "healthy",
            "database": "connected",
        }
    except Exception as e:
        return {
            "status": "unhealthy",
            "database": f"error: {str(e)}",
        }

# Include routers
app.include_router(assignments_router, prefix="/assignments", tags=["Assignments"])
app.include_router(submissions_router, prefix="/submissions", tags=["Submissions"])
app.include_router(sections_router, prefix="/sections", tags=["Sections"])
app.include_router(events_router, prefix="/events", tags=["Events"])
app.include_router(grades_router, prefix="/grades", tags=["Grades"])
app.include_router(realtime_router, prefix="/realtime", tags=["Realtime"])
