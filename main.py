# src/main.py
import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from access.routes import router as access_router
from admin.routes import router as admin_router
from auth.routes import router as auth_router
from catalog.routes import router as catalog_router
from exceptions import register_exception_handlers
from payment.routes import router as payment_router
from scheduler.tasks import run_startup_tasks, shutdown_scheduler
from subscription.routes import router as subscription_router

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="PathTech Academy Backend",
    description="Course access control and payment approval API",
    version="0.1.0",
)

# Configure CORS
origins = ["http://localhost:5173", "http://localhost", "http://127.0.0.1:5173"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

# Include routers
app.include_router(auth_router)
app.include_router(catalog_router)
app.include_router(access_router)
app.include_router(payment_router)
app.include_router(subscription_router)
app.include_router(admin_router)

@app.on_event("startup")
async def startup_event():
    """Sweep expired grants once and start the scheduler."""
    run_startup_tasks()

@app.on_event("shutdown")
async def shutdown_event():
    shutdown_scheduler()

@app.get("/")
async def root():
    """Root endpoint."""
    return {"message": "Welcome to PathTech Academy Backend!"}
