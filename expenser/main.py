import logging
from fastapi import FastAPI
from expenser.config import settings
from expenser.db.database import Base, engine, check_db_connection
from expenser.models import trips, expenses  # noqa: F401 - register tables
from expenser.api.v1.routes.trips import router as trips_router
from expenser.api.v1.routes.expenses import router as expenses_router
from expenser.api.v1.routes.settlements import router as settlements_router

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)

Base.metadata.create_all(bind=engine)

app = FastAPI(
    title="Expenser - Trip Expense Splitting",
    description="Manages trips, shared expenses, and debt settlements",
    version="1.0.0"
)

app.include_router(trips_router)
app.include_router(expenses_router)
app.include_router(settlements_router)

@app.get("/")
def read_root():
    return {"message": "Expenser API", "version": "1.0.0"}

@app.get("/health")
def health_check():
    if not check_db_connection():
        return {"status": "unhealthy"}
    return {"status": "healthy"}
