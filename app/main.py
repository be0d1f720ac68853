import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from app.core.database import engine
from app.api.router import api_router

logging.basicConfig(level=logging.INFO)


# Close the engine once everything is done and close all the sessions
@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await engine.dispose()


app = FastAPI(title="Attendance Agent API", lifespan=lifespan)

# Include the master router containing all our endpoints
app.include_router(api_router)


@app.get("/")
async def root():
    return {"message": "Welcome to the Attendance Agent API"}
