import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pymongo.database import Database

import database
from config import CORS_ORIGINS, DATABASE_NAME, HOST, LOG_LEVEL, PORT
from database import get_db
from envelope import Envelope, register_exception_handlers, success
from routers.category_router import category_router
from routers.product_router import product_router
from routers.user_router import user_router

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # fails startup when Mongo is unreachable
    client = database.connect()
    app.state.db = client[DATABASE_NAME]
    logger.info("Shop API started")
    try:
        yield
    finally:
        database.close(client)


app = FastAPI(title="Shop API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

app.include_router(user_router)
app.include_router(category_router)
app.include_router(product_router)


@app.get("/", response_model=Envelope)
def read_root():
    return success(None, "Shop API")


@app.get("/test", response_model=Envelope)
def test_database(db: Database = Depends(get_db)):
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_name": None,
        "connection_status": "Not Connected",
        "collections": []
    }
    try:
        response["database_name"] = db.name
        response["collections"] = db.list_collection_names()
        response["database"] = "✅ Available"
        response["connection_status"] = "Connected"
    except Exception as e:
        response["database"] = f"❌ Error: {str(e)[:80]}"
    return success(response, "Database diagnostics")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=HOST, port=PORT)
