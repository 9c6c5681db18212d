import logging
import os
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from database import CORS_ORIGINS, DATABASE_NAME, DATABASE_URL, MongoStoreClient, get_database
from declarations import SCHEMA, collection_names
from reconcile import StoreClient, StoreUnavailable, reconcile

logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))
logger = logging.getLogger(__name__)

app = FastAPI(title="TicTacToe Store Admin API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)


def get_store() -> Optional[StoreClient]:
    db = get_database()
    return MongoStoreClient(db) if db is not None else None


# ---------------------------
# Schema
# ---------------------------
@app.get("/api/schema")
def read_schema():
    return SCHEMA.describe()


@app.post("/api/schema/reconcile")
def reconcile_schema(store: Optional[StoreClient] = Depends(get_store)):
    if store is None:
        raise HTTPException(status_code=503, detail="Database not configured")
    try:
        report = reconcile(SCHEMA, store)
    except StoreUnavailable as e:
        logger.error(f"Reconcile aborted, database unreachable: {e}")
        raise HTTPException(status_code=503, detail="Database unreachable")
    # 207: some items converged, some did not
    return JSONResponse(report.summary(), status_code=200 if report.ok else 207)


# ---------------------------
# Health & DB test
# ---------------------------
@app.get("/")
def read_root():
    return {"message": "TicTacToe store admin running"}


@app.get("/test")
def test_database(store: Optional[StoreClient] = Depends(get_store)):
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": "✅ Set" if DATABASE_URL else "❌ Not Set",
        "database_name": "✅ Set" if DATABASE_NAME else "❌ Not Set",
        "connection_status": "Not Connected",
        "collections": [],
        "missing_collections": collection_names(),
    }
    if store is None:
        return response
    response["database"] = "✅ Available"
    try:
        collections = sorted(store.list_collection_names())
    except StoreUnavailable as e:
        response["database"] = f"❌ Error: {str(e)[:80]}"
        return response
    except Exception as e:
        response["database"] = f"⚠️ Connected but Error: {str(e)[:80]}"
        return response
    response["collections"] = collections
    response["missing_collections"] = [name for name in collection_names() if name not in collections]
    response["connection_status"] = "Connected"
    response["database"] = "✅ Connected & Working"
    return response


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
