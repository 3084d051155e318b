# storefront/main.py
from fastapi import FastAPI
import uvicorn

from storefront.api import ROUTERS
from storefront.data.database import Base, engine, init_db
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


def create_app(create_tables: bool = True) -> FastAPI:
    if create_tables:
        try:
            init_db(engine)
            logger.info(f"Database ready, tables: {sorted(Base.metadata.tables.keys())}")
        except Exception as e:
            logger.error(f"Failed to create tables: {e}")
            raise

    app = FastAPI(
        title="Storefront Order Service",
        version="1.0.0",
    )

    for router in ROUTERS:
        app.include_router(router)

    return app


app = create_app()

if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
