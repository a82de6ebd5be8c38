from fastapi import FastAPI
from hireit.core.config import settings
from hireit.core.exception_handlers import register_exception_handlers
from hireit.core.logger_config import configure_logging
from hireit.routers import transactions as transactions_router
from hireit.routers import reviews as reviews_router
import uvicorn

configure_logging()

app = FastAPI(title=settings.project_name)

app.include_router(transactions_router.router)
app.include_router(reviews_router.router)

register_exception_handlers(app)

@app.get("/")
async def root():
    return {"message": "Welcome to HireIT"}

def main():
    """Run the FastAPI application."""
    uvicorn.run(
        "hireit.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.reload,
        log_level=settings.log_level.lower()
    )

if __name__ == "__main__":
    main()
