from fastapi import FastAPI
from scansubmit.api.admin_routes import router as admin_router
from scansubmit.settings import settings

app = FastAPI(title="Scan Submission Admin API")

app.include_router(admin_router)


@app.get("/health")
def health():
    return {"status": "ok", "version": settings.CLIENT_VERSION}
