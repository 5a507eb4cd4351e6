from fastapi import FastAPI
from shiftplan.api.routes import scheduling

app = FastAPI(title="Shiftplan API", version="0.1.0")

app.include_router(scheduling.router, prefix="/api/v1")


@app.get("/health")
def health_check():
    return {"status": "ok"}
