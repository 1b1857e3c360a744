import logging

from fastapi import FastAPI
from dotenv import load_dotenv

from app.api import forms, line, linkage, preview
from app.config import get_settings
from fastapi.middleware.cors import CORSMiddleware

load_dotenv()

logging.basicConfig(
    level=getattr(logging, get_settings().log_level, logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(title="LINE Form Linkage API", version="0.1.0")

@app.get("/health")
def health():
    return {"status": "ok"}

# Routers
app.include_router(preview.router)
app.include_router(forms.router)
app.include_router(line.router)

# Entry point at "/", registered last
app.include_router(linkage.router)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
