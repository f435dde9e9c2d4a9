"""
Server entry point

    uvicorn wsgi:application --host 0.0.0.0 --port 8000
or
    python wsgi.py
"""
from app.main import app

# Process managers look for `application`
application = app

if __name__ == "__main__":
    import uvicorn
    from app.config import settings
    uvicorn.run(
        "wsgi:application",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level="debug" if settings.DEBUG else "info"
    )
