import uvicorn
from config import ApplicationConfig
from activation_engine.api.app import create_app

# One Stripe client and notifier per process, held in app.state
app = create_app(ApplicationConfig)

if __name__ == "__main__":
    uvicorn.run(
        "api:app",
        host=ApplicationConfig.API_HOST,
        port=ApplicationConfig.API_PORT,
        reload=ApplicationConfig.API_RELOAD,
        log_level=ApplicationConfig.LOG_LEVEL.lower(),
    )
