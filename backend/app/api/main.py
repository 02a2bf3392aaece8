from fastapi import APIRouter

from app.api.routes import agents, competitors, content, ideas, login, users, utils

api_router = APIRouter()
api_router.include_router(login.router)
api_router.include_router(users.router)
api_router.include_router(utils.router)
api_router.include_router(agents.router)
api_router.include_router(content.router)
api_router.include_router(competitors.router)
api_router.include_router(ideas.router)
