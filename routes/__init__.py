# Routes package __init__.py - re-exports routers for main.py convenience
from .stories import router as stories_router
from .words import router as words_router
from .grammar import router as grammar_router
from .users import router as users_router

__all__ = ['stories_router', 'words_router', 'grammar_router', 'users_router']
