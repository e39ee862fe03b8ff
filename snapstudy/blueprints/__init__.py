from .health import health_bp
from .auth import auth_bp
from .payments import payments_bp
from .flashcards import flashcards_bp
from .profile import profile_bp

__all__ = ['health_bp', 'auth_bp', 'payments_bp', 'flashcards_bp', 'profile_bp']
