from sqlalchemy.orm import Session
from app.data.models.user import UserModel
from app.domain.errors import UserNotFoundError, ValidationError
from app.domain.events import AccountSecurityEvent, PasswordResetEvent
from app.repos.user_repo import UserRepo
from app.domain.schemas import UserCreate, UserRead
from app.services.notification_service import EventPublisher
from app.utils.logging import get_logger

logger = get_logger(__name__)


class UserService:
    def __init__(self, db: Session, publisher=None):
        self.repo = UserRepo(db)
        self.publisher = publisher or EventPublisher()

    def create_user(self, payload: UserCreate) -> UserRead:
        existing = self.repo.get_user(payload.id)
        if existing:
            return UserRead.model_validate(existing)

        if self.repo.get_by_email(payload.email):
            raise ValidationError("Email already registered")

        user = UserModel(id=payload.id, email=payload.email, first_name=payload.first_name)
        created = self.repo.create_user(user)
        return UserRead.model_validate(created)

    def get_user(self, user_id: int) -> UserRead:
        user = self.repo.get_user(user_id)
        if not user:
            raise UserNotFoundError("User not found")
        return UserRead.model_validate(user)

    # Punkty wejscia dla modulu auth (logowanie, reset hasla).
    # Sam token i wykrywanie zdarzen sa po stronie auth.

    def notify_security_alert(self, user_id: int, alert_type: str, details: str) -> None:
        user = self.get_user(user_id)
        self.publisher.publish(
            AccountSecurityEvent(
                user_id=user.id,
                user_email=user.email,
                user_first_name=user.first_name,
                alert_type=alert_type,
                details=details,
            )
        )
        logger.info(f"Security alert {alert_type} published for user {user_id}")

    def notify_password_reset(self, user_id: int, reset_token: str) -> None:
        if not reset_token:
            raise ValidationError("Reset token is required")

        user = self.get_user(user_id)
        self.publisher.publish(
            PasswordResetEvent(
                user_id=user.id,
                user_email=user.email,
                user_first_name=user.first_name,
                reset_token=reset_token,
            )
        )
        logger.info(f"Password reset notification published for user {user_id}")
