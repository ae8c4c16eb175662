# app/db/base.py
# 匯入所有 model，讓 Base.metadata 完整（Alembic / 測試 create_all 使用）
from app.models.base import Base  # noqa: F401
from app.models.users import User  # noqa: F401
from app.models.sessions import UserSession  # noqa: F401
from app.models.auth_tokens import EmailVerificationToken, PasswordResetToken  # noqa: F401
from app.models.examples import Example  # noqa: F401
